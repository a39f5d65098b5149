"""Typed checkout session persisted between the checkout screens."""
from __future__ import annotations

import hashlib
from pathlib import Path

from pydantic import BaseModel, ValidationError as PydanticValidationError

from vitrine.core.logging import get_logger
from vitrine.core.plans import DEFAULT_DURATION_ID

logger = get_logger(__name__)


class CheckoutSession(BaseModel):
    """What the buyer has committed to so far."""

    plan_id: str | None = None
    duration_id: str = DEFAULT_DURATION_ID
    amount: int | None = None


class SessionStore:
    """Load/save/clear contract for the checkout session."""

    def load(self) -> CheckoutSession | None:
        raise NotImplementedError

    def save(self, session: CheckoutSession) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self, session: CheckoutSession | None = None) -> None:
        self.session = session
        self.writes = 0

    def load(self) -> CheckoutSession | None:
        return self.session

    def save(self, session: CheckoutSession) -> None:
        self.session = session.model_copy()
        self.writes += 1

    def clear(self) -> None:
        self.session = None


class FileSessionStore(SessionStore):
    """One JSON document per owner under ``directory``."""

    def __init__(self, directory: Path, owner_id: str) -> None:
        digest = hashlib.sha256(owner_id.encode()).hexdigest()[:32]
        self.path = directory / f"checkout-{digest}.json"

    def load(self) -> CheckoutSession | None:
        if not self.path.exists():
            return None
        try:
            return CheckoutSession.model_validate_json(self.path.read_text())
        except PydanticValidationError:
            logger.warning("checkout_session_corrupt", path=str(self.path))
            return None

    def save(self, session: CheckoutSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(session.model_dump_json())
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = ["CheckoutSession", "FileSessionStore", "MemorySessionStore", "SessionStore"]
