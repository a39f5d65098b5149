"""Screen hand-off between the checkout steps."""
from __future__ import annotations

from enum import Enum

from vitrine.core.logging import get_logger

logger = get_logger(__name__)


class Screen(str, Enum):
    VERIFICATION = "/verificacao"
    DASHBOARD = "/dashboard"
    SIGN_IN = "/auth"


class Navigator:
    """Records where the hosting flow should send the buyer next."""

    def __init__(self) -> None:
        self.destination: Screen | None = None
        self.visited: list[Screen] = []

    def go(self, screen: Screen) -> None:
        self.destination = screen
        self.visited.append(screen)
        logger.info("navigation_handoff", screen=screen.value)


__all__ = ["Navigator", "Screen"]
