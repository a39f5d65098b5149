"""Payment method selection, validation and settlement."""
from __future__ import annotations

import asyncio
import inspect
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from vitrine.core.errors import (
    CheckoutError,
    PaymentDeclined,
    PaymentGatewayError,
    PaymentInProgress,
    PaymentTimeout,
    ValidationError,
)
from vitrine.core.logging import get_logger
from vitrine.core.observability import payments_total
from vitrine.core.plans import CheckoutSummary
from vitrine.core.settings import Settings, get_settings
from vitrine.services.notifications import Notifier

logger = get_logger(__name__)


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    INSTANT_TRANSFER = "pix"


class PaymentOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SETTLED = "settled"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class CardInput:
    number: str = ""
    holder_name: str = ""
    expiry: str = ""
    cvc: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CardInput":
        return cls(
            number=str(data.get("number") or ""),
            holder_name=str(data.get("holder_name") or data.get("name") or ""),
            expiry=str(data.get("expiry") or ""),
            cvc=str(data.get("cvc") or ""),
        )

    def errors(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if len(self.number) < 16:
            errors["number"] = "Card number must have at least 16 characters"
        if not self.holder_name:
            errors["holder_name"] = "Card holder name is required"
        if len(self.expiry) < 5:
            errors["expiry"] = "Expiry must be in MM/AA format"
        if len(self.cvc) < 3:
            errors["cvc"] = "CVC must have at least 3 digits"
        return errors

    def __repr__(self) -> str:
        return f"CardInput(number='****{self.number[-4:]}', holder_name={self.holder_name!r})"


@dataclass(frozen=True, slots=True)
class InstantTransferInstructions:
    reference_code: str
    expires_at: datetime
    validity: timedelta


@dataclass(frozen=True, slots=True)
class PaymentResult:
    outcome: PaymentOutcome
    method: PaymentMethod
    amount: int
    reference: str | None = None
    failure: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is PaymentOutcome.SUCCEEDED


class PaymentGateway:
    """Settles a checkout. Raises PaymentDeclined or PaymentGatewayError."""

    async def settle(self, summary: CheckoutSummary, method: PaymentMethod) -> str:
        raise NotImplementedError


class SimulatedGateway(PaymentGateway):
    """Approves every payment after a fixed delay."""

    def __init__(self, delay: float) -> None:
        self.delay = delay

    async def settle(self, summary: CheckoutSummary, method: PaymentMethod) -> str:
        await asyncio.sleep(self.delay)
        return f"simulated-{uuid.uuid4().hex}"


CompletionCallback = Callable[[PaymentResult], Awaitable[None] | None]


class PaymentOrchestrator:
    """Drives one payment attempt for a checkout summary.

    ``close()`` while a settlement is in flight cancels it; the pending
    ``submit_payment`` call then resolves as cancelled and the completion
    callback is never invoked.
    """

    def __init__(
        self,
        summary: CheckoutSummary,
        on_complete: CompletionCallback,
        gateway: PaymentGateway | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.summary = summary
        self.on_complete = on_complete
        self.gateway = gateway or SimulatedGateway(self.settings.payment_settlement_delay_seconds)
        self.notifier = notifier or Notifier()
        self.state = PaymentState.IDLE
        self._settlement: asyncio.Task[str] | None = None

    @property
    def is_processing(self) -> bool:
        return self.state is PaymentState.PROCESSING

    def instant_transfer_instructions(self, now: datetime | None = None) -> InstantTransferInstructions:
        validity = timedelta(minutes=self.settings.pix_validity_minutes)
        issued = now or datetime.now(timezone.utc)
        return InstantTransferInstructions(
            reference_code=self.settings.pix_reference_code,
            expires_at=issued + validity,
            validity=validity,
        )

    def _validate(self, method: PaymentMethod, details: CardInput | Mapping[str, Any] | None) -> None:
        if method is not PaymentMethod.CREDIT_CARD:
            return
        card = details if isinstance(details, CardInput) else CardInput.from_mapping(details or {})
        errors = card.errors()
        if errors:
            self.notifier.notify("card_incomplete")
            raise ValidationError(errors)

    async def submit_payment(
        self,
        method: PaymentMethod | str,
        details: CardInput | Mapping[str, Any] | None = None,
    ) -> PaymentResult:
        method = PaymentMethod(method)
        if self.state is PaymentState.PROCESSING:
            raise PaymentInProgress("A payment is already being processed")
        if self.state in (PaymentState.SETTLED, PaymentState.CLOSED):
            return PaymentResult(PaymentOutcome.CANCELLED, method, self.summary.amount)

        self._validate(method, details)

        self.state = PaymentState.PROCESSING
        logger.info("payment_processing", method=method.value, amount=self.summary.amount, plan_id=self.summary.plan.id)
        self._settlement = asyncio.create_task(self.gateway.settle(self.summary, method))
        try:
            reference = await asyncio.wait_for(
                asyncio.shield(self._settlement), self.settings.payment_timeout_seconds
            )
        except asyncio.CancelledError:
            if self.state is not PaymentState.CLOSED:
                self._settlement.cancel()
                self.state = PaymentState.IDLE
                logger.info("payment_abandoned", method=method.value)
                raise
            logger.info("payment_cancelled", method=method.value)
            return self._record(PaymentResult(PaymentOutcome.CANCELLED, method, self.summary.amount))
        except asyncio.TimeoutError:
            self._settlement.cancel()
            return self._fail(method, PaymentTimeout("Payment settlement timed out"))
        except (PaymentDeclined, PaymentGatewayError) as exc:
            return self._fail(method, exc)
        finally:
            self._settlement = None

        if self.state is PaymentState.CLOSED:
            return self._record(PaymentResult(PaymentOutcome.CANCELLED, method, self.summary.amount))

        self.state = PaymentState.SETTLED
        result = PaymentResult(PaymentOutcome.SUCCEEDED, method, self.summary.amount, reference=reference)
        logger.info("payment_settled", method=method.value, amount=self.summary.amount, reference=reference)
        self.notifier.notify("payment_approved")
        self._record(result)
        try:
            outcome = self.on_complete(result)
            if inspect.isawaitable(outcome):
                await outcome
        finally:
            self.close()
        return result

    def _fail(self, method: PaymentMethod, error: CheckoutError) -> PaymentResult:
        self.state = PaymentState.IDLE
        logger.warning("payment_failed", method=method.value, kind=error.kind, error=str(error))
        self.notifier.notify(error.notice)
        return self._record(PaymentResult(PaymentOutcome.FAILED, method, self.summary.amount, failure=error.kind))

    @staticmethod
    def _record(result: PaymentResult) -> PaymentResult:
        payments_total.labels(method=result.method.value, outcome=result.outcome.value).inc()
        return result

    def close(self) -> None:
        """Dismiss the payment step, cancelling any settlement in flight."""
        if self.state is PaymentState.CLOSED:
            return
        self.state = PaymentState.CLOSED
        if self._settlement is not None and not self._settlement.done():
            self._settlement.cancel()


__all__ = [
    "CardInput",
    "InstantTransferInstructions",
    "PaymentGateway",
    "PaymentMethod",
    "PaymentOrchestrator",
    "PaymentOutcome",
    "PaymentResult",
    "PaymentState",
    "SimulatedGateway",
]
