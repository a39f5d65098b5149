"""Error taxonomy shared by the checkout and verification flows."""
from __future__ import annotations

from typing import Any, Iterable


class CheckoutError(Exception):
    """Base class for every recoverable failure surfaced to the buyer.

    ``kind`` is a stable machine-readable identifier, ``notice`` names the
    user-facing notice emitted for it (see :mod:`vitrine.services.notifications`).
    """

    kind = "checkout_error"
    notice = "generic_failure"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        super().__init__(message or self.kind)
        self.context = context

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": str(self), **self.context}


class ValidationError(CheckoutError):
    """Card input rejected before any settlement attempt."""

    kind = "validation_error"
    notice = "card_incomplete"

    def __init__(self, fields: dict[str, str]) -> None:
        super().__init__("Invalid payment details", fields=fields)
        self.fields = fields


class AuthRequired(CheckoutError):
    kind = "auth_required"
    notice = "auth_required"


class IncompleteSubmission(CheckoutError):
    kind = "incomplete_submission"
    notice = "documents_incomplete"

    def __init__(self, missing: Iterable[str]) -> None:
        missing = list(missing)
        super().__init__(f"Missing documents: {', '.join(missing)}", missing=missing)
        self.missing = missing


class UploadError(CheckoutError):
    kind = "upload_error"
    notice = "upload_failed"


class RecordInsertError(CheckoutError):
    kind = "record_insert_error"
    notice = "upload_failed"


class CatalogUnavailable(CheckoutError):
    """The catalog is empty; rendered as an empty state rather than a failure."""

    kind = "catalog_unavailable"
    notice = "no_plans"


class UnknownPlan(CheckoutError):
    kind = "unknown_plan"
    notice = "generic_failure"


class PaymentInProgress(CheckoutError):
    kind = "payment_in_progress"
    notice = "payment_processing"


class PaymentDeclined(CheckoutError):
    kind = "payment_declined"
    notice = "payment_declined"


class PaymentGatewayError(CheckoutError):
    kind = "payment_network_error"
    notice = "payment_unavailable"


class PaymentTimeout(CheckoutError):
    kind = "payment_timeout"
    notice = "payment_unavailable"


__all__ = [
    "AuthRequired",
    "CatalogUnavailable",
    "CheckoutError",
    "IncompleteSubmission",
    "PaymentDeclined",
    "PaymentGatewayError",
    "PaymentInProgress",
    "PaymentTimeout",
    "RecordInsertError",
    "UnknownPlan",
    "UploadError",
    "ValidationError",
]
