"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from vitrine.core.plans import CheckoutSummary, DurationOption, Plan, price, price_label
from vitrine.services.payments import PaymentMethod


class DurationOut(BaseModel):
    id: str
    label: str
    multiplier: float

    @classmethod
    def from_option(cls, option: DurationOption) -> "DurationOut":
        return cls(id=option.id, label=option.label, multiplier=float(option.multiplier))


class PlanOut(BaseModel):
    id: str
    name: str
    price: int
    price_label: str
    features: list[str]
    color: str
    icon: str

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanOut":
        return cls(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            price_label=price_label(plan.price),
            features=list(plan.features),
            color=plan.badge_color,
            icon=plan.badge_icon,
        )


class PlanListResponse(BaseModel):
    plans: list[PlanOut]
    version: int
    message: str | None = None


class QuoteOut(BaseModel):
    duration: DurationOut
    amount: int
    amount_label: str

    @classmethod
    def for_plan(cls, plan: Plan, option: DurationOption) -> "QuoteOut":
        amount = price(plan.price, option.multiplier)
        return cls(duration=DurationOut.from_option(option), amount=amount, amount_label=price_label(amount))


class SummaryOut(BaseModel):
    plan: PlanOut
    duration: DurationOut
    amount: int
    amount_label: str

    @classmethod
    def from_summary(cls, summary: CheckoutSummary) -> "SummaryOut":
        return cls(
            plan=PlanOut.from_plan(summary.plan),
            duration=DurationOut.from_option(summary.duration),
            amount=summary.amount,
            amount_label=summary.amount_label,
        )


class NoticeOut(BaseModel):
    key: str
    title: str
    description: str
    level: str


class PlanChoiceIn(BaseModel):
    plan_id: str


class DurationChoiceIn(BaseModel):
    duration_id: str


class CheckoutStateOut(BaseModel):
    state: str
    plan_id: str | None
    duration_id: str
    available_durations: list[DurationOut]
    summary: SummaryOut | None = None
    accepted: bool = True
    next_screen: str | None = None
    notices: list[NoticeOut] = Field(default_factory=list)


class CardIn(BaseModel):
    number: str = ""
    holder_name: str = ""
    expiry: str = ""
    cvc: str = ""


class PaymentIn(BaseModel):
    method: PaymentMethod
    card: CardIn | None = None


class PaymentOut(BaseModel):
    outcome: str
    method: str
    amount: int
    reference: str | None = None
    failure: str | None = None
    notices: list[NoticeOut] = Field(default_factory=list)


class InstantTransferOut(BaseModel):
    reference_code: str
    expires_at: datetime
    validity_minutes: int


class VerificationOut(BaseModel):
    id: str | None
    status: str
    document_front_url: str
    document_back_url: str
    document_selfie_url: str
    next_screen: str | None = None
    notices: list[NoticeOut] = Field(default_factory=list)
