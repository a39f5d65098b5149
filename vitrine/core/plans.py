"""Subscription plan catalog, duration table and pricing rules.

Everything in this module is pure: functions receive the plan (or an explicit
:class:`CatalogSnapshot`) they operate on and never reach into live state, so a
price computed from a snapshot always agrees with the plan list it came from.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from .errors import CatalogUnavailable, UnknownPlan

ICONS = frozenset({"diamond", "star", "crown", "award", "sparkles", "gem"})
DEFAULT_ICON = "circle-dot"
DEFAULT_COLOR = "gray"

_NAME_COLORS = {"diamante": "purple", "rubi": "red", "safira": "blue"}
_NAME_ICONS = {"diamante": "diamond", "rubi": "star", "safira": "gem"}


@dataclass(frozen=True, slots=True)
class Plan:
    id: str
    name: str
    price: int
    features: tuple[str, ...] = ()
    color: str | None = None
    icon: str | None = None

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def badge_color(self) -> str:
        if self.color:
            return self.color
        return _NAME_COLORS.get(self.name.lower(), DEFAULT_COLOR)

    @property
    def badge_icon(self) -> str:
        if self.icon:
            return self.icon if self.icon in ICONS else DEFAULT_ICON
        return _NAME_ICONS.get(self.name.lower(), DEFAULT_ICON)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Plan":
        """Build a plan from a ``subscription_plans`` row."""
        price = int(row.get("price") or 0)
        if price < 0:
            raise ValueError(f"Plan {row.get('id')!r} has a negative price")
        return cls(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            price=price,
            features=_parse_features(row.get("features")),
            color=row.get("color") or None,
            icon=row.get("icon") or None,
        )


def _parse_features(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, Mapping):
        raw = raw.get("items")
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(item) for item in raw)


@dataclass(frozen=True, slots=True)
class DurationOption:
    id: str
    label: str
    multiplier: Decimal


DURATION_OPTIONS: dict[str, DurationOption] = {
    "1dia": DurationOption(id="1dia", label="1 dia", multiplier=Decimal("0.5")),
    "3dias": DurationOption(id="3dias", label="3 dias", multiplier=Decimal("1.0")),
    "15dias": DurationOption(id="15dias", label="15 dias", multiplier=Decimal("2.5")),
    "1mes": DurationOption(id="1mes", label="1 mês", multiplier=Decimal("3.5")),
    "3meses": DurationOption(id="3meses", label="3 meses", multiplier=Decimal("8.0")),
}
SHORTEST_DURATION_ID = "1dia"
DEFAULT_DURATION_ID = "3dias"


def get_duration(duration_id: str) -> DurationOption:
    try:
        return DURATION_OPTIONS[duration_id]
    except KeyError:
        raise ValueError(f"Unknown duration {duration_id!r}") from None


def price(base_price: int, multiplier: Decimal | float | int | str) -> int:
    """Return the payable amount for ``base_price`` over a duration multiplier.

    Free plans stay free whatever the multiplier; other amounts are rounded
    half-up, so ``price(99, 0.5) == 50``.
    """
    if base_price == 0:
        return 0
    amount = Decimal(base_price) * Decimal(str(multiplier))
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def available_durations(plan: Plan | None) -> dict[str, DurationOption]:
    """Durations a buyer may pick for ``plan``; free plans only get the shortest one."""
    if plan is not None and plan.is_free:
        return {SHORTEST_DURATION_ID: DURATION_OPTIONS[SHORTEST_DURATION_ID]}
    return dict(DURATION_OPTIONS)


def is_duration_allowed(plan: Plan | None, duration_id: str) -> bool:
    return duration_id in available_durations(plan)


def coerce_duration(plan: Plan | None, duration_id: str) -> str:
    """Return ``duration_id`` if legal for ``plan``, else the shortest option."""
    if is_duration_allowed(plan, duration_id):
        return duration_id
    return SHORTEST_DURATION_ID


def price_label(amount: int) -> str:
    return "Grátis" if amount == 0 else f"R$ {amount}"


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """Immutable view of the catalog at one point in time."""

    plans: tuple[Plan, ...] = ()
    version: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.plans

    def first(self) -> Plan | None:
        return self.plans[0] if self.plans else None

    def find(self, plan_id: str | None) -> Plan | None:
        if plan_id is None:
            return None
        for plan in self.plans:
            if plan.id == plan_id:
                return plan
        return None

    def require(self, plan_id: str) -> Plan:
        if self.is_empty:
            raise CatalogUnavailable("No plans are available right now")
        plan = self.find(plan_id)
        if plan is None:
            raise UnknownPlan(f"Plan {plan_id!r} is not in the catalog", plan_id=plan_id)
        return plan


@dataclass(frozen=True, slots=True)
class CheckoutSummary:
    plan: Plan
    duration: DurationOption
    amount: int = field(default=0)

    @property
    def amount_label(self) -> str:
        return price_label(self.amount)

    def as_dict(self) -> dict[str, Any]:
        return {
            "plan_id": self.plan.id,
            "plan_name": self.plan.name,
            "duration_id": self.duration.id,
            "duration_label": self.duration.label,
            "amount": self.amount,
            "amount_label": self.amount_label,
            "features": list(self.plan.features),
        }


def build_summary(plan: Plan, duration_id: str) -> CheckoutSummary:
    duration = get_duration(coerce_duration(plan, duration_id))
    return CheckoutSummary(plan=plan, duration=duration, amount=price(plan.price, duration.multiplier))


__all__ = [
    "DEFAULT_DURATION_ID",
    "DURATION_OPTIONS",
    "SHORTEST_DURATION_ID",
    "CatalogSnapshot",
    "CheckoutSummary",
    "DurationOption",
    "Plan",
    "available_durations",
    "build_summary",
    "coerce_duration",
    "get_duration",
    "is_duration_allowed",
    "price",
    "price_label",
]
