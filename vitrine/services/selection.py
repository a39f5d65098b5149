"""Plan and duration selection ahead of payment."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from vitrine.core.logging import get_logger
from vitrine.core.plans import (
    DEFAULT_DURATION_ID,
    DURATION_OPTIONS,
    CatalogSnapshot,
    CheckoutSummary,
    Plan,
    build_summary,
    coerce_duration,
    is_duration_allowed,
)
from vitrine.services.navigation import Navigator, Screen
from vitrine.services.notifications import Notifier
from vitrine.services.session import CheckoutSession, SessionStore

logger = get_logger(__name__)


class SelectionState(str, Enum):
    EMPTY = "empty"
    PLAN_CHOSEN = "plan_chosen"
    PLAN_AND_DURATION_CHOSEN = "plan_and_duration_chosen"


@dataclass(frozen=True, slots=True)
class Selection:
    plan_id: str | None = None
    duration_id: str = DEFAULT_DURATION_ID


class SelectionStateMachine:
    """Owns the buyer's in-progress (plan, duration) choice.

    Every operation takes the catalog snapshot it should be judged against.
    Whenever the chosen plan turns out to be free the duration is forced back
    to the shortest option, so a free plan is never summarised with a longer
    duration.
    """

    def __init__(
        self,
        store: SessionStore,
        notifier: Notifier | None = None,
        navigator: Navigator | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier or Notifier()
        self.navigator = navigator or Navigator()
        self.selection = Selection()
        self.state = SelectionState.EMPTY

    def resume(self) -> Selection:
        """Restore the last persisted choice, if any."""
        session = self.store.load()
        if session is None or session.plan_id is None:
            return self.selection
        duration_id = session.duration_id if session.duration_id in DURATION_OPTIONS else DEFAULT_DURATION_ID
        self.selection = Selection(plan_id=session.plan_id, duration_id=duration_id)
        self.state = SelectionState.PLAN_AND_DURATION_CHOSEN
        return self.selection

    def sync(self, snapshot: CatalogSnapshot) -> Selection:
        """Reconcile the choice with a newly received catalog snapshot."""
        if snapshot.is_empty:
            return self.selection

        plan = snapshot.find(self.selection.plan_id)
        if plan is None:
            plan = snapshot.first()
            if self.selection.plan_id is not None:
                logger.info("selected_plan_withdrawn", plan_id=self.selection.plan_id, fallback=plan.id)
            self.selection = replace(self.selection, plan_id=plan.id)
            if self.state is SelectionState.EMPTY:
                self.state = SelectionState.PLAN_CHOSEN
        self._enforce_duration(plan)
        return self.selection

    def choose_plan(self, plan_id: str, snapshot: CatalogSnapshot) -> Selection:
        plan = snapshot.require(plan_id)
        self.selection = replace(self.selection, plan_id=plan.id)
        if self.state is SelectionState.EMPTY:
            self.state = SelectionState.PLAN_CHOSEN
        self._enforce_duration(plan)
        return self.selection

    def choose_duration(self, duration_id: str, snapshot: CatalogSnapshot) -> bool:
        """Apply a duration choice; illegal choices are ignored and return False."""
        plan = snapshot.find(self.selection.plan_id)
        if plan is None or not is_duration_allowed(plan, duration_id):
            logger.debug("duration_rejected", plan_id=self.selection.plan_id, duration_id=duration_id)
            return False
        self.selection = replace(self.selection, duration_id=duration_id)
        self.state = SelectionState.PLAN_AND_DURATION_CHOSEN
        return True

    def summary(self, snapshot: CatalogSnapshot) -> CheckoutSummary | None:
        plan = snapshot.find(self.selection.plan_id)
        if plan is None:
            return None
        return build_summary(plan, self.selection.duration_id)

    def continue_checkout(self, snapshot: CatalogSnapshot) -> CheckoutSummary | None:
        """Persist the choice and hand the summary to the next step.

        Without a chosen plan this does nothing and returns None.
        """
        summary = self.summary(snapshot)
        if summary is None:
            return None
        self.store.save(
            CheckoutSession(
                plan_id=summary.plan.id,
                duration_id=summary.duration.id,
                amount=summary.amount,
            )
        )
        self.notifier.notify("plan_selected", plan=summary.plan.name, duration=summary.duration.label)
        self.navigator.go(Screen.VERIFICATION)
        logger.info(
            "checkout_continued",
            plan_id=summary.plan.id,
            duration_id=summary.duration.id,
            amount=summary.amount,
        )
        return summary

    def _enforce_duration(self, plan: Plan) -> None:
        duration_id = coerce_duration(plan, self.selection.duration_id)
        if duration_id != self.selection.duration_id:
            logger.info(
                "duration_corrected",
                plan_id=plan.id,
                previous=self.selection.duration_id,
                duration_id=duration_id,
            )
            self.selection = replace(self.selection, duration_id=duration_id)


__all__ = ["Selection", "SelectionState", "SelectionStateMachine"]
