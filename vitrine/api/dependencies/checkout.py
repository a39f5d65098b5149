"""Per-buyer checkout state shared between requests."""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field

from fastapi import Depends, Request

from vitrine.core.logging import get_logger
from vitrine.core.plans import CatalogSnapshot
from vitrine.core.settings import get_settings
from vitrine.services.navigation import Navigator
from vitrine.services.notifications import Notifier
from vitrine.services.payments import PaymentOrchestrator
from vitrine.services.selection import SelectionStateMachine
from vitrine.services.session import FileSessionStore, SessionStore

from .auth import get_current_owner

logger = get_logger(__name__)


@dataclass
class CheckoutFlow:
    owner_id: str
    store: SessionStore
    notifier: Notifier = field(default_factory=Notifier)
    navigator: Navigator = field(default_factory=Navigator)
    selection: SelectionStateMachine = field(init=False)
    payment: PaymentOrchestrator | None = None

    def __post_init__(self) -> None:
        self.selection = SelectionStateMachine(self.store, self.notifier, self.navigator)
        self.selection.resume()


class CheckoutRegistry:
    """In-memory map of owner id to their checkout flow.

    Flows are dropped once their checkout completes or is abandoned. Beyond
    ``capacity`` the least recently used idle flow is evicted; its selection
    survives in the session store and is resumed on the next request.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity or get_settings().checkout_registry_capacity
        self._flows: OrderedDict[str, CheckoutFlow] = OrderedDict()

    def __len__(self) -> int:
        return len(self._flows)

    def __contains__(self, owner_id: object) -> bool:
        return owner_id in self._flows

    def get(self, owner_id: str) -> CheckoutFlow:
        flow = self._flows.get(owner_id)
        if flow is not None:
            self._flows.move_to_end(owner_id)
            return flow
        store = FileSessionStore(get_settings().resolved_session_dir, owner_id)
        flow = CheckoutFlow(owner_id=owner_id, store=store)
        self._flows[owner_id] = flow
        self._evict(keep=owner_id)
        return flow

    def _evict(self, keep: str) -> None:
        while len(self._flows) > self.capacity:
            idle = next(
                (
                    owner_id
                    for owner_id, flow in self._flows.items()
                    if owner_id != keep and (flow.payment is None or not flow.payment.is_processing)
                ),
                None,
            )
            if idle is None:
                return
            self.discard(idle)
            logger.info("checkout_flow_evicted", owner_id=idle)

    def discard(self, owner_id: str) -> None:
        flow = self._flows.pop(owner_id, None)
        if flow is not None and flow.payment is not None:
            flow.payment.close()


def get_catalog_snapshot(request: Request) -> CatalogSnapshot:
    return request.app.state.catalog.snapshot


def get_checkout_flow(
    request: Request,
    owner_id: str = Depends(get_current_owner),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> CheckoutFlow:
    flow = request.app.state.checkouts.get(owner_id)
    flow.selection.sync(snapshot)
    return flow


__all__ = ["CheckoutFlow", "CheckoutRegistry", "get_catalog_snapshot", "get_checkout_flow"]
