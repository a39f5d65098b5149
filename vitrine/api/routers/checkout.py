"""Plan selection and payment routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from vitrine.api import schemas
from vitrine.api.dependencies.checkout import CheckoutFlow, get_catalog_snapshot, get_checkout_flow
from vitrine.core.errors import UnknownPlan
from vitrine.core.logging import get_logger
from vitrine.core.plans import CatalogSnapshot, available_durations, build_summary
from vitrine.services.payments import CardInput, PaymentOrchestrator, PaymentResult

logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["checkout"])


def _notices(flow: CheckoutFlow) -> list[schemas.NoticeOut]:
    return [schemas.NoticeOut(**notice.as_dict()) for notice in flow.notifier.drain()]


def _state(
    flow: CheckoutFlow,
    snapshot: CatalogSnapshot,
    accepted: bool = True,
) -> schemas.CheckoutStateOut:
    machine = flow.selection
    plan = snapshot.find(machine.selection.plan_id)
    summary = machine.summary(snapshot)
    return schemas.CheckoutStateOut(
        state=machine.state.value,
        plan_id=machine.selection.plan_id,
        duration_id=machine.selection.duration_id,
        available_durations=[
            schemas.DurationOut.from_option(option) for option in available_durations(plan).values()
        ],
        summary=schemas.SummaryOut.from_summary(summary) if summary else None,
        accepted=accepted,
        next_screen=flow.navigator.destination.value if flow.navigator.destination else None,
        notices=_notices(flow),
    )


@router.get("", response_model=schemas.CheckoutStateOut)
def checkout_state(
    flow: CheckoutFlow = Depends(get_checkout_flow),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> schemas.CheckoutStateOut:
    return _state(flow, snapshot)


@router.post("/plan", response_model=schemas.CheckoutStateOut)
def choose_plan(
    payload: schemas.PlanChoiceIn,
    flow: CheckoutFlow = Depends(get_checkout_flow),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> schemas.CheckoutStateOut:
    flow.selection.choose_plan(payload.plan_id, snapshot)
    return _state(flow, snapshot)


@router.post("/duration", response_model=schemas.CheckoutStateOut)
def choose_duration(
    payload: schemas.DurationChoiceIn,
    flow: CheckoutFlow = Depends(get_checkout_flow),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> schemas.CheckoutStateOut:
    accepted = flow.selection.choose_duration(payload.duration_id, snapshot)
    return _state(flow, snapshot, accepted=accepted)


@router.post("/continue", response_model=schemas.CheckoutStateOut)
def continue_checkout(
    flow: CheckoutFlow = Depends(get_checkout_flow),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> schemas.CheckoutStateOut:
    summary = flow.selection.continue_checkout(snapshot)
    return _state(flow, snapshot, accepted=summary is not None)


def _orchestrator(flow: CheckoutFlow, snapshot: CatalogSnapshot) -> PaymentOrchestrator:
    session = flow.store.load()
    plan = snapshot.find(session.plan_id) if session else None
    if plan is None:
        raise UnknownPlan("No plan has been confirmed for checkout")
    summary = build_summary(plan, session.duration_id)

    def _completed(result: PaymentResult) -> None:
        flow.store.clear()
        logger.info("checkout_session_cleared", owner_id=flow.owner_id, reference=result.reference)

    return PaymentOrchestrator(summary, _completed, notifier=flow.notifier)


@router.get("/pix", response_model=schemas.InstantTransferOut)
def instant_transfer(
    flow: CheckoutFlow = Depends(get_checkout_flow),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> schemas.InstantTransferOut:
    instructions = _orchestrator(flow, snapshot).instant_transfer_instructions()
    return schemas.InstantTransferOut(
        reference_code=instructions.reference_code,
        expires_at=instructions.expires_at,
        validity_minutes=int(instructions.validity.total_seconds() // 60),
    )


@router.post("/payment", response_model=schemas.PaymentOut)
async def submit_payment(
    request: Request,
    payload: schemas.PaymentIn,
    flow: CheckoutFlow = Depends(get_checkout_flow),
    snapshot: CatalogSnapshot = Depends(get_catalog_snapshot),
) -> schemas.PaymentOut:
    if flow.payment is None or not flow.payment.is_processing:
        flow.payment = _orchestrator(flow, snapshot)
    card = CardInput(**payload.card.model_dump()) if payload.card else None
    result = await flow.payment.submit_payment(payload.method, card)
    response = schemas.PaymentOut(
        outcome=result.outcome.value,
        method=result.method.value,
        amount=result.amount,
        reference=result.reference,
        failure=result.failure,
        notices=_notices(flow),
    )
    if result.succeeded:
        request.app.state.checkouts.discard(flow.owner_id)
    return response


@router.delete("/payment", status_code=status.HTTP_204_NO_CONTENT)
def cancel_payment(request: Request, flow: CheckoutFlow = Depends(get_checkout_flow)) -> None:
    request.app.state.checkouts.discard(flow.owner_id)
