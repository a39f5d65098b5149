import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from vitrine.core.errors import PaymentDeclined, PaymentGatewayError, PaymentInProgress, ValidationError
from vitrine.core.plans import CheckoutSummary, Plan, build_summary
from vitrine.core.settings import Settings
from vitrine.services.payments import (
    CardInput,
    PaymentGateway,
    PaymentMethod,
    PaymentOrchestrator,
    PaymentOutcome,
    PaymentResult,
    PaymentState,
    SimulatedGateway,
)

VALID_CARD = {"number": "4111111111111111", "name": "A", "expiry": "12/30", "cvc": "123"}


class RecordingGateway(PaymentGateway):
    def __init__(self, error: Exception | None = None, delay: float = 0.0) -> None:
        self.calls = 0
        self.error = error
        self.delay = delay

    async def settle(self, summary: CheckoutSummary, method: PaymentMethod) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return f"ref-{self.calls}"


class Completions:
    def __init__(self) -> None:
        self.results: list[PaymentResult] = []

    def __call__(self, result: PaymentResult) -> None:
        self.results.append(result)


@pytest.fixture
def summary(safira: Plan) -> CheckoutSummary:
    return build_summary(safira, "1mes")


@pytest.fixture
def completions() -> Completions:
    return Completions()


async def _wait_until_processing(orchestrator: PaymentOrchestrator) -> None:
    for _ in range(100):
        if orchestrator.is_processing:
            return
        await asyncio.sleep(0)
    raise AssertionError("payment never started processing")


@pytest.mark.asyncio
async def test_valid_card_settles_and_completes_once(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    orchestrator = PaymentOrchestrator(summary, completions, settings=settings)
    loop = asyncio.get_running_loop()
    started = loop.time()

    result = await orchestrator.submit_payment(PaymentMethod.CREDIT_CARD, VALID_CARD)

    assert loop.time() - started >= settings.payment_settlement_delay_seconds * 0.9
    assert result.outcome is PaymentOutcome.SUCCEEDED
    assert result.amount == 105
    assert result.reference.startswith("simulated-")
    assert completions.results == [result]
    assert orchestrator.state is PaymentState.CLOSED
    assert orchestrator.notifier.last.key == "payment_approved"


@pytest.mark.asyncio
async def test_short_card_number_fails_validation_without_side_effects(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    gateway = RecordingGateway()
    orchestrator = PaymentOrchestrator(summary, completions, gateway=gateway, settings=settings)

    with pytest.raises(ValidationError) as excinfo:
        await orchestrator.submit_payment("credit_card", {**VALID_CARD, "number": "123"})

    assert set(excinfo.value.fields) == {"number"}
    assert gateway.calls == 0
    assert completions.results == []
    assert orchestrator.state is PaymentState.IDLE
    assert orchestrator.notifier.last.key == "card_incomplete"


def test_card_validation_reports_every_field() -> None:
    assert set(CardInput().errors()) == {"number", "holder_name", "expiry", "cvc"}
    assert CardInput.from_mapping(VALID_CARD).errors() == {}
    assert "4111111111111111" not in repr(CardInput.from_mapping(VALID_CARD))


@pytest.mark.asyncio
async def test_instant_transfer_skips_card_validation(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    gateway = RecordingGateway()
    orchestrator = PaymentOrchestrator(summary, completions, gateway=gateway, settings=settings)

    result = await orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER)

    assert result.succeeded
    assert result.method is PaymentMethod.INSTANT_TRANSFER
    assert gateway.calls == 1


def test_instant_transfer_instructions_expire_after_thirty_minutes(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    orchestrator = PaymentOrchestrator(summary, completions, settings=settings)
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    instructions = orchestrator.instant_transfer_instructions(now)

    assert instructions.reference_code == settings.pix_reference_code
    assert instructions.validity == timedelta(minutes=30)
    assert instructions.expires_at == now + timedelta(minutes=30)


@pytest.mark.asyncio
async def test_closing_during_settlement_cancels_without_callback(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    orchestrator = PaymentOrchestrator(summary, completions, gateway=SimulatedGateway(10), settings=settings)
    pending = asyncio.create_task(orchestrator.submit_payment(PaymentMethod.CREDIT_CARD, VALID_CARD))
    await _wait_until_processing(orchestrator)

    orchestrator.close()
    result = await asyncio.wait_for(pending, timeout=1)

    assert result.outcome is PaymentOutcome.CANCELLED
    assert completions.results == []
    assert orchestrator.state is PaymentState.CLOSED


@pytest.mark.asyncio
async def test_resubmission_while_processing_is_rejected(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    gateway = RecordingGateway(delay=0.05)
    orchestrator = PaymentOrchestrator(summary, completions, gateway=gateway, settings=settings)
    pending = asyncio.create_task(orchestrator.submit_payment(PaymentMethod.CREDIT_CARD, VALID_CARD))
    await _wait_until_processing(orchestrator)

    with pytest.raises(PaymentInProgress):
        await orchestrator.submit_payment(PaymentMethod.CREDIT_CARD, VALID_CARD)

    assert (await pending).succeeded
    assert gateway.calls == 1
    assert len(completions.results) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "failure", "notice"),
    [
        (PaymentDeclined("insufficient funds"), "payment_declined", "payment_declined"),
        (PaymentGatewayError("connection reset"), "payment_network_error", "payment_unavailable"),
    ],
)
async def test_gateway_failures_map_to_failed_outcome(
    summary: CheckoutSummary, completions: Completions, settings: Settings, error, failure, notice
) -> None:
    gateway = RecordingGateway(error=error)
    orchestrator = PaymentOrchestrator(summary, completions, gateway=gateway, settings=settings)

    result = await orchestrator.submit_payment(PaymentMethod.CREDIT_CARD, VALID_CARD)

    assert result.outcome is PaymentOutcome.FAILED
    assert result.failure == failure
    assert orchestrator.notifier.last.key == notice
    assert orchestrator.state is PaymentState.IDLE
    assert completions.results == []

    gateway.error = None
    assert (await orchestrator.submit_payment(PaymentMethod.CREDIT_CARD, VALID_CARD)).succeeded


@pytest.mark.asyncio
async def test_slow_gateway_times_out(summary: CheckoutSummary, completions: Completions, tmp_path) -> None:
    settings = Settings(data_dir=tmp_path, payment_timeout_seconds=0.02)
    orchestrator = PaymentOrchestrator(summary, completions, gateway=RecordingGateway(delay=1), settings=settings)

    result = await orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER)

    assert result.outcome is PaymentOutcome.FAILED
    assert result.failure == "payment_timeout"
    assert completions.results == []


@pytest.mark.asyncio
async def test_async_completion_callback_is_awaited(summary: CheckoutSummary, settings: Settings) -> None:
    seen: list[str] = []

    async def on_complete(result: PaymentResult) -> None:
        await asyncio.sleep(0)
        seen.append(result.reference)

    orchestrator = PaymentOrchestrator(summary, on_complete, gateway=RecordingGateway(), settings=settings)
    await orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER)

    assert seen == ["ref-1"]


@pytest.mark.asyncio
async def test_outcomes_are_counted(summary: CheckoutSummary, completions: Completions, settings: Settings) -> None:
    def _count(outcome: str) -> float:
        return REGISTRY.get_sample_value("vitrine_payments_total", {"method": "pix", "outcome": outcome}) or 0.0

    succeeded_before, failed_before = _count("succeeded"), _count("failed")

    declined = PaymentOrchestrator(
        summary, completions, gateway=RecordingGateway(PaymentDeclined("no")), settings=settings
    )
    await declined.submit_payment(PaymentMethod.INSTANT_TRANSFER)
    approved = PaymentOrchestrator(summary, completions, gateway=RecordingGateway(), settings=settings)
    await approved.submit_payment(PaymentMethod.INSTANT_TRANSFER)

    assert _count("failed") == failed_before + 1
    assert _count("succeeded") == succeeded_before + 1


@pytest.mark.asyncio
async def test_abandoned_submission_can_be_retried(
    summary: CheckoutSummary, completions: Completions, settings: Settings
) -> None:
    gateway = RecordingGateway(delay=0.05)
    orchestrator = PaymentOrchestrator(summary, completions, gateway=gateway, settings=settings)
    pending = asyncio.create_task(orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER))
    await _wait_until_processing(orchestrator)

    pending.cancel()
    with pytest.raises(asyncio.CancelledError):
        await pending

    assert orchestrator.state is PaymentState.IDLE
    result = await orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER)
    assert result.succeeded
    assert gateway.calls == 2
    assert completions.results == [result]


@pytest.mark.asyncio
async def test_failing_completion_callback_still_closes(summary: CheckoutSummary, settings: Settings) -> None:
    def on_complete(result: PaymentResult) -> None:
        raise RuntimeError("listing service unavailable")

    orchestrator = PaymentOrchestrator(summary, on_complete, gateway=RecordingGateway(), settings=settings)
    with pytest.raises(RuntimeError):
        await orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER)

    assert orchestrator.state is PaymentState.CLOSED
    retry = await orchestrator.submit_payment(PaymentMethod.INSTANT_TRANSFER)
    assert retry.outcome is PaymentOutcome.CANCELLED
