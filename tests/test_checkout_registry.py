from vitrine.api.dependencies.checkout import CheckoutRegistry
from vitrine.core.plans import Plan, build_summary
from vitrine.services.payments import PaymentOrchestrator, PaymentState


def _processing_payment(plan: Plan) -> PaymentOrchestrator:
    orchestrator = PaymentOrchestrator(build_summary(plan, "3dias"), lambda result: None)
    orchestrator.state = PaymentState.PROCESSING
    return orchestrator


def test_flows_are_reused_per_owner() -> None:
    registry = CheckoutRegistry(capacity=5)

    assert registry.get("reuse-a") is registry.get("reuse-a")
    assert len(registry) == 1


def test_least_recently_used_flow_is_evicted() -> None:
    registry = CheckoutRegistry(capacity=2)
    registry.get("lru-a")
    registry.get("lru-b")
    registry.get("lru-a")

    registry.get("lru-c")

    assert "lru-b" not in registry
    assert "lru-a" in registry
    assert "lru-c" in registry
    assert len(registry) == 2


def test_flows_with_payment_in_flight_are_kept(safira: Plan) -> None:
    registry = CheckoutRegistry(capacity=1)
    registry.get("busy-a").payment = _processing_payment(safira)

    registry.get("busy-b")

    assert "busy-a" in registry
    assert "busy-b" in registry


def test_discard_closes_payment_step(safira: Plan) -> None:
    registry = CheckoutRegistry(capacity=5)
    payment = PaymentOrchestrator(build_summary(safira, "3dias"), lambda result: None)
    registry.get("closing-a").payment = payment

    registry.discard("closing-a")
    registry.discard("closing-a")

    assert "closing-a" not in registry
    assert payment.state is PaymentState.CLOSED
