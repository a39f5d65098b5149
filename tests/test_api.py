"""Integration checks for the HTTP surface."""

from __future__ import annotations

import time
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from vitrine.api.main import create_app
from vitrine.core.security import create_access_token
from vitrine.services.records import RecordsStore

VALID_CARD = {"number": "4111111111111111", "holder_name": "A", "expiry": "12/30", "cvc": "123"}


@pytest.fixture(scope="module")
def client() -> Iterator[TestClient]:
    app = create_app()
    records: RecordsStore = app.state.records
    records.upsert_plan({"id": "api-safira", "name": "Safira", "price": 30, "features": {"items": ["Destaque"]}})
    records.upsert_plan({"id": "api-gratis", "name": "Grátis", "price": 0})

    with TestClient(app) as test_client:
        deadline = time.monotonic() + 5
        while app.state.catalog.snapshot.is_empty and time.monotonic() < deadline:
            time.sleep(0.01)
        yield test_client


def _headers(owner_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': owner_id})}"}


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_rate_limiter_is_configured(client: TestClient) -> None:
    assert hasattr(client.app.state, "limiter")


def test_plans_are_listed_from_catalog(client: TestClient) -> None:
    response = client.get("/api/v1/plans")
    assert response.status_code == 200, response.text
    payload = response.json()
    plans = {plan["id"]: plan for plan in payload["plans"]}
    assert plans["api-gratis"]["price_label"] == "Grátis"
    assert plans["api-safira"]["features"] == ["Destaque"]
    assert plans["api-safira"]["color"] == "blue"
    assert payload["message"] is None


def test_free_plan_durations(client: TestClient) -> None:
    response = client.get("/api/v1/plans/api-gratis/durations")
    assert response.status_code == 200, response.text
    assert [(item["duration"]["id"], item["amount"]) for item in response.json()] == [("1dia", 0)]

    missing = client.get("/api/v1/plans/nope/durations")
    assert missing.status_code == 404
    assert missing.json()["kind"] == "unknown_plan"


def test_checkout_requires_sign_in(client: TestClient) -> None:
    response = client.get("/api/v1/checkout")
    assert response.status_code == 401
    body = response.json()
    assert body["kind"] == "auth_required"
    assert body["redirect"] == "/auth"


def test_checkout_flow_through_payment(client: TestClient) -> None:
    headers = _headers("buyer-1")

    response = client.post("/api/v1/checkout/plan", json={"plan_id": "api-safira"}, headers=headers)
    assert response.status_code == 200, response.text
    assert response.json()["state"] == "plan_chosen"

    response = client.post("/api/v1/checkout/duration", json={"duration_id": "3meses"}, headers=headers)
    state = response.json()
    assert state["accepted"] is True
    assert state["summary"]["amount"] == 240

    response = client.post("/api/v1/checkout/plan", json={"plan_id": "api-gratis"}, headers=headers)
    state = response.json()
    assert state["duration_id"] == "1dia"
    assert [item["id"] for item in state["available_durations"]] == ["1dia"]

    response = client.post("/api/v1/checkout/duration", json={"duration_id": "1mes"}, headers=headers)
    assert response.json()["accepted"] is False

    client.post("/api/v1/checkout/plan", json={"plan_id": "api-safira"}, headers=headers)
    client.post("/api/v1/checkout/duration", json={"duration_id": "15dias"}, headers=headers)
    response = client.post("/api/v1/checkout/continue", headers=headers)
    state = response.json()
    assert state["next_screen"] == "/verificacao"
    assert state["notices"][-1]["description"] == "Safira por 15 dias"

    pix = client.get("/api/v1/checkout/pix", headers=headers)
    assert pix.status_code == 200, pix.text
    assert pix.json()["validity_minutes"] == 30

    rejected = client.post(
        "/api/v1/checkout/payment",
        json={"method": "credit_card", "card": {**VALID_CARD, "number": "123"}},
        headers=headers,
    )
    assert rejected.status_code == 422
    assert rejected.json()["kind"] == "validation_error"
    assert "number" in rejected.json()["fields"]

    paid = client.post("/api/v1/checkout/payment", json={"method": "credit_card", "card": VALID_CARD}, headers=headers)
    assert paid.status_code == 200, paid.text
    result = paid.json()
    assert result["outcome"] == "succeeded"
    assert result["amount"] == 75
    assert result["notices"][-1]["key"] == "payment_approved"
    assert "buyer-1" not in client.app.state.checkouts
    assert client.app.state.checkouts.get("buyer-1").store.load() is None


def test_payment_without_confirmed_plan(client: TestClient) -> None:
    response = client.post("/api/v1/checkout/payment", json={"method": "pix"}, headers=_headers("buyer-2"))
    assert response.status_code == 404
    assert response.json()["kind"] == "unknown_plan"


def test_dismissing_payment_drops_checkout_flow(client: TestClient) -> None:
    headers = _headers("buyer-3")
    client.post("/api/v1/checkout/plan", json={"plan_id": "api-safira"}, headers=headers)
    client.post("/api/v1/checkout/continue", headers=headers)
    assert "buyer-3" in client.app.state.checkouts

    response = client.delete("/api/v1/checkout/payment", headers=headers)

    assert response.status_code == 204
    assert "buyer-3" not in client.app.state.checkouts
    resumed = client.get("/api/v1/checkout", headers=headers).json()
    assert resumed["plan_id"] == "api-safira"


def test_verification_requires_sign_in(client: TestClient) -> None:
    response = client.post(
        "/api/v1/verification",
        files={"front": ("front.jpg", b"front", "image/jpeg")},
    )
    assert response.status_code == 401
    assert response.json()["redirect"] == "/auth"


def test_verification_rejects_incomplete_documents(client: TestClient) -> None:
    response = client.post(
        "/api/v1/verification",
        files={
            "front": ("front.jpg", b"front", "image/jpeg"),
            "back": ("back.jpg", b"back", "image/jpeg"),
        },
        headers=_headers("seller-1"),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["kind"] == "incomplete_submission"
    assert body["missing"] == ["selfie"]
    assert body["notice"]["title"] == "Documentos incompletos"


def test_verification_submission_is_recorded(client: TestClient) -> None:
    response = client.post(
        "/api/v1/verification",
        files={
            "front": ("front.jpg", b"front", "image/jpeg"),
            "back": ("back.jpg", b"back", "image/jpeg"),
            "selfie": ("selfie.jpg", b"selfie", "image/jpeg"),
        },
        headers=_headers("seller-2"),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "pending"
    assert body["next_screen"] == "/dashboard"
    assert "verification/seller-2/selfie_" in body["document_selfie_url"]
    assert len(client.app.state.records.list_verifications("seller-2")) == 1
