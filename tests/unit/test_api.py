"""Unit tests for the invoice parsing API.

Tests cover:
- Health check endpoints
- Parse responses (camelCase draft, optional warning)
- Error mapping to {"error": ...} bodies and status codes
- Rate limiting and bearer-token auth
- Prometheus metrics endpoint
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from magic_invoice.api import main
from magic_invoice.api.auth import StaticTokenVerifier
from magic_invoice.models.base import CompletionResult, ModelProvider
from magic_invoice.parsing.errors import UNREADABLE_RESPONSE_WARNING
from magic_invoice.parsing.pipeline import InvoiceParsePipeline
from magic_invoice.ratelimit.limiter import RateLimiter
from magic_invoice.shared.config import Settings

MODEL_REPLY = json.dumps(
    {
        "invoiceNumber": "INV-42",
        "dueDate": "March 5",
        "to": {"name": "Jane Doe", "company": "Acme"},
        "lines": [{"description": "Strategy session", "quantity": 2, "rate": 850}],
        "notes": "Thanks!",
    }
)


@pytest.fixture
def provider() -> MagicMock:
    provider = MagicMock(spec=ModelProvider)
    provider.is_available.return_value = True
    provider.generate_json.return_value = CompletionResult(
        text=MODEL_REPLY, success=True, provider="stub"
    )
    return provider


@pytest.fixture(autouse=True)
def wiring(monkeypatch: pytest.MonkeyPatch, provider: MagicMock) -> None:
    """Isolate each test from environment config and shared limiter state."""
    settings = Settings(_env_file=None)
    monkeypatch.setattr(main, "model_provider", provider)
    monkeypatch.setattr(main, "pipeline", InvoiceParsePipeline(settings, provider))
    monkeypatch.setattr(main, "rate_limiter", RateLimiter(max_requests=100, window_seconds=60))
    monkeypatch.setattr(main, "token_verifier", StaticTokenVerifier([]))


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(main.app)


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == main.settings.service_name
    assert "version" in data


def test_readiness_reports_model_configuration(client: TestClient, provider: MagicMock) -> None:
    assert client.get("/ready").json() == {"ready": True, "model_configured": True}

    provider.is_available.return_value = False
    assert client.get("/ready").json() == {"ready": True, "model_configured": False}


def test_parse_returns_camel_case_draft(client: TestClient) -> None:
    response = client.post(
        "/api/parse",
        json={
            "prompt": "Invoice Jane Doe, for 2 x strategy sessions @ $850, due by March 5",
            "defaults": {"currency": "EUR", "from": {"name": "Sam", "addressLine1": "1 Main St"}},
        },
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert "warning" not in data

    invoice = data["invoice"]
    assert invoice["invoiceNumber"] == "INV-42"
    assert invoice["dueDate"] == "March 5"
    assert invoice["currency"] == "EUR"
    assert invoice["from"]["name"] == "Sam"
    assert invoice["from"]["addressLine1"] == "1 Main St"
    assert invoice["to"]["company"] == "Acme"
    assert invoice["taxRate"] == 0
    assert invoice["customCharges"] == []
    assert "issuedOn" in invoice
    assert invoice["lines"] == [
        {"id": "1", "description": "Strategy session", "quantity": 2, "rate": 850.0}
    ]
    assert data["totals"] == {
        "subtotal": 1700.0,
        "chargesTotal": 0.0,
        "taxAmount": 0.0,
        "total": 1700.0,
    }


def test_empty_prompt_returns_default_draft(client: TestClient, provider: MagicMock) -> None:
    response = client.post("/api/parse", json={"prompt": "   "})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert "warning" not in data
    assert data["invoice"]["lines"][0]["description"] == "Services rendered"
    provider.generate_json.assert_not_called()


def test_unreadable_reply_returns_warning(client: TestClient, provider: MagicMock) -> None:
    provider.generate_json.return_value = CompletionResult(
        text="not json", success=True, provider="stub"
    )

    response = client.post("/api/parse", json={"prompt": "Invoice to Jane Doe, 1 x audit @ $99"})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["warning"] == UNREADABLE_RESPONSE_WARNING
    assert data["invoice"]["to"]["name"] == "Jane Doe"
    assert data["invoice"]["lines"][0]["rate"] == 99.0


def test_prompt_too_long(client: TestClient, provider: MagicMock) -> None:
    response = client.post("/api/parse", json={"prompt": "a" * 2001})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Prompt is too long."}
    provider.generate_json.assert_not_called()


@pytest.mark.parametrize(
    "body",
    ["not json", json.dumps({"prompt": 42}), json.dumps({"defaults": {"taxRate": "lots"}})],
)
def test_invalid_payload(client: TestClient, body: str) -> None:
    response = client.post(
        "/api/parse", content=body, headers={"Content-Type": "application/json"}
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Invalid JSON payload."}


def test_model_not_configured(client: TestClient, provider: MagicMock) -> None:
    provider.is_available.return_value = False

    response = client.post("/api/parse", json={"prompt": "1 x audit @ $99"})

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert "error" in response.json()


def test_model_transport_failure(client: TestClient, provider: MagicMock) -> None:
    provider.generate_json.return_value = CompletionResult(
        text=None, success=False, error="timed out", provider="stub"
    )

    response = client.post("/api/parse", json={"prompt": "1 x audit @ $99"})

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert response.json() == {"error": "The model could not generate the invoice."}


def test_rate_limited(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "rate_limiter", RateLimiter(max_requests=1, window_seconds=60))
    headers = {"x-forwarded-for": "203.0.113.7"}

    first = client.post("/api/parse", json={"prompt": ""}, headers=headers)
    second = client.post("/api/parse", json={"prompt": ""}, headers=headers)
    other_client = client.post("/api/parse", json={"prompt": ""}, headers={"x-real-ip": "1.2.3.4"})

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert "error" in second.json()
    assert 1 <= int(second.headers["Retry-After"]) <= 60
    assert other_client.status_code == status.HTTP_200_OK


def test_malformed_bodies_count_against_rate_limit(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(main, "rate_limiter", RateLimiter(max_requests=1, window_seconds=60))

    codes = [
        client.post(
            "/api/parse", content="{bad", headers={"Content-Type": "application/json"}
        ).status_code
        for _ in range(3)
    ]

    assert codes == [
        status.HTTP_400_BAD_REQUEST,
        status.HTTP_429_TOO_MANY_REQUESTS,
        status.HTTP_429_TOO_MANY_REQUESTS,
    ]


class TestAuthentication:
    @pytest.fixture(autouse=True)
    def require_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(main, "token_verifier", StaticTokenVerifier(["s3cret"]))

    def test_missing_token(self, client: TestClient) -> None:
        response = client.post("/api/parse", json={"prompt": ""})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert "error" in response.json()

    def test_wrong_token(self, client: TestClient) -> None:
        response = client.post(
            "/api/parse", json={"prompt": ""}, headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_valid_token(self, client: TestClient) -> None:
        response = client.post(
            "/api/parse", json={"prompt": ""}, headers={"Authorization": "Bearer s3cret"}
        )

        assert response.status_code == status.HTTP_200_OK

    def test_malformed_body_without_token(self, client: TestClient) -> None:
        response = client.post(
            "/api/parse", content="{bad", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_malformed_body_with_valid_token(self, client: TestClient) -> None:
        response = client.post(
            "/api/parse",
            content="{bad",
            headers={"Content-Type": "application/json", "Authorization": "Bearer s3cret"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Invalid JSON payload."}


def test_metrics_endpoint(client: TestClient) -> None:
    client.post("/api/parse", json={"prompt": ""})

    response = client.get("/metrics")

    assert response.status_code == status.HTTP_200_OK
    assert b"invoice_parse_requests_total" in response.content
    assert b"http_requests_total" in response.content
