# tests/routers/test_error_handling.py
"""
Integration tests for error handling across the API.

These tests verify:
- Consistent error response format (ErrorDetail schema)
- Correct HTTP status codes for each service exception type
- Persistence and unexpected errors are not echoed to clients
- Correlation ID headers on error responses
"""

import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_NAME", "Test App")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.database import get_db  # noqa: E402
from app.dependencies import get_investment_service  # noqa: E402
from app.main import app  # noqa: E402
from app.services.exceptions import (  # noqa: E402
    ConcurrentModificationError,
    InvestmentNotFoundError,
    ServiceError,
    ValidationError,
)

USER = {"X-User-ID": "user-1"}


class RaisingService:
    """Stand-in InvestmentService whose read calls raise a configured error."""

    local_currency = "PKR"

    def __init__(self, error: Exception):
        self._error = error

    def list_enriched_investments(self, db, user_id):
        raise self._error

    def get_summary(self, db, user_id):
        raise self._error

    def sell_investment(self, db, user_id, investment_id, **kwargs):
        raise self._error


@pytest.fixture
def client_factory(db: Session):
    """Build a TestClient whose service raises the given error."""
    clients = []

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def factory(error: Exception) -> TestClient:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_investment_service] = lambda: RaisingService(error)
        client = TestClient(app, raise_server_exceptions=False)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()
    app.dependency_overrides.clear()


def assert_error_shape(body: dict) -> None:
    assert set(body) == {"error", "message", "details"}
    assert isinstance(body["error"], str)
    assert isinstance(body["message"], str)


class TestServiceExceptionMapping:
    """Each service exception family maps to one status code."""

    def test_validation_error_is_400(self, client_factory):
        client = client_factory(ValidationError("Sell price must be greater than zero", field="sell_price_local"))

        response = client.get("/investments", headers=USER)

        assert response.status_code == 400
        body = response.json()
        assert_error_shape(body)
        assert body["error"] == "ValidationError"
        assert body["details"] == {"field": "sell_price_local"}

    def test_not_found_is_404(self, client_factory):
        client = client_factory(InvestmentNotFoundError(42))

        response = client.get("/investments/summary", headers=USER)

        assert response.status_code == 404
        assert response.json()["details"] == {"resource_type": "Investment", "resource_id": 42}

    def test_concurrent_modification_is_409(self, client_factory):
        client = client_factory(ConcurrentModificationError(7))

        response = client.post(
            "/investments/7/sell",
            json={"sell_quantity": "0.001", "sell_price_local": "1"},
            headers=USER,
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "ConcurrentModificationError"
        assert "reload and retry" in body["message"]

    def test_generic_service_error_is_500(self, client_factory):
        client = client_factory(ServiceError("ledger unavailable"))

        response = client.get("/investments", headers=USER)

        assert response.status_code == 500
        assert response.json()["error"] == "ServiceError"


class TestUnexpectedErrors:
    """Errors whose details must not leak to clients."""

    def test_database_error_is_500_without_details(self, client_factory):
        client = client_factory(OperationalError("SELECT secret", {}, Exception("disk I/O error")))

        response = client.get("/investments", headers=USER)

        assert response.status_code == 500
        body = response.json()
        assert body == {
            "error": "DatabaseError",
            "message": "A database error occurred",
            "details": None,
        }

    def test_unhandled_exception_is_500(self, client_factory):
        client = client_factory(RuntimeError("boom"))

        response = client.get("/investments", headers=USER)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "InternalServerError"
        assert "boom" not in body["message"]


class TestHttpErrors:
    """Framework-level HTTP errors."""

    def test_method_not_allowed(self, client_factory):
        client = client_factory(RuntimeError("unused"))

        response = client.put("/investments/summary", headers=USER)

        assert response.status_code == 405

    def test_error_responses_include_correlation_id(self, client_factory):
        client = client_factory(InvestmentNotFoundError(1))

        response = client.get("/investments", headers={**USER, "X-Correlation-ID": "trace-404"})

        assert response.status_code == 404
        assert response.headers["X-Correlation-ID"] == "trace-404"
