# tests/test_correlation_id.py
"""
Tests for correlation ID middleware, request context and log formatting.
"""

import json
import logging
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_NAME", "Test App")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.utils.context import (  # noqa: E402
    clear_correlation_id,
    clear_user_id,
    get_correlation_id,
    get_user_id,
    set_correlation_id,
    set_user_id,
)
from app.utils.logging import (  # noqa: E402
    ANONYMOUS_USER,
    NO_CORRELATION_ID,
    JsonFormatter,
    RequestContextFilter,
    _get_log_level,
)


class TestCorrelationIdContext:
    """Tests for correlation ID and user ID context functions."""

    def test_get_returns_none_when_not_set(self):
        """Should return None when correlation ID is not set."""
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_set_and_get_correlation_id(self):
        """Should set and retrieve correlation ID."""
        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"
        clear_correlation_id()

    def test_clear_correlation_id(self):
        """Should clear correlation ID."""
        set_correlation_id("test-correlation-456")
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_set_and_clear_user_id(self):
        set_user_id("user-42")
        assert get_user_id() == "user-42"
        clear_user_id()
        assert get_user_id() is None


class TestLogging:
    """Tests for the context filter and JSON formatter."""

    @staticmethod
    def make_record(message: str = "Serving stale prices") -> logging.LogRecord:
        return logging.LogRecord(
            name="app.test", level=logging.WARNING, pathname=__file__, lineno=1,
            msg=message, args=(), exc_info=None,
        )

    def test_filter_uses_placeholders_outside_request(self):
        clear_correlation_id()
        clear_user_id()
        record = self.make_record()

        assert RequestContextFilter().filter(record)
        assert record.correlation_id == NO_CORRELATION_ID
        assert record.user_id == ANONYMOUS_USER

    def test_json_output_carries_context(self):
        set_correlation_id("trace-1")
        set_user_id("user-42")
        record = self.make_record()
        RequestContextFilter().filter(record)
        clear_correlation_id()
        clear_user_id()

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["correlation_id"] == "trace-1"
        assert entry["user_id"] == "user-42"
        assert entry["message"] == "Serving stale prices"

    @pytest.mark.parametrize("name,level", [("debug", logging.DEBUG), (" WARN ", logging.WARNING)])
    def test_level_names(self, name, level):
        assert _get_log_level(name) == level

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            _get_log_level("LOUD")


class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    @pytest.fixture
    def client(self, db: Session):
        """Create test client with database override."""
        def override_get_db():
            try:
                yield db
            finally:
                pass

        app.dependency_overrides[get_db] = override_get_db

        with TestClient(app) as c:
            yield c

        app.dependency_overrides.clear()

    def test_generates_correlation_id_when_not_provided(self, client):
        """Should generate correlation ID when not provided in request."""
        response = client.get("/health/live")

        assert response.status_code == 200
        assert "X-Correlation-ID" in response.headers
        # Should be a valid UUID format
        correlation_id = response.headers["X-Correlation-ID"]
        assert len(correlation_id) == 36  # UUID length
        assert correlation_id.count("-") == 4  # UUID format

    def test_uses_provided_correlation_id(self, client):
        """Should use correlation ID from request header."""
        custom_id = "my-custom-trace-id-123"
        response = client.get(
            "/health/live",
            headers={"X-Correlation-ID": custom_id}
        )

        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"] == custom_id

    def test_uses_request_id_header_as_fallback(self, client):
        """Should use X-Request-ID header if X-Correlation-ID not provided."""
        custom_id = "my-request-id-456"
        response = client.get(
            "/health/live",
            headers={"X-Request-ID": custom_id}
        )

        assert response.headers["X-Correlation-ID"] == custom_id

    def test_prefers_correlation_id_over_request_id(self, client):
        """Should prefer X-Correlation-ID over X-Request-ID."""
        response = client.get(
            "/health/live",
            headers={
                "X-Correlation-ID": "correlation-123",
                "X-Request-ID": "request-456",
            }
        )

        assert response.headers["X-Correlation-ID"] == "correlation-123"

    def test_overlong_inbound_id_replaced(self, client):
        response = client.get("/health/live", headers={"X-Correlation-ID": "x" * 200})

        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_error_responses_carry_correlation_id(self, client):
        """401s from the identity check still echo the correlation ID."""
        response = client.get("/investments", headers={"X-Correlation-ID": "trace-401"})

        assert response.status_code == 401
        assert response.headers["X-Correlation-ID"] == "trace-401"

    def test_different_requests_get_different_ids(self, client):
        """Different requests should get different correlation IDs."""
        response1 = client.get("/health/live")
        response2 = client.get("/health/live")

        assert response1.headers["X-Correlation-ID"] != response2.headers["X-Correlation-ID"]
