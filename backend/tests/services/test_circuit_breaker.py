# tests/services/test_circuit_breaker.py
"""
Tests for the circuit breaker implementation.
"""

import threading
from unittest.mock import Mock

import pytest

from app.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
)
from tests.conftest import FakeClock


def _fail(breaker: CircuitBreaker, times: int = 1) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError):
            breaker.call(Mock(side_effect=RuntimeError("boom")))


class TestCircuitBreakerInit:
    """Tests for circuit breaker initialization."""

    def test_default_values(self):
        """Should initialize closed with the provider defaults."""
        breaker = CircuitBreaker(name="test")

        assert breaker.name == "test"
        assert breaker.failure_threshold == 3
        assert breaker.recovery_timeout == 30.0
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0

    def test_invalid_failure_threshold(self):
        """Should reject invalid failure threshold."""
        with pytest.raises(ValueError, match="failure_threshold must be at least 1"):
            CircuitBreaker(name="test", failure_threshold=0)

    def test_invalid_recovery_timeout(self):
        """Should reject negative recovery timeout."""
        with pytest.raises(ValueError, match="recovery_timeout cannot be negative"):
            CircuitBreaker(name="test", recovery_timeout=-1)


class TestCircuitBreakerClosed:
    """Tests for the closed state."""

    def test_allows_calls_when_closed(self):
        """Should pass calls through and return their result."""
        breaker = CircuitBreaker(name="test")
        func = Mock(return_value="ok")

        assert breaker.call(func, 1, key="v") == "ok"
        func.assert_called_once_with(1, key="v")

    def test_opens_after_threshold_consecutive_failures(self):
        """Should open after failure_threshold consecutive failures."""
        breaker = CircuitBreaker(name="test", failure_threshold=3)

        _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

        _fail(breaker, 1)
        assert breaker.state == CircuitState.OPEN
        assert breaker.is_open

    def test_success_resets_failure_count(self):
        """A success in between should reset the consecutive count."""
        breaker = CircuitBreaker(name="test", failure_threshold=3)

        _fail(breaker, 2)
        breaker.call(Mock(return_value=1))
        _fail(breaker, 2)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 2

    def test_excluded_exceptions_dont_trip_circuit(self):
        """Excluded exception types should propagate without counting."""
        breaker = CircuitBreaker(name="test", failure_threshold=1, excluded_exceptions=(KeyError,))

        with pytest.raises(KeyError):
            breaker.call(Mock(side_effect=KeyError("missing")))

        assert breaker.state == CircuitState.CLOSED

    def test_context_manager_records_failure(self):
        """Exceptions raised inside the with block should count."""
        breaker = CircuitBreaker(name="test", failure_threshold=1)

        with pytest.raises(ValueError):
            with breaker:
                raise ValueError("bad payload")

        assert breaker.is_open


class TestCircuitBreakerOpen:
    """Tests for the open and half-open states."""

    def test_rejects_calls_when_open(self):
        """Should raise CircuitBreakerOpen without calling the function."""
        clock = FakeClock()
        breaker = CircuitBreaker(name="prices", failure_threshold=1, recovery_timeout=30, clock=clock)
        _fail(breaker)

        func = Mock()
        with pytest.raises(CircuitBreakerOpen) as exc_info:
            breaker.call(func)

        func.assert_not_called()
        assert exc_info.value.breaker_name == "prices"
        assert exc_info.value.time_remaining == pytest.approx(30.0)
        assert breaker.rejected_calls == 1

    def test_transitions_to_half_open_after_timeout(self):
        """Should move to HALF_OPEN once the recovery window has elapsed."""
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30, clock=clock)
        _fail(breaker)

        clock.advance(29)
        assert breaker.state == CircuitState.OPEN

        clock.advance(1)
        assert breaker.state == CircuitState.HALF_OPEN

    def test_closes_on_success_in_half_open(self):
        """A successful probe should close the circuit."""
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30, clock=clock)
        _fail(breaker)
        clock.advance(30)

        assert breaker.call(Mock(return_value="recovered")) == "recovered"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0

    def test_reopens_on_failure_in_half_open(self):
        """A failed probe should re-open for a full recovery window."""
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=3, recovery_timeout=30, clock=clock)
        _fail(breaker, 3)
        clock.advance(30)

        _fail(breaker)

        assert breaker.state == CircuitState.OPEN
        clock.advance(29)
        assert breaker.state == CircuitState.OPEN

    def test_only_one_probe_in_half_open(self):
        """While a probe is in flight, other calls are rejected."""
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30, clock=clock)
        _fail(breaker)
        clock.advance(30)

        with breaker:
            with pytest.raises(CircuitBreakerOpen):
                breaker.call(Mock())

        assert breaker.state == CircuitState.CLOSED

    def test_manual_reset(self):
        """reset() should close an open circuit."""
        breaker = CircuitBreaker(name="test", failure_threshold=1)
        _fail(breaker)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.call(Mock(return_value=5)) == 5


class TestCircuitBreakerThreadSafety:
    """Tests for concurrent use."""

    def test_concurrent_failures_open_once(self):
        """Concurrent failures should leave the breaker open and consistent."""
        breaker = CircuitBreaker(name="test", failure_threshold=5, recovery_timeout=60)
        errors: list[BaseException] = []

        def worker():
            for _ in range(10):
                try:
                    breaker.call(Mock(side_effect=RuntimeError("boom")))
                except (RuntimeError, CircuitBreakerOpen) as e:
                    errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 40
        assert breaker.is_open
        assert breaker.rejected_calls == sum(isinstance(e, CircuitBreakerOpen) for e in errors)
