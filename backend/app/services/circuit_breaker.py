# backend/app/services/circuit_breaker.py
"""
Circuit breaker guarding calls to external price and FX providers.

After `failure_threshold` consecutive failures the breaker opens and
every call is rejected with CircuitBreakerOpen until `recovery_timeout`
seconds have passed. The next call is then let through as a probe
(HALF_OPEN): success closes the circuit, failure re-opens it for another
full recovery window.

States:
    CLOSED    - calls pass through, failures are counted
    OPEN      - calls rejected immediately
    HALF_OPEN - one probe call in flight decides the next state

Usage:
    breaker = CircuitBreaker(name="coingecko", failure_threshold=3, recovery_timeout=30)

    try:
        with breaker:
            prices = source.fetch_prices(ids)
    except CircuitBreakerOpen:
        prices = None  # caller degrades to cached/fallback data
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    The guarded provider is being skipped.

    Attributes:
        breaker_name: Name of the circuit breaker
        time_remaining: Seconds until a probe call will be allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


@dataclass
class CircuitBreaker:
    """
    Thread-safe consecutive-failure circuit breaker.

    Attributes:
        name: Identifier used in logs and CircuitBreakerOpen
        failure_threshold: Consecutive failures that open the circuit
        recovery_timeout: Seconds the circuit stays open before a probe
        excluded_exceptions: Exception types that do not count as failures
        clock: Monotonic time source, replaceable in tests
    """

    name: str
    failure_threshold: int = 3
    recovery_timeout: float = 30.0
    excluded_exceptions: tuple[type[Exception], ...] = field(default_factory=tuple)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _probe_in_flight: bool = field(default=False, init=False)
    _rejected_calls: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._advance()
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    @property
    def rejected_calls(self) -> int:
        with self._lock:
            return self._rejected_calls

    def _advance(self) -> None:
        """OPEN -> HALF_OPEN once the recovery window has elapsed. Lock held."""
        if self._state == CircuitState.OPEN and self._time_until_recovery() <= 0:
            self._set_state(CircuitState.HALF_OPEN)
            self._probe_in_flight = False

    def _set_state(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        logger.info(
            f"CircuitBreaker '{self.name}' state change: "
            f"{self._state.value} -> {new_state.value}"
        )
        self._state = new_state

    def _time_until_recovery(self) -> float:
        return max(0.0, self.recovery_timeout - (self.clock() - self._opened_at))

    def _open(self) -> None:
        self._opened_at = self.clock()
        self._set_state(CircuitState.OPEN)

    # =========================================================================
    # GUARD
    # =========================================================================

    def __enter__(self) -> "CircuitBreaker":
        with self._lock:
            self._advance()

            if self._state == CircuitState.OPEN or (
                self._state == CircuitState.HALF_OPEN and self._probe_in_flight
            ):
                self._rejected_calls += 1
                raise CircuitBreakerOpen(self.name, self._time_until_recovery())

            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = True

        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        with self._lock:
            failed = exc_val is not None and not (
                self.excluded_exceptions and isinstance(exc_val, self.excluded_exceptions)
            )

            if not failed:
                self._consecutive_failures = 0
                self._probe_in_flight = False
                self._set_state(CircuitState.CLOSED)
                return False

            self._consecutive_failures += 1
            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False
                self._open()
            elif self._consecutive_failures >= self.failure_threshold:
                logger.warning(
                    f"CircuitBreaker '{self.name}' opening after "
                    f"{self._consecutive_failures} consecutive failures"
                )
                self._open()

        return False

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run func under the breaker. Raises CircuitBreakerOpen when open."""
        with self:
            return func(*args, **kwargs)

    def reset(self) -> None:
        """Close the circuit and forget past failures."""
        with self._lock:
            self._consecutive_failures = 0
            self._probe_in_flight = False
            self._set_state(CircuitState.CLOSED)
