# backend/app/services/fx_rate_service.py
"""
FX Rate Service: current exchange rates with caching and fallback.

=============================================================================
FX RATE CONVENTION
=============================================================================

Every rate is held in one USD-based table:

    rates[C] = "1 USD = X units of C"

Example:
    rates["PKR"] = 280   ->  1 USD = 280 PKR
    rates["EUR"] = 0.92  ->  1 USD = 0.92 EUR

Cross rates go through USD:

    get_rate(EUR, PKR) = rates[PKR] / rates[EUR]
    convert(amount, EUR, PKR) = amount / rates[EUR] * rates[PKR]

The investment record's exchange_rate_at_purchase uses the same
convention (local units per 1 USD), so current_exchange_rate() can be
compared against it directly.

=============================================================================

Source chain (first success wins):
    1. primary rate table source (exchangerate-api.com)
    2. secondary rate table source (Frankfurter)
    3. STATIC_FX_RATES

Fetched tables are merged over STATIC_FX_RATES so currencies a source does
not publish keep their static value. The table is cached for
`ttl_seconds` and refreshed lazily on the first call after expiry.

Design Principles:
- Never raises to callers: degraded data beats a failed request
- No HTTP knowledge
- Decimal for all rates
"""

import logging
import threading
import time
from decimal import Decimal
from typing import Callable, Sequence

from app.services.constants import (
    BASE_CURRENCY,
    FX_FAILURE_RETRY_SECONDS,
    MAX_MARKET_VALUE,
    SHARE_PRECISION,
    STATIC_FX_RATES,
    ZERO,
)
from app.services.exceptions import FXRateError
from app.services.market_data.fx_sources import RateTableSource

logger = logging.getLogger(__name__)

STATIC_SOURCE_NAME = "static"


class FXRateService:
    """
    Service for current exchange rates.

    Thread-safe: the cached table is swapped under a lock; concurrent
    refreshes are last-writer-wins.

    Usage:
        service = FXRateService(
            sources=[ExchangeRateApiSource(), FrankfurterSource()],
            local_currency="PKR",
        )

        service.get_rate("USD", "PKR")              # Decimal("280")
        service.convert(Decimal("100"), "EUR", "GBP")
        service.current_exchange_rate()             # USD -> PKR
    """

    def __init__(
            self,
            sources: Sequence[RateTableSource] | None = None,
            ttl_seconds: int = 3600,
            local_currency: str = "PKR",
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            sources: Rate table sources in priority order (may be empty)
            ttl_seconds: Lifetime of a successfully fetched table
            local_currency: Currency returned by current_exchange_rate()
            clock: Monotonic time source, replaceable in tests
        """
        self._sources = list(sources or [])
        self._ttl = ttl_seconds
        self._local_currency = self._normalize(local_currency)
        self._clock = clock

        self._lock = threading.Lock()
        self._rates: dict[str, Decimal] | None = None
        self._rates_source: str = STATIC_SOURCE_NAME
        self._expires_at: float = 0.0

        logger.info(
            f"FXRateService initialized: sources={[s.name for s in self._sources]}, "
            f"ttl={ttl_seconds}s, local_currency={self._local_currency}"
        )

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def local_currency(self) -> str:
        return self._local_currency

    @property
    def rates_source(self) -> str:
        """Name of the source behind the current table ("static" if none)."""
        self._get_table()
        return self._rates_source

    def get_rates(self) -> dict[str, Decimal]:
        """Copy of the current USD-based rate table."""
        return dict(self._get_table())

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Units of to_currency per 1 unit of from_currency.

        Returns exactly 1 for identical currencies without touching any
        source. Unknown currencies log a warning and yield 1.
        """
        from_code = self._normalize(from_currency)
        to_code = self._normalize(to_currency)
        if from_code == to_code:
            return Decimal("1")

        table = self._get_table()
        from_rate = table.get(from_code)
        to_rate = table.get(to_code)
        if from_rate is None or to_rate is None:
            missing = from_code if from_rate is None else to_code
            logger.warning(
                f"No FX rate for {missing}; using 1 for {from_code}->{to_code}"
            )
            return Decimal("1")

        try:
            return (to_rate / from_rate).quantize(SHARE_PRECISION)
        except ArithmeticError:
            logger.warning(f"FX rate {from_code}->{to_code} out of range; using 1")
            return Decimal("1")

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """
        Convert amount via USD: amount -> USD -> target.

        Identical currencies return amount unchanged. Unknown currencies log
        a warning and return amount unconverted.
        """
        from_code = self._normalize(from_currency)
        to_code = self._normalize(to_currency)
        if from_code == to_code:
            return amount

        table = self._get_table()
        from_rate = table.get(from_code)
        to_rate = table.get(to_code)
        if from_rate is None or to_rate is None:
            missing = from_code if from_rate is None else to_code
            logger.warning(
                f"No FX rate for {missing}; returning {amount} {from_code} unconverted"
            )
            return amount

        try:
            return (amount / from_rate * to_rate).quantize(SHARE_PRECISION)
        except ArithmeticError:
            logger.warning(
                f"Conversion {from_code}->{to_code} out of range; returning {amount} unconverted"
            )
            return amount

    def current_exchange_rate(self) -> Decimal:
        """Local currency units per 1 USD."""
        return self.get_rate(BASE_CURRENCY, self._local_currency)

    def invalidate(self) -> None:
        """Force the next call to refetch the table."""
        with self._lock:
            self._expires_at = 0.0

    # =========================================================================
    # TABLE MANAGEMENT
    # =========================================================================

    def _get_table(self) -> dict[str, Decimal]:
        with self._lock:
            if self._rates is not None and self._clock() < self._expires_at:
                return self._rates
            previous = self._rates

        rates, source_name = self._fetch_table()

        if rates is None:
            # Every source failed: keep the last fetched table if there is
            # one, else the static table, and retry sooner than the full TTL
            rates = previous if previous is not None else dict(STATIC_FX_RATES)
            ttl = min(self._ttl, FX_FAILURE_RETRY_SECONDS)
            source_name = self._rates_source if previous is not None else STATIC_SOURCE_NAME
            logger.warning(
                f"All FX sources failed; serving {source_name} rates for {ttl}s"
            )
        else:
            ttl = self._ttl

        with self._lock:
            self._rates = rates
            self._rates_source = source_name
            self._expires_at = self._clock() + ttl
            return rates

    def _fetch_table(self) -> tuple[dict[str, Decimal] | None, str]:
        """Try each source in order. Returns (table, source name) or (None, "")."""
        for source in self._sources:
            try:
                fetched = source.fetch_rates()
            except FXRateError as e:
                logger.warning(f"FX source '{source.name}' failed: {e}")
                continue

            usable = {
                code: rate for code, rate in fetched.items()
                if rate.is_finite() and ZERO < rate <= MAX_MARKET_VALUE
            }
            if len(usable) < len(fetched):
                logger.warning(
                    f"FX source '{source.name}' sent unusable rates for "
                    f"{sorted(set(fetched) - set(usable))}"
                )

            merged = dict(STATIC_FX_RATES)
            merged.update(usable)
            merged[BASE_CURRENCY] = Decimal("1")
            logger.info(f"Loaded {len(usable)} FX rates from '{source.name}'")
            return merged, source.name

        return None, ""

    @staticmethod
    def _normalize(currency: str) -> str:
        return currency.strip().upper()
