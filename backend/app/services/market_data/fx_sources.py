# backend/app/services/market_data/fx_sources.py
"""
USD-based exchange rate table sources.

Both supported services publish a "latest" table in the same shape:

    {"base": "USD", "rates": {"EUR": 0.92, "GBP": 0.79, ...}, ...}

Rates follow the convention "1 USD = X currency". The base currency
itself is not always listed (Frankfurter omits it), so every table is
returned with USD = 1 added.

Sources:
    ExchangeRateApiSource - exchangerate-api.com v4, covers PKR
    FrankfurterSource     - ECB reference rates, no PKR
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable, TypeVar

import httpx

from app.services.constants import (
    BASE_CURRENCY,
    FX_PROVIDER_RETRY_ATTEMPTS,
    PROVIDER_RETRY_WAIT_MAX,
    PROVIDER_RETRY_WAIT_MIN,
)
from app.services.exceptions import FXProviderError
from app.services.market_data.base import execute_with_retry, to_decimal

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RateTableSource(ABC):
    """
    Abstract source of a USD-based rate table.

    fetch_rates() returns {currency_code: units per 1 USD} with upper-case
    codes and strictly positive Decimal rates, or raises FXProviderError.
    """

    MAX_RETRY_ATTEMPTS: int = FX_PROVIDER_RETRY_ATTEMPTS
    RETRY_MIN_WAIT: float = PROVIDER_RETRY_WAIT_MIN
    RETRY_MAX_WAIT: float = PROVIDER_RETRY_WAIT_MAX

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def fetch_rates(self) -> dict[str, Decimal]:
        pass

    def _execute_with_retry(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return execute_with_retry(
            func,
            *args,
            attempts=self.MAX_RETRY_ATTEMPTS,
            min_wait=self.RETRY_MIN_WAIT,
            max_wait=self.RETRY_MAX_WAIT,
            retry_on=(FXProviderError,),
            **kwargs,
        )


class HttpRateTableSource(RateTableSource):
    """
    Rate table fetched as JSON from a single URL.

    Subclasses set the provider name and the default URL; parsing is shared
    because both services use the {"base", "rates"} layout.
    """

    DEFAULT_URL: str = ""

    def __init__(
            self,
            url: str | None = None,
            timeout: float = 5.0,
            client: httpx.Client | None = None,
    ) -> None:
        self._url = url or self.DEFAULT_URL
        self._client = client or httpx.Client(timeout=timeout)

    def fetch_rates(self) -> dict[str, Decimal]:
        return self._execute_with_retry(self._fetch_rates)

    def close(self) -> None:
        self._client.close()

    def _fetch_rates(self) -> dict[str, Decimal]:
        try:
            response = self._client.get(self._url)
        except httpx.HTTPError as e:
            raise FXProviderError(provider=self.name, reason=str(e) or type(e).__name__)

        if response.status_code != 200:
            raise FXProviderError(provider=self.name, reason=f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise FXProviderError(provider=self.name, reason=f"invalid JSON: {e}")

        return self._parse(payload)

    def _parse(self, payload: Any) -> dict[str, Decimal]:
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise FXProviderError(provider=self.name, reason="missing 'rates' table")

        base = str(payload.get("base", BASE_CURRENCY)).upper()
        if base != BASE_CURRENCY:
            raise FXProviderError(provider=self.name, reason=f"unexpected base currency {base}")

        rates: dict[str, Decimal] = {}
        for code, value in payload["rates"].items():
            rate = to_decimal(value)
            if rate is None or rate <= 0:
                logger.debug(f"{self.name}: skipping unusable rate {code}={value!r}")
                continue
            rates[str(code).upper()] = rate

        if not rates:
            raise FXProviderError(provider=self.name, reason="empty rate table")

        rates[BASE_CURRENCY] = Decimal("1")
        return rates


class ExchangeRateApiSource(HttpRateTableSource):
    """exchangerate-api.com v4 "latest" table (no API key needed)."""

    DEFAULT_URL = "https://api.exchangerate-api.com/v4/latest/USD"

    @property
    def name(self) -> str:
        return "exchangerate-api"


class FrankfurterSource(HttpRateTableSource):
    """Frankfurter (ECB reference rates). Publishes on business days only."""

    DEFAULT_URL = "https://api.frankfurter.app/latest?from=USD"

    @property
    def name(self) -> str:
        return "frankfurter"
