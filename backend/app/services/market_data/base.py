# backend/app/services/market_data/base.py
"""
Abstract interface for crypto spot price sources.

A price source answers one question: "what are the current USD prices and
24h changes for these assets?" in a single batched call. Everything else
(caching, conversion into the user's currency, fallback when the source is
down) belongs to PriceCache.

Design Principles:
- Sources raise domain exceptions (MarketDataError subclasses), never
  library-specific ones
- Retry with exponential backoff is implemented once here (tenacity)
- New sources plug in without touching the cache or valuation code
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.services.constants import (
    MAX_MARKET_VALUE,
    PRICE_PROVIDER_RETRY_ATTEMPTS,
    PROVIDER_RETRY_WAIT_MAX,
    PROVIDER_RETRY_WAIT_MIN,
)
from app.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class SpotPrice:
    """
    Raw USD quote for one asset as returned by a price source.

    Attributes:
        asset_id: Tracker asset id (not the provider's id)
        price_usd: Last traded price in USD
        change_24h: Percent change over the last 24 hours
    """

    asset_id: str
    price_usd: Decimal
    change_24h: Decimal

    def __post_init__(self) -> None:
        if not self.price_usd.is_finite() or self.price_usd <= 0:
            raise ValueError(f"price_usd must be a positive finite number, got {self.price_usd}")


class QuoteSource(str, Enum):
    """Where a PriceQuote came from."""
    LIVE = "live"          # fetched from the provider for this request
    CACHE = "cache"        # fresh cache hit
    STALE = "stale"        # expired cache entry served because the provider failed
    FALLBACK = "fallback"  # static registry price


@dataclass(frozen=True)
class PriceQuote:
    """
    Price of one asset expressed in a quote currency.

    Attributes:
        asset_id: Tracker asset id
        price_usd: Price in USD
        price: Price in quote_currency (equals price_usd for USD)
        quote_currency: ISO 4217 code the price is expressed in
        change_24h: Percent change over 24 hours
        fetched_at: When the underlying USD price was obtained (UTC)
        source: Provenance of the quote
    """

    asset_id: str
    price_usd: Decimal
    price: Decimal
    quote_currency: str
    change_24h: Decimal
    fetched_at: datetime
    source: QuoteSource

    @property
    def is_stale(self) -> bool:
        """True when the price is approximate (expired cache or static fallback)."""
        return self.source in (QuoteSource.STALE, QuoteSource.FALLBACK)


# =============================================================================
# RETRY HELPER
# =============================================================================

def execute_with_retry(
        func: Callable[..., T],
        *args: Any,
        attempts: int,
        min_wait: float,
        max_wait: float,
        retry_on: tuple[type[Exception], ...],
        **kwargs: Any,
) -> T:
    """
    Execute a function with exponential backoff on the given exception types.

    Any other exception propagates immediately. After the last attempt the
    original exception is re-raised (not tenacity's RetryError).
    """

    @retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _inner() -> T:
        return func(*args, **kwargs)

    return _inner()


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class PriceSource(ABC):
    """
    Abstract base class for spot price providers.

    Retry Behavior:
        `_execute_with_retry` retries ProviderUnavailableError and
        RateLimitError with exponential backoff. Subclasses tune it through
        class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 2)
        - RETRY_MIN_WAIT / RETRY_MAX_WAIT: Backoff bounds in seconds
    """

    MAX_RETRY_ATTEMPTS: int = PRICE_PROVIDER_RETRY_ATTEMPTS
    RETRY_MIN_WAIT: float = PROVIDER_RETRY_WAIT_MIN
    RETRY_MAX_WAIT: float = PROVIDER_RETRY_WAIT_MAX

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs, errors and circuit breaker names."""
        pass

    @abstractmethod
    def fetch_prices(self, asset_ids: list[str]) -> dict[str, SpotPrice]:
        """
        Fetch USD spot prices for the given tracker asset ids in one call.

        Assets the provider has no price for are omitted from the result;
        an empty dict is a valid (if useless) response.

        Raises:
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        return execute_with_retry(
            func,
            *args,
            attempts=self.MAX_RETRY_ATTEMPTS,
            min_wait=self.RETRY_MIN_WAIT,
            max_wait=self.RETRY_MAX_WAIT,
            retry_on=(ProviderUnavailableError, RateLimitError),
            **kwargs,
        )


# =============================================================================
# PARSING HELPER
# =============================================================================

def to_decimal(value: Any) -> Decimal | None:
    """
    Convert a provider number to Decimal.

    Returns None for null, booleans, NaN, infinities, unparsable values and
    magnitudes above MAX_MARKET_VALUE, so callers only ever see numbers
    that survive quantization.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation):
        return None
    if not result.is_finite() or abs(result) > MAX_MARKET_VALUE:
        return None
    return result
