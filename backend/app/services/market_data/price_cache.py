# backend/app/services/market_data/price_cache.py
"""
Price Cache: batched, TTL-cached crypto prices that never fail.

Lookup order for get_prices():
    1. Fresh cache entry for (quote currency, sorted asset ids) -> source "cache"
    2. One batched PriceSource call through the circuit breaker  -> source "live"
    3. Expired entry for the same key                           -> source "stale"
    4. Static registry price                                    -> source "fallback"

A live response that misses some assets has those gaps filled from the
registry. An empty live response counts as a provider failure. So do
prices that cannot be converted (non-finite or out of range).

Stale and fallback results are stored like live ones: during an outage the
provider is asked at most once per key and TTL, and cache hits on such an
entry keep their stale or fallback label.

Prices for a quote currency other than USD are the USD price multiplied
by FXRateService.get_rate("USD", quote).
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Protocol

from app.services.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from app.services.constants import (
    BASE_CURRENCY,
    CIRCUIT_BREAKER_FAILURE_THRESHOLD,
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
    MAX_MARKET_VALUE,
    PRICE_CACHE_MAX_ENTRIES,
    SHARE_PRECISION,
    ZERO,
)
from app.services.exceptions import MarketDataError, ProviderUnavailableError
from app.services.market_data.assets import SUPPORTED_ASSETS, normalize_asset_id
from app.services.market_data.base import PriceQuote, PriceSource, QuoteSource, SpotPrice

logger = logging.getLogger(__name__)

CacheKey = tuple[str, tuple[str, ...]]


class RateProvider(Protocol):
    """The slice of FXRateService the cache needs."""

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        ...


@dataclass
class _CacheEntry:
    stored_at: float
    quotes: dict[str, PriceQuote]


class PriceCache:
    """
    Thread-safe bounded TTL cache in front of a PriceSource.

    Expired entries are not evicted on read: they are the "last good"
    values served when the provider is down. The map is bounded by
    max_entries with least-recently-used eviction.
    """

    def __init__(
            self,
            source: PriceSource,
            fx_service: RateProvider,
            ttl_seconds: int = 60,
            max_entries: int = PRICE_CACHE_MAX_ENTRIES,
            breaker: CircuitBreaker | None = None,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._fx_service = fx_service
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._breaker = breaker or CircuitBreaker(
            name=f"price-{source.name}",
            failure_threshold=CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            recovery_timeout=CIRCUIT_BREAKER_RECOVERY_TIMEOUT,
        )

        self._entries: OrderedDict[CacheKey, _CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def source_name(self) -> str:
        return self._source.name

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def get_prices(
            self,
            asset_ids: Iterable[str],
            quote_currency: str = BASE_CURRENCY,
            force_refresh: bool = False,
    ) -> dict[str, PriceQuote]:
        """
        Quotes for every supported asset among asset_ids.

        Unsupported ids are dropped silently. Never raises for provider
        problems; degraded quotes are marked stale or fallback.
        """
        ids = self._normalize_ids(asset_ids)
        if not ids:
            return {}

        quote = quote_currency.strip().upper()
        key: CacheKey = (quote, ids)
        now = self._clock()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)

        if entry is not None and not force_refresh and now - entry.stored_at < self._ttl:
            logger.debug(f"Price cache hit for {quote} {list(ids)}")
            return self._relabel(entry.quotes, QuoteSource.CACHE)

        spots = self._fetch_live(list(ids))
        quotes = self._build_quotes(ids, spots, quote) if spots is not None else None

        if quotes is None:
            # Degraded results are cached for one TTL as well
            if entry is not None:
                logger.warning(f"Serving stale {quote} prices for {list(ids)}")
                quotes = self._relabel(entry.quotes, QuoteSource.STALE)
            else:
                logger.warning(f"Serving fallback {quote} prices for {list(ids)}")
                quotes = self._fallback_quotes(ids, quote)

        self._store(key, quotes)
        return quotes

    def invalidate(self) -> None:
        """Drop every cached entry, fresh or stale."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Price cache invalidated ({count} entries dropped)")

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _normalize_ids(asset_ids: Iterable[str]) -> tuple[str, ...]:
        normalized = {normalize_asset_id(asset_id) for asset_id in asset_ids if asset_id}
        return tuple(sorted(a for a in normalized if a in SUPPORTED_ASSETS))

    def _fetch_live(self, ids: list[str]) -> dict[str, SpotPrice] | None:
        """One guarded provider call. None means "treat as provider failure"."""
        try:
            with self._breaker:
                spots = self._source.fetch_prices(ids)
                if not spots:
                    raise ProviderUnavailableError(
                        provider=self._source.name,
                        reason="empty price response",
                    )
            return spots
        except CircuitBreakerOpen as e:
            logger.warning(f"Skipping price provider: {e}")
        except MarketDataError as e:
            logger.warning(f"Price provider failed: {e}")
        except Exception:
            logger.exception(f"Unexpected error from price provider '{self._source.name}'")
        return None

    def _usd_to(self, quote: str) -> Decimal:
        if quote == BASE_CURRENCY:
            return Decimal("1")
        rate = self._fx_service.get_rate(BASE_CURRENCY, quote)
        if not rate.is_finite() or not ZERO < rate <= MAX_MARKET_VALUE:
            logger.warning(f"Unusable USD->{quote} rate {rate}; quoting at 1")
            return Decimal("1")
        return rate

    def _build_quotes(
            self,
            ids: tuple[str, ...],
            spots: dict[str, SpotPrice],
            quote: str,
    ) -> dict[str, PriceQuote] | None:
        """Live quotes with gaps filled from the registry. None if the prices are unusable."""
        try:
            return self._convert_spots(ids, spots, quote)
        except ArithmeticError as e:
            logger.warning(f"Unusable prices from '{self._source.name}': {e!r}")
            return None

    def _convert_spots(
            self,
            ids: tuple[str, ...],
            spots: dict[str, SpotPrice],
            quote: str,
    ) -> dict[str, PriceQuote]:
        rate = self._usd_to(quote)
        fetched_at = datetime.now(timezone.utc)
        quotes: dict[str, PriceQuote] = {}
        missing: list[str] = []

        for asset_id in ids:
            spot = spots.get(asset_id)
            if spot is None:
                missing.append(asset_id)
                quotes[asset_id] = self._fallback_quote(asset_id, quote, rate, fetched_at)
                continue
            quotes[asset_id] = PriceQuote(
                asset_id=asset_id,
                price_usd=spot.price_usd,
                price=(spot.price_usd * rate).quantize(SHARE_PRECISION),
                quote_currency=quote,
                change_24h=spot.change_24h,
                fetched_at=fetched_at,
                source=QuoteSource.LIVE,
            )

        if missing:
            logger.warning(f"Provider '{self._source.name}' returned no price for {missing}; using fallback")
        return quotes

    def _fallback_quotes(self, ids: tuple[str, ...], quote: str) -> dict[str, PriceQuote]:
        rate = self._usd_to(quote)
        fetched_at = datetime.now(timezone.utc)
        return {asset_id: self._fallback_quote(asset_id, quote, rate, fetched_at) for asset_id in ids}

    @staticmethod
    def _fallback_quote(asset_id: str, quote: str, rate: Decimal, fetched_at: datetime) -> PriceQuote:
        asset = SUPPORTED_ASSETS[asset_id]
        return PriceQuote(
            asset_id=asset_id,
            price_usd=asset.fallback_price_usd,
            price=(asset.fallback_price_usd * rate).quantize(SHARE_PRECISION),
            quote_currency=quote,
            change_24h=asset.fallback_change_24h,
            fetched_at=fetched_at,
            source=QuoteSource.FALLBACK,
        )

    @staticmethod
    def _relabel(quotes: dict[str, PriceQuote], source: QuoteSource) -> dict[str, PriceQuote]:
        """Copy quotes with a new source label; degraded quotes keep theirs."""
        return {
            asset_id: q if q.is_stale else replace(q, source=source)
            for asset_id, q in quotes.items()
        }

    def _store(self, key: CacheKey, quotes: dict[str, PriceQuote]) -> None:
        with self._lock:
            self._entries[key] = _CacheEntry(stored_at=self._clock(), quotes=quotes)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Price cache evicted {evicted}")
