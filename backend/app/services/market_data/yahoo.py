# backend/app/services/market_data/yahoo.py
"""
Yahoo Finance crypto spot price source.

Implements PriceSource with the yfinance library. Crypto pairs trade as
"<SYMBOL>-USD" (e.g., "BTC-USD"); the registry holds the symbol for each
tracker asset. All requested symbols are grouped in a single yf.Tickers()
object.

Prices come from the last few daily bars of each pair. Crypto trades around
the clock, so the bar for today moves with the market: its close is the
current price and the previous bar's close is the price 24 hours ago.

Every history() request carries the configured timeout, so a hung Yahoo
endpoint costs at most `timeout` seconds per pair.

Limitations:
- Unofficial API, undocumented rate limits
- Some pairs (stablecoins) occasionally report a single bar only
"""

import logging
from decimal import Decimal
from typing import Any

import yfinance as yf

from app.services.exceptions import ProviderUnavailableError, RateLimitError
from app.services.market_data.assets import SUPPORTED_ASSETS
from app.services.market_data.base import PriceSource, SpotPrice, to_decimal

logger = logging.getLogger(__name__)

# Enough daily bars to always hold today and yesterday
HISTORY_PERIOD = "5d"


class YahooCryptoPriceSource(PriceSource):
    """
    Yahoo Finance implementation of PriceSource.

    Retry Behavior (inherited from PriceSource):
        - Retries on ProviderUnavailableError and RateLimitError
        - Per-symbol failures are skipped, not retried; PriceCache fills the gaps
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout
        logger.info(f"YahooCryptoPriceSource initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    def fetch_prices(self, asset_ids: list[str]) -> dict[str, SpotPrice]:
        if not asset_ids:
            return {}
        return self._execute_with_retry(self._fetch_prices, asset_ids)

    def _fetch_prices(self, asset_ids: list[str]) -> dict[str, SpotPrice]:
        """Internal batch fetch (called by retry wrapper)."""
        symbol_map = {
            SUPPORTED_ASSETS[asset_id].yahoo_symbol: asset_id
            for asset_id in asset_ids
            if asset_id in SUPPORTED_ASSETS
        }
        if not symbol_map:
            return {}

        symbols = sorted(symbol_map)
        logger.debug(f"Fetching Yahoo spot prices for {symbols}")

        try:
            yf_tickers = yf.Tickers(" ".join(symbols))
        except Exception as e:
            raise self._map_error(e)

        prices: dict[str, SpotPrice] = {}
        for symbol in symbols:
            asset_id = symbol_map[symbol]
            yf_ticker = yf_tickers.tickers.get(symbol)
            if yf_ticker is None:
                logger.debug(f"Yahoo returned no ticker for {symbol}")
                continue

            try:
                df = yf_ticker.history(
                    period=HISTORY_PERIOD,
                    interval="1d",
                    timeout=self._timeout,
                    raise_errors=True,
                )
                spot = self._to_spot_price(asset_id, df)
            except Exception as e:
                mapped = self._map_error(e)
                if isinstance(mapped, RateLimitError):
                    raise mapped
                logger.warning(f"Yahoo price lookup failed for {symbol}: {e}")
                continue

            if spot is not None:
                prices[asset_id] = spot

        return prices

    def _to_spot_price(self, asset_id: str, df: Any) -> SpotPrice | None:
        """Spot price from daily bars: last close, change against the bar before."""
        if df is None or df.empty:
            return None

        parsed = (to_decimal(value) for value in df["Close"].tolist())
        closes = [close for close in parsed if close is not None and close > 0]
        if not closes:
            return None

        last = closes[-1]
        if len(closes) < 2:
            change = Decimal("0")
        else:
            previous = closes[-2]
            change = (last - previous) / previous * Decimal("100")

        return SpotPrice(asset_id=asset_id, price_usd=last, change_24h=change)

    def _map_error(self, error: Exception) -> ProviderUnavailableError | RateLimitError:
        error_str = str(error).lower()
        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)
        return ProviderUnavailableError(provider=self.name, reason=str(error))
