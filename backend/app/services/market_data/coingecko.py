# backend/app/services/market_data/coingecko.py
"""
CoinGecko spot price source.

Uses the public `/simple/price` endpoint, which returns USD price and 24h
change for many coins in one request:

    GET /simple/price?ids=bitcoin,binancecoin&vs_currencies=usd&include_24hr_change=true

    {"bitcoin": {"usd": 43250.12, "usd_24h_change": 1.53}, ...}

CoinGecko ids differ from tracker ids for some coins ("bnb" is
"binancecoin"); the registry holds the mapping.
"""

import logging
from decimal import Decimal
from typing import Any

import httpx

from app.services.exceptions import ProviderUnavailableError, RateLimitError
from app.services.market_data.assets import SUPPORTED_ASSETS
from app.services.market_data.base import PriceSource, SpotPrice, to_decimal

logger = logging.getLogger(__name__)


class CoinGeckoPriceSource(PriceSource):
    """
    CoinGecko implementation of PriceSource.

    Configuration:
        base_url: API root (default public v3 API)
        timeout: Request timeout in seconds
        client: Optional pre-built httpx.Client (tests inject a MockTransport)

    Error mapping:
        - Timeouts, connection errors, 5xx, bad JSON -> ProviderUnavailableError
        - HTTP 429 -> RateLimitError (Retry-After honored in the message)
        - Other 4xx -> ProviderUnavailableError
    """

    def __init__(
            self,
            base_url: str = "https://api.coingecko.com/api/v3",
            timeout: float = 5.0,
            client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        logger.info(f"CoinGeckoPriceSource initialized (base_url={base_url}, timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "coingecko"

    def fetch_prices(self, asset_ids: list[str]) -> dict[str, SpotPrice]:
        if not asset_ids:
            return {}
        return self._execute_with_retry(self._fetch_prices, asset_ids)

    def close(self) -> None:
        self._client.close()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _fetch_prices(self, asset_ids: list[str]) -> dict[str, SpotPrice]:
        """Single HTTP round trip (called by the retry wrapper)."""
        id_map = {
            SUPPORTED_ASSETS[asset_id].coingecko_id: asset_id
            for asset_id in asset_ids
            if asset_id in SUPPORTED_ASSETS
        }
        if not id_map:
            return {}

        params = {
            "ids": ",".join(sorted(id_map)),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        payload = self._get_json("/simple/price", params)

        prices: dict[str, SpotPrice] = {}
        for coingecko_id, asset_id in id_map.items():
            entry = payload.get(coingecko_id)
            if not isinstance(entry, dict):
                logger.debug(f"CoinGecko returned no data for {coingecko_id}")
                continue

            price_usd = to_decimal(entry.get("usd"))
            if price_usd is None or price_usd <= 0:
                logger.debug(f"CoinGecko returned unusable price for {coingecko_id}: {entry}")
                continue

            change = to_decimal(entry.get("usd_24h_change")) or Decimal("0")
            prices[asset_id] = SpotPrice(asset_id=asset_id, price_usd=price_usd, change_24h=change)

        logger.debug(f"CoinGecko returned {len(prices)}/{len(id_map)} prices")
        return prices

    def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        try:
            response = self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(provider=self.name, reason=f"timeout: {e}")
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

        if response.status_code == 429:
            raise RateLimitError(provider=self.name, retry_after=self._retry_after(response))
        if response.status_code >= 400:
            raise ProviderUnavailableError(
                provider=self.name,
                reason=f"HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(provider=self.name, reason=f"invalid JSON: {e}")

        if not isinstance(payload, dict):
            raise ProviderUnavailableError(provider=self.name, reason="unexpected payload shape")
        return payload

    @staticmethod
    def _retry_after(response: httpx.Response) -> int | None:
        value = response.headers.get("Retry-After")
        if value and value.isdigit():
            return int(value)
        return None
