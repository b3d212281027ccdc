# backend/app/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Supported asset registry and static fallback prices (assets.py)
- Abstract price source interface and quote types (base.py)
- CoinGecko and Yahoo Finance price sources (coingecko.py, yahoo.py)
- USD-based FX rate table sources (fx_sources.py)
- The batched, TTL-cached price lookup (price_cache.py)

Architecture:
    PriceSource (ABC)
    ├── CoinGeckoPriceSource
    └── YahooCryptoPriceSource

    RateTableSource (ABC)
    └── HttpRateTableSource
        ├── ExchangeRateApiSource
        └── FrankfurterSource

    PriceCache
    └── PriceSource behind a CircuitBreaker
    └── FXRateService for non-USD quotes
"""

from app.services.market_data.assets import (
    AssetInfo,
    SUPPORTED_ASSETS,
    get_asset,
    is_supported,
    list_supported_assets,
    normalize_asset_id,
)
from app.services.market_data.base import (
    PriceQuote,
    PriceSource,
    QuoteSource,
    SpotPrice,
)
from app.services.market_data.coingecko import CoinGeckoPriceSource
from app.services.market_data.fx_sources import (
    ExchangeRateApiSource,
    FrankfurterSource,
    HttpRateTableSource,
    RateTableSource,
)
from app.services.market_data.price_cache import PriceCache
from app.services.market_data.yahoo import YahooCryptoPriceSource

__all__ = [
    # Registry
    "AssetInfo",
    "SUPPORTED_ASSETS",
    "get_asset",
    "is_supported",
    "list_supported_assets",
    "normalize_asset_id",
    # Price sources
    "PriceSource",
    "SpotPrice",
    "PriceQuote",
    "QuoteSource",
    "CoinGeckoPriceSource",
    "YahooCryptoPriceSource",
    # FX sources
    "RateTableSource",
    "HttpRateTableSource",
    "ExchangeRateApiSource",
    "FrankfurterSource",
    # Cache
    "PriceCache",
]
