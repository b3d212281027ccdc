# backend/app/services/market_data/assets.py
"""
Registry of the crypto assets the tracker can price.

Each entry carries the provider-specific identifiers (CoinGecko id, Yahoo
symbol) and the static fallback quote used when no live or cached price
exists. Asset ids are the tracker's own lower-case identifiers and are what
investments store in `asset_id`.
"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class AssetInfo:
    """
    Static metadata for one supported asset.

    Attributes:
        asset_id: Tracker id (e.g., "bitcoin")
        name: Display name (e.g., "Bitcoin")
        symbol: Ticker symbol (e.g., "BTC")
        color: Hex color used by allocation charts
        coingecko_id: Id on CoinGecko (differs for "bnb")
        yahoo_symbol: Yahoo Finance pair symbol (e.g., "BTC-USD")
        fallback_price_usd: Price served when every source is down
        fallback_change_24h: 24h change (%) served with the fallback price
    """

    asset_id: str
    name: str
    symbol: str
    color: str
    coingecko_id: str
    yahoo_symbol: str
    fallback_price_usd: Decimal
    fallback_change_24h: Decimal


_ASSETS: tuple[AssetInfo, ...] = (
    AssetInfo(
        asset_id="bitcoin",
        name="Bitcoin",
        symbol="BTC",
        color="#F7931A",
        coingecko_id="bitcoin",
        yahoo_symbol="BTC-USD",
        fallback_price_usd=Decimal("45000"),
        fallback_change_24h=Decimal("0.5"),
    ),
    AssetInfo(
        asset_id="ethereum",
        name="Ethereum",
        symbol="ETH",
        color="#627EEA",
        coingecko_id="ethereum",
        yahoo_symbol="ETH-USD",
        fallback_price_usd=Decimal("3000"),
        fallback_change_24h=Decimal("1.2"),
    ),
    AssetInfo(
        asset_id="tether",
        name="Tether",
        symbol="USDT",
        color="#26A17B",
        coingecko_id="tether",
        yahoo_symbol="USDT-USD",
        fallback_price_usd=Decimal("1"),
        fallback_change_24h=Decimal("0"),
    ),
    AssetInfo(
        asset_id="bnb",
        name="BNB",
        symbol="BNB",
        color="#F0B90B",
        coingecko_id="binancecoin",
        yahoo_symbol="BNB-USD",
        fallback_price_usd=Decimal("350"),
        fallback_change_24h=Decimal("-0.5"),
    ),
    AssetInfo(
        asset_id="solana",
        name="Solana",
        symbol="SOL",
        color="#00FFA3",
        coingecko_id="solana",
        yahoo_symbol="SOL-USD",
        fallback_price_usd=Decimal("100"),
        fallback_change_24h=Decimal("2.5"),
    ),
    AssetInfo(
        asset_id="ripple",
        name="XRP",
        symbol="XRP",
        color="#23292F",
        coingecko_id="ripple",
        yahoo_symbol="XRP-USD",
        fallback_price_usd=Decimal("0.5"),
        fallback_change_24h=Decimal("-1.5"),
    ),
)

SUPPORTED_ASSETS: dict[str, AssetInfo] = {asset.asset_id: asset for asset in _ASSETS}


def normalize_asset_id(asset_id: str) -> str:
    return asset_id.strip().lower()


def get_asset(asset_id: str) -> AssetInfo | None:
    """Registry entry for an asset id (case-insensitive), or None."""
    return SUPPORTED_ASSETS.get(normalize_asset_id(asset_id))


def is_supported(asset_id: str) -> bool:
    return get_asset(asset_id) is not None


def list_supported_assets() -> list[AssetInfo]:
    """All supported assets in registry order."""
    return list(_ASSETS)
