# backend/app/schemas/investments.py
"""
Pydantic schemas for the investment portfolio API.

These schemas handle:
- Creating and selling investments (requests)
- Enriched investments with current valuation (responses)
- Portfolio summary: totals, breakdown, allocation, performers
- Batch prices, exchange rate and supported coin listings
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.validators import (
    normalize_tags,
    validate_asset_id,
    validate_transaction_date,
)
from app.services.constants import MAX_BATCH_ASSET_IDS, MAX_NOTES_LENGTH


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class InvestmentCreate(BaseModel):
    """Request body for recording a purchase."""

    asset_id: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Supported coin id (e.g., 'bitcoin')",
        examples=["bitcoin"],
    )
    invested_amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Amount paid in the local currency",
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units of the coin bought",
    )
    purchase_date: dt.date = Field(
        default_factory=dt.date.today,
        description="Date of purchase (defaults to today)",
    )
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    tags: list[str] = Field(default_factory=list)

    @field_validator('asset_id')
    @classmethod
    def normalize_asset_id(cls, v: str) -> str:
        return validate_asset_id(v)

    @field_validator('purchase_date')
    @classmethod
    def validate_purchase_date(cls, v: dt.date) -> dt.date:
        return validate_transaction_date(v)

    @field_validator('notes')
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        return normalize_tags(v)


class SellRequest(BaseModel):
    """Request body for selling part or all of an investment."""

    sell_quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Units to sell; must not exceed the held quantity",
    )
    sell_price_local: Decimal = Field(
        ...,
        gt=0,
        max_digits=18,
        decimal_places=8,
        description="Price per unit received, in the local currency",
    )
    sell_date: dt.date = Field(
        default_factory=dt.date.today,
        description="Date of sale (defaults to today)",
    )

    @field_validator('sell_date')
    @classmethod
    def validate_sell_date(cls, v: dt.date) -> dt.date:
        return validate_transaction_date(v)


class BatchPricesRequest(BaseModel):
    """Request body for POST /investments/prices/batch."""

    asset_ids: list[str] = Field(
        ...,
        min_length=1,
        max_length=MAX_BATCH_ASSET_IDS,
        description="Coin ids to price; unsupported ids are omitted from the result",
    )
    force_refresh: bool = Field(default=False, description="Bypass a fresh cache entry")


# =============================================================================
# ASSET / PRICE SCHEMAS
# =============================================================================

class AssetInfoResponse(BaseModel):
    """Supported coin."""

    model_config = ConfigDict(from_attributes=True)

    asset_id: str
    name: str
    symbol: str
    color: str


class PriceQuoteResponse(BaseModel):
    """Current price of one coin."""

    model_config = ConfigDict(from_attributes=True)

    asset_id: str
    price_usd: Decimal
    price: Decimal = Field(..., description="Price in quote_currency")
    quote_currency: str
    change_24h: Decimal = Field(..., description="24h change in percent")
    fetched_at: dt.datetime
    source: str = Field(..., description="live, cache, stale or fallback")
    is_stale: bool = Field(..., description="True when the price is approximate")


class BatchPricesResponse(BaseModel):
    quote_currency: str
    prices: dict[str, PriceQuoteResponse]


class ExchangeRateResponse(BaseModel):
    """Current USD -> local currency rate."""

    base_currency: str = "USD"
    quote_currency: str
    rate: Decimal = Field(..., description="Local units per 1 USD")
    source: str = Field(..., description="Rate table source, 'static' when degraded")


# =============================================================================
# INVESTMENT SCHEMAS
# =============================================================================

class InvestmentResponse(BaseModel):
    """Stored investment plus current-market figures."""

    model_config = ConfigDict(from_attributes=True)

    # Stored fields
    id: int
    asset_id: str
    asset_name: str
    symbol: str
    invested_amount: Decimal
    quantity: Decimal
    purchase_price_local: Decimal
    purchase_price_usd: Decimal
    purchase_date: dt.date
    original_currency: str
    exchange_rate_at_purchase: Decimal
    status: str

    sell_date: dt.date | None = None
    sell_price_local: Decimal | None = None
    sell_price_usd: Decimal | None = None
    sell_quantity: Decimal | None = None
    realized_profit_loss: Decimal | None = None
    realized_profit_loss_percentage: Decimal | None = None

    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: dt.datetime
    updated_at: dt.datetime

    # Derived (None = price unavailable or investment sold)
    current_price_usd: Decimal | None = None
    current_price_local: Decimal | None = None
    price_change_24h: Decimal | None = None
    current_value_usd: Decimal | None = None
    current_value_local: Decimal | None = None
    invested_amount_usd: Decimal | None = None
    profit_loss_usd: Decimal | None = None
    profit_loss_local: Decimal | None = None
    profit_loss_percentage: Decimal | None = None
    exchange_rate: Decimal | None = None
    price_source: str | None = None
    is_price_available: bool = False
    is_price_stale: bool = False

    asset_info: AssetInfoResponse | None = None


class HoldingPeriodResponse(BaseModel):
    days: int
    months: Decimal
    years: Decimal


class InvestmentDetailResponse(InvestmentResponse):
    """Single investment with its holding period."""

    holding_period: HoldingPeriodResponse


# =============================================================================
# PORTFOLIO SUMMARY SCHEMAS
# =============================================================================

class AssetBreakdownResponse(BaseModel):
    """Open lots of one coin, aggregated."""

    model_config = ConfigDict(from_attributes=True)

    asset_id: str
    asset_name: str
    symbol: str
    total_invested: Decimal
    total_current_value: Decimal
    total_quantity: Decimal
    average_purchase_price: Decimal = Field(
        ...,
        description="Blended cost basis: total invested / total quantity"
    )
    profit_loss: Decimal
    profit_loss_percentage: Decimal
    investment_count: int


class AllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    asset_name: str
    symbol: str
    amount: Decimal
    percentage: Decimal


class PortfolioSummaryResponse(BaseModel):
    """Portfolio analytics over open investments."""

    local_currency: str
    total_invested: Decimal
    total_current_value: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percentage: Decimal
    total_realized_profit_loss: Decimal = Field(
        ...,
        description="Realized P&L summed over every investment, sold ones included"
    )
    count: int = Field(..., description="Number of open (active or partial) investments")
    asset_breakdown: list[AssetBreakdownResponse]
    allocation: dict[str, AllocationResponse]
    best_performer: AssetBreakdownResponse | None = None
    worst_performer: AssetBreakdownResponse | None = None
    has_stale_prices: bool = False


class InvestmentListResponse(BaseModel):
    """GET /investments payload."""

    investments: list[InvestmentResponse]
    summary: PortfolioSummaryResponse
    exchange_rate: Decimal
    local_currency: str


# =============================================================================
# SELL SCHEMAS
# =============================================================================

class SaleSummaryResponse(BaseModel):
    """Receipt of one sale."""

    model_config = ConfigDict(from_attributes=True)

    quantity_sold: Decimal
    sell_date: dt.date
    sell_price_local: Decimal
    sell_price_usd: Decimal
    sale_amount_local: Decimal
    sale_amount_usd: Decimal
    invested_portion_local: Decimal
    invested_portion_usd: Decimal
    realized_profit_loss_local: Decimal
    realized_profit_loss_usd: Decimal
    realized_profit_loss_percentage: Decimal
    remaining_quantity: Decimal
    remaining_invested_amount: Decimal
    status: str


class SellResponse(BaseModel):
    message: str
    investment: InvestmentResponse
    sale_summary: SaleSummaryResponse
