# backend/app/services/valuation/types.py
"""
Internal data types for the investment valuation package.

These dataclasses are the outputs of the valuator, aggregator and sell
processor. They are NOT Pydantic schemas: those live in
app/schemas/investments.py for API serialization.

Design Principles:
- Immutable value objects (frozen=True)
- Decimal for ALL financial values (never float)
- "Unavailable" is None, never zero
- Derived figures are never persisted

Type Hierarchy:
    ValuationResult     - Current-market figures for one investment
    EnrichedInvestment  - Stored record + ValuationResult + registry entry
    AssetBreakdown      - Per-asset aggregate across lots
    AllocationEntry     - One asset's share of portfolio value
    PortfolioSnapshot   - Portfolio totals, breakdown, allocation, performers
    InvestmentUpdate    - Column values a sale writes back
    SaleSummary         - Receipt of a single sale
    SellResult          - InvestmentUpdate + SaleSummary
    HoldingPeriod       - Time since purchase
    InvestmentDetail    - EnrichedInvestment + HoldingPeriod
    InvestmentListing   - All enriched investments + snapshot
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.models import InvestmentStatus

if TYPE_CHECKING:
    from app.models import Investment
    from app.services.market_data.assets import AssetInfo


# =============================================================================
# VALUATION
# =============================================================================

@dataclass(frozen=True)
class ValuationResult:
    """
    Current-market figures for one investment.

    Every field is None when no price is available for the asset, or when
    the investment is sold (sold lots are not revalued).

    Attributes:
        current_price_usd: Spot price in USD
        current_price_local: Spot price in the local currency
        price_change_24h: 24h change in percent
        current_value_usd: quantity × price_usd
        current_value_local: quantity × price_usd × fx_rate
        invested_amount_usd: Cost basis converted at the purchase-time rate
        profit_loss_usd: Unrealized P&L in USD
        profit_loss_local: Unrealized P&L in the local currency
        profit_loss_percentage: profit_loss_usd / invested_amount_usd × 100
        exchange_rate: Current local-per-USD rate used
        price_source: "live", "cache", "stale" or "fallback"
    """

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

    @property
    def is_price_available(self) -> bool:
        return self.current_price_usd is not None

    @property
    def is_stale(self) -> bool:
        return self.price_source in ("stale", "fallback")


UNAVAILABLE = ValuationResult()


@dataclass(frozen=True)
class EnrichedInvestment:
    """
    A stored investment together with its current valuation.

    Attributes:
        investment: The persisted record (not modified)
        valuation: Derived current-market figures
        asset_info: Registry entry, None if the asset was delisted from the registry
    """

    investment: Investment
    valuation: ValuationResult
    asset_info: AssetInfo | None = None

    @property
    def asset_id(self) -> str:
        return self.investment.asset_id

    @property
    def status(self) -> InvestmentStatus:
        return self.investment.status

    @property
    def is_sold(self) -> bool:
        return self.investment.status == InvestmentStatus.SOLD


# =============================================================================
# PORTFOLIO AGGREGATION
# =============================================================================

@dataclass(frozen=True)
class AssetBreakdown:
    """
    Aggregate of every open lot of one asset.

    average_purchase_price is the blended cost basis
    (total_invested / total_quantity), not the mean of lot prices.
    """

    asset_id: str
    asset_name: str
    symbol: str
    total_invested: Decimal
    total_current_value: Decimal
    total_quantity: Decimal
    average_purchase_price: Decimal
    profit_loss: Decimal
    profit_loss_percentage: Decimal
    investment_count: int


@dataclass(frozen=True)
class AllocationEntry:
    """Share of total current value held in one asset."""

    asset_id: str
    asset_name: str
    symbol: str
    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class PortfolioSnapshot:
    """
    Portfolio-level analytics over non-sold investments.

    total_realized_profit_loss is the exception: it sums realized P&L over
    every record, sold ones included.
    """

    total_invested: Decimal
    total_current_value: Decimal
    total_profit_loss: Decimal
    total_profit_loss_percentage: Decimal
    total_realized_profit_loss: Decimal
    count: int
    asset_breakdown: list[AssetBreakdown] = field(default_factory=list)
    allocation: dict[str, AllocationEntry] = field(default_factory=dict)
    best_performer: AssetBreakdown | None = None
    worst_performer: AssetBreakdown | None = None
    has_stale_prices: bool = False


# =============================================================================
# SELLING
# =============================================================================

@dataclass(frozen=True)
class InvestmentUpdate:
    """
    Column values a sale writes back to the investment record.

    Fields mirror Investment columns one-to-one so the repository can apply
    them as a single conditional UPDATE.
    """

    status: InvestmentStatus
    quantity: Decimal
    invested_amount: Decimal
    purchase_price_local: Decimal
    sell_date: date
    sell_price_local: Decimal
    sell_price_usd: Decimal
    sell_quantity: Decimal
    realized_profit_loss: Decimal
    realized_profit_loss_percentage: Decimal
    realized_profit_loss_usd: Decimal
    realized_cost_basis_usd: Decimal

    def as_values(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class SaleSummary:
    """Receipt of one sale, in both currencies."""

    investment_id: int
    asset_id: str
    sell_date: date
    quantity_sold: Decimal
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
    status: InvestmentStatus


@dataclass(frozen=True)
class SellResult:
    updated: InvestmentUpdate
    summary: SaleSummary


# =============================================================================
# SERVICE RESULTS
# =============================================================================

@dataclass(frozen=True)
class CreateInvestmentParams:
    """Validated input for creating an investment."""

    asset_id: str
    invested_amount: Decimal
    quantity: Decimal
    purchase_date: date
    notes: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class HoldingPeriod:
    """Time between purchase and today (or the sale date for sold lots)."""

    days: int
    months: Decimal
    years: Decimal


@dataclass(frozen=True)
class InvestmentDetail:
    enriched: EnrichedInvestment
    holding_period: HoldingPeriod


@dataclass(frozen=True)
class InvestmentListing:
    """Everything the portfolio page needs in one response."""

    investments: list[EnrichedInvestment]
    snapshot: PortfolioSnapshot
    exchange_rate: Decimal
    local_currency: str
