# backend/app/services/valuation/__init__.py
"""
Investment Valuation Package.

This package turns stored investment lots into a current-market view:
- Per-investment valuation against live/cached prices
- Portfolio analytics (totals, breakdown, allocation, performers)
- Full and partial sells with realized P&L

Usage:
    from app.services.valuation import InvestmentService

    service = InvestmentService(price_cache=cache, fx_service=fx)
    listing = service.list_enriched_investments(db, user_id="user-42")

Architecture:
    valuation/
    ├── __init__.py          # This file - package exports
    ├── types.py             # Result data classes
    ├── calculators.py       # InvestmentValuator and its calculators
    ├── aggregator.py        # PortfolioAggregator
    ├── sell_processor.py    # SellProcessor
    └── service.py           # InvestmentService (orchestrator)

Data Flow:
    Investments → PriceCache (one batch) + FXRateService
    Investments + Quotes → InvestmentValuator → EnrichedInvestment
    EnrichedInvestments → PortfolioAggregator → PortfolioSnapshot
    Investment + sale input → SellProcessor → InvestmentUpdate + SaleSummary
"""

from app.services.valuation.aggregator import PortfolioAggregator
from app.services.valuation.calculators import (
    CostBasisCalculator,
    InvestmentValuator,
    UnrealizedPnLCalculator,
    ValueCalculator,
)
from app.services.valuation.sell_processor import SellProcessor
from app.services.valuation.service import InvestmentService
from app.services.valuation.types import (
    AllocationEntry,
    AssetBreakdown,
    CreateInvestmentParams,
    EnrichedInvestment,
    HoldingPeriod,
    InvestmentDetail,
    InvestmentListing,
    InvestmentUpdate,
    PortfolioSnapshot,
    SaleSummary,
    SellResult,
    ValuationResult,
)

__all__ = [
    # Main service
    "InvestmentService",

    # Components
    "InvestmentValuator",
    "PortfolioAggregator",
    "SellProcessor",

    # Calculators (for testing)
    "CostBasisCalculator",
    "ValueCalculator",
    "UnrealizedPnLCalculator",

    # Data types
    "ValuationResult",
    "EnrichedInvestment",
    "AssetBreakdown",
    "AllocationEntry",
    "PortfolioSnapshot",
    "InvestmentUpdate",
    "SaleSummary",
    "SellResult",
    "CreateInvestmentParams",
    "HoldingPeriod",
    "InvestmentDetail",
    "InvestmentListing",
]
