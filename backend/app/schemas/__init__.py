# backend/app/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

- errors: Error response formats
- investments: Investment CRUD, sell, summary, prices and FX responses
- validators: Reusable validation functions (asset id, dates, tags)

Usage:
    from app.schemas import InvestmentCreate, InvestmentResponse
    from app.schemas import ErrorDetail
"""

from app.schemas.errors import ErrorDetail, ValidationErrorDetail
from app.schemas.investments import (
    AllocationResponse,
    AssetBreakdownResponse,
    AssetInfoResponse,
    BatchPricesRequest,
    BatchPricesResponse,
    ExchangeRateResponse,
    HoldingPeriodResponse,
    InvestmentCreate,
    InvestmentDetailResponse,
    InvestmentListResponse,
    InvestmentResponse,
    PortfolioSummaryResponse,
    PriceQuoteResponse,
    SaleSummaryResponse,
    SellRequest,
    SellResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Requests
    "InvestmentCreate",
    "SellRequest",
    "BatchPricesRequest",
    # Responses
    "InvestmentResponse",
    "InvestmentDetailResponse",
    "InvestmentListResponse",
    "HoldingPeriodResponse",
    "PortfolioSummaryResponse",
    "AssetBreakdownResponse",
    "AllocationResponse",
    "SaleSummaryResponse",
    "SellResponse",
    "AssetInfoResponse",
    "PriceQuoteResponse",
    "BatchPricesResponse",
    "ExchangeRateResponse",
]
