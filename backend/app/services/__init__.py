# backend/app/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters (not via Depends)
- Receive caches and providers through the constructor

Usage:
    from app.services import FXRateService
    from app.services import InvestmentService
    from app.services import (
        InvestmentNotFoundError,
        InsufficientQuantityError,
        InvestmentAlreadySoldError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Business constants and limits
    ├── circuit_breaker.py           # Circuit breaker for external APIs
    ├── fx_rate_service.py           # FX rate service
    ├── market_data/                 # Market data package
    │   ├── assets.py                # Supported coin registry
    │   ├── base.py                  # Abstract price source + quote types
    │   ├── coingecko.py             # CoinGecko implementation
    │   ├── yahoo.py                 # Yahoo Finance implementation
    │   ├── fx_sources.py            # Rate table providers
    │   └── price_cache.py           # Batched TTL price cache
    └── valuation/                   # Investment valuation
        ├── service.py               # Main orchestrator
        ├── types.py                 # Valuation data types
        ├── calculators.py           # Per-investment valuation
        ├── aggregator.py            # Portfolio analytics
        └── sell_processor.py        # Full/partial sells
"""

# Circuit breaker
from app.services.circuit_breaker import CircuitBreaker, CircuitBreakerOpen, CircuitState

# FX rates
from app.services.fx_rate_service import FXRateService

# Market data
from app.services.market_data import PriceCache

# Valuation
from app.services.valuation import InvestmentService

# Exceptions
from app.services.exceptions import (
    ServiceError,
    ValidationError,
    UnsupportedAssetError,
    InsufficientQuantityError,
    NotFoundError,
    InvestmentNotFoundError,
    ConflictError,
    InvestmentAlreadySoldError,
    ConcurrentModificationError,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
    FXRateError,
    FXProviderError,
)

__all__ = [
    # Services
    "FXRateService",
    "PriceCache",
    "InvestmentService",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerOpen",
    "CircuitState",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "UnsupportedAssetError",
    "InsufficientQuantityError",
    "NotFoundError",
    "InvestmentNotFoundError",
    "ConflictError",
    "InvestmentAlreadySoldError",
    "ConcurrentModificationError",
    "MarketDataError",
    "ProviderUnavailableError",
    "RateLimitError",
    "FXRateError",
    "FXProviderError",
]
