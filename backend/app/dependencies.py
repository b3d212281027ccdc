# backend/app/dependencies.py
"""
Dependency injection module for FastAPI services.

This module provides singleton service instances that are shared across
all requests. This is more efficient than creating new instances per request
and ensures shared state (the price cache, the FX rate table and the
provider circuit breaker) works correctly.

Services are lazily initialized on first use to avoid import-time side effects.
Below this layer nothing is a singleton: services receive their collaborators
through the constructor, so tests build isolated instances.

Usage in routers:
    from app.dependencies import get_current_user_id, get_investment_service

    @router.get("/")
    def list_investments(
        user_id: str = Depends(get_current_user_id),
        service: InvestmentService = Depends(get_investment_service),
    ):
        ...
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Header, HTTPException, status

from app.config import settings
from app.services.fx_rate_service import FXRateService
from app.services.market_data import (
    CoinGeckoPriceSource,
    ExchangeRateApiSource,
    FrankfurterSource,
    PriceCache,
    PriceSource,
    YahooCryptoPriceSource,
)
from app.services.valuation import InvestmentService
from app.utils.context import set_user_id

logger = logging.getLogger(__name__)

MAX_USER_ID_LENGTH = 64


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_fx_rate_service (no deps)
# 2. get_price_source (no deps)
# 3. get_price_cache (depends on price source, fx_service)
# 4. get_investment_service (depends on price cache, fx_service)


@lru_cache(maxsize=1)
def get_fx_rate_service() -> FXRateService:
    """
    Get the singleton FXRateService instance.

    Primary and secondary rate tables are tried in order; the static table
    is the last resort.
    """
    logger.debug("Initializing singleton FXRateService")
    timeout = settings.provider_timeout_seconds
    return FXRateService(
        sources=[
            ExchangeRateApiSource(url=settings.fx_primary_url, timeout=timeout),
            FrankfurterSource(url=settings.fx_secondary_url, timeout=timeout),
        ],
        ttl_seconds=settings.fx_cache_ttl_seconds,
        local_currency=settings.local_currency,
    )


@lru_cache(maxsize=1)
def get_price_source() -> PriceSource:
    """Get the configured crypto price source (PRICE_PROVIDER)."""
    logger.debug(f"Initializing singleton price source: {settings.price_provider}")
    if settings.price_provider == "yahoo":
        return YahooCryptoPriceSource(timeout=settings.provider_timeout_seconds)
    return CoinGeckoPriceSource(
        base_url=settings.coingecko_base_url,
        timeout=settings.provider_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_price_cache() -> PriceCache:
    """
    Get the singleton PriceCache instance.

    One cache (and one circuit breaker) per process, so rate limits are
    respected globally.
    """
    logger.debug("Initializing singleton PriceCache")
    return PriceCache(
        source=get_price_source(),
        fx_service=get_fx_rate_service(),
        ttl_seconds=settings.price_cache_ttl_seconds,
    )


@lru_cache(maxsize=1)
def get_investment_service() -> InvestmentService:
    """Get the singleton InvestmentService instance."""
    logger.debug("Initializing singleton InvestmentService")
    return InvestmentService(
        price_cache=get_price_cache(),
        fx_service=get_fx_rate_service(),
    )


# =============================================================================
# CALLER IDENTITY
# =============================================================================


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> str:
    """
    Dependency that identifies the caller from the X-User-ID header.

    The header is trusted as-is; no credentials are checked. The id is
    attached to the logging context for the rest of the request.

    Raises:
        HTTPException 401: If the header is missing, blank or too long
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header",
        )
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"X-User-ID cannot exceed {MAX_USER_ID_LENGTH} characters",
        )

    set_user_id(user_id)
    return user_id
