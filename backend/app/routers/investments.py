# backend/app/routers/investments.py
"""
Crypto investment endpoints.

Provides the portfolio of crypto investments for the calling user:
- GET /investments - Every investment, valued, plus portfolio summary
- GET /investments/summary - Portfolio summary only
- GET /investments/{id} - One investment with its holding period
- POST /investments - Record a purchase
- POST /investments/{id}/sell - Full or partial sale
- DELETE /investments/{id} - Remove a record

Market data helpers:
- GET /investments/exchange-rate - Current USD -> local rate
- GET /investments/coins/supported - Supported coins
- GET|POST /investments/prices/batch - Current prices in the local currency
- POST /investments/prices/refresh - Drop cached prices

The caller is identified by the X-User-ID header. Investments of other
users are reported as not found.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user_id, get_investment_service
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
from app.services.constants import MAX_BATCH_ASSET_IDS
from app.services.market_data.assets import get_asset
from app.services.valuation import (
    AssetBreakdown,
    CreateInvestmentParams,
    EnrichedInvestment,
    InvestmentService,
    PortfolioSnapshot,
    SaleSummary,
)

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/investments",
    tags=["Investments"],
)


# =============================================================================
# MAPPER FUNCTIONS (Internal Types -> Pydantic Schemas)
# =============================================================================

def _map_investment(enriched: EnrichedInvestment) -> dict:
    """Flatten stored columns and derived figures into InvestmentResponse fields."""
    inv = enriched.investment
    val = enriched.valuation
    return {
        "id": inv.id,
        "asset_id": inv.asset_id,
        "asset_name": inv.asset_name,
        "symbol": inv.symbol,
        "invested_amount": inv.invested_amount,
        "quantity": inv.quantity,
        "purchase_price_local": inv.purchase_price_local,
        "purchase_price_usd": inv.purchase_price_usd,
        "purchase_date": inv.purchase_date,
        "original_currency": inv.original_currency,
        "exchange_rate_at_purchase": inv.exchange_rate_at_purchase,
        "status": inv.status.value,
        "sell_date": inv.sell_date,
        "sell_price_local": inv.sell_price_local,
        "sell_price_usd": inv.sell_price_usd,
        "sell_quantity": inv.sell_quantity,
        "realized_profit_loss": inv.realized_profit_loss,
        "realized_profit_loss_percentage": inv.realized_profit_loss_percentage,
        "notes": inv.notes,
        "tags": list(inv.tags or []),
        "created_at": inv.created_at,
        "updated_at": inv.updated_at,
        "current_price_usd": val.current_price_usd,
        "current_price_local": val.current_price_local,
        "price_change_24h": val.price_change_24h,
        "current_value_usd": val.current_value_usd,
        "current_value_local": val.current_value_local,
        "invested_amount_usd": val.invested_amount_usd,
        "profit_loss_usd": val.profit_loss_usd,
        "profit_loss_local": val.profit_loss_local,
        "profit_loss_percentage": val.profit_loss_percentage,
        "exchange_rate": val.exchange_rate,
        "price_source": val.price_source,
        "is_price_available": val.is_price_available,
        "is_price_stale": val.is_stale,
        "asset_info": (
            AssetInfoResponse.model_validate(enriched.asset_info)
            if enriched.asset_info is not None else None
        ),
    }


def _map_breakdown(breakdown: AssetBreakdown | None) -> AssetBreakdownResponse | None:
    if breakdown is None:
        return None
    return AssetBreakdownResponse.model_validate(breakdown)


def _map_summary(snapshot: PortfolioSnapshot, local_currency: str) -> PortfolioSummaryResponse:
    """Map internal PortfolioSnapshot to Pydantic schema."""
    return PortfolioSummaryResponse(
        local_currency=local_currency,
        total_invested=snapshot.total_invested,
        total_current_value=snapshot.total_current_value,
        total_profit_loss=snapshot.total_profit_loss,
        total_profit_loss_percentage=snapshot.total_profit_loss_percentage,
        total_realized_profit_loss=snapshot.total_realized_profit_loss,
        count=snapshot.count,
        asset_breakdown=[_map_breakdown(b) for b in snapshot.asset_breakdown],
        allocation={
            asset_id: AllocationResponse.model_validate(entry)
            for asset_id, entry in snapshot.allocation.items()
        },
        best_performer=_map_breakdown(snapshot.best_performer),
        worst_performer=_map_breakdown(snapshot.worst_performer),
        has_stale_prices=snapshot.has_stale_prices,
    )


def _map_sale_summary(summary: SaleSummary) -> SaleSummaryResponse:
    """Map internal SaleSummary to Pydantic schema."""
    return SaleSummaryResponse(
        quantity_sold=summary.quantity_sold,
        sell_date=summary.sell_date,
        sell_price_local=summary.sell_price_local,
        sell_price_usd=summary.sell_price_usd,
        sale_amount_local=summary.sale_amount_local,
        sale_amount_usd=summary.sale_amount_usd,
        invested_portion_local=summary.invested_portion_local,
        invested_portion_usd=summary.invested_portion_usd,
        realized_profit_loss_local=summary.realized_profit_loss_local,
        realized_profit_loss_usd=summary.realized_profit_loss_usd,
        realized_profit_loss_percentage=summary.realized_profit_loss_percentage,
        remaining_quantity=summary.remaining_quantity,
        remaining_invested_amount=summary.remaining_invested_amount,
        status=summary.status.value,
    )


def _batch_prices(
        service: InvestmentService,
        asset_ids: list[str],
        force_refresh: bool,
) -> BatchPricesResponse:
    quotes = service.batch_prices(asset_ids, force_refresh=force_refresh)
    return BatchPricesResponse(
        quote_currency=service.local_currency,
        prices={
            asset_id: PriceQuoteResponse(
                asset_id=quote.asset_id,
                price_usd=quote.price_usd,
                price=quote.price,
                quote_currency=quote.quote_currency,
                change_24h=quote.change_24h,
                fetched_at=quote.fetched_at,
                source=quote.source.value,
                is_stale=quote.is_stale,
            )
            for asset_id, quote in quotes.items()
        },
    )


# =============================================================================
# PORTFOLIO ENDPOINTS
# =============================================================================

@router.get(
    "",
    response_model=InvestmentListResponse,
    summary="List investments",
    response_description="Every investment of the caller, valued, with a portfolio summary",
)
def list_investments(
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
        service: InvestmentService = Depends(get_investment_service),
) -> InvestmentListResponse:
    """
    List every investment of the caller, newest purchase first.

    Open investments carry current price, value and unrealized P&L; sold
    ones carry only their realized figures. The summary covers open
    investments, except `total_realized_profit_loss` which covers all.

    **Note:** If no price could be obtained for a coin, its derived fields
    are `null` and `is_price_available` is `false`.
    """
    listing = service.list_enriched_investments(db, user_id)

    return InvestmentListResponse(
        investments=[InvestmentResponse(**_map_investment(e)) for e in listing.investments],
        summary=_map_summary(listing.snapshot, listing.local_currency),
        exchange_rate=listing.exchange_rate,
        local_currency=listing.local_currency,
    )


@router.get(
    "/summary",
    response_model=PortfolioSummaryResponse,
    summary="Get portfolio summary",
)
def get_portfolio_summary(
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
        service: InvestmentService = Depends(get_investment_service),
) -> PortfolioSummaryResponse:
    """
    Portfolio totals, per-coin breakdown, allocation and best/worst
    performers over active and partially sold investments.
    """
    snapshot = service.get_summary(db, user_id)
    return _map_summary(snapshot, service.local_currency)


# =============================================================================
# MARKET DATA ENDPOINTS
# =============================================================================
# Declared before /{investment_id} so the literal paths win.

@router.get(
    "/exchange-rate",
    response_model=ExchangeRateResponse,
    summary="Get current exchange rate",
)
def get_exchange_rate(
        service: InvestmentService = Depends(get_investment_service),
) -> ExchangeRateResponse:
    """Current USD -> local currency rate (static rate when providers are down)."""
    return ExchangeRateResponse(
        quote_currency=service.local_currency,
        rate=service.current_exchange_rate(),
        source=service.exchange_rate_source(),
    )


@router.get(
    "/coins/supported",
    response_model=list[AssetInfoResponse],
    summary="List supported coins",
)
def list_supported_coins() -> list[AssetInfoResponse]:
    return [AssetInfoResponse.model_validate(a) for a in InvestmentService.supported_assets()]


@router.get(
    "/prices/batch",
    response_model=BatchPricesResponse,
    summary="Get current prices",
)
def get_batch_prices(
        asset_ids: str = Query(
            ...,
            min_length=1,
            description="Comma-separated coin ids, e.g. bitcoin,ethereum",
        ),
        force_refresh: bool = Query(default=False),
        service: InvestmentService = Depends(get_investment_service),
) -> BatchPricesResponse:
    """
    Current prices in the local currency for the given coins.

    Unsupported ids are omitted. At most 50 ids per request.
    """
    ids = [a.strip() for a in asset_ids.split(",") if a.strip()][:MAX_BATCH_ASSET_IDS]
    return _batch_prices(service, ids, force_refresh)


@router.post(
    "/prices/batch",
    response_model=BatchPricesResponse,
    summary="Get current prices",
)
def post_batch_prices(
        request: BatchPricesRequest,
        service: InvestmentService = Depends(get_investment_service),
) -> BatchPricesResponse:
    """Same as GET /investments/prices/batch with the ids in the body."""
    return _batch_prices(service, request.asset_ids, request.force_refresh)


@router.post(
    "/prices/refresh",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Drop cached prices",
)
def refresh_prices(
        service: InvestmentService = Depends(get_investment_service),
) -> Response:
    """The next price lookup goes to the provider."""
    service.refresh_prices()
    logger.info("Price cache invalidated on request")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# SINGLE INVESTMENT ENDPOINTS
# =============================================================================

@router.get(
    "/{investment_id}",
    response_model=InvestmentDetailResponse,
    summary="Get investment",
)
def get_investment(
        investment_id: int,
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
        service: InvestmentService = Depends(get_investment_service),
) -> InvestmentDetailResponse:
    """
    One investment with current valuation and holding period.

    Raises **404** if the investment does not exist or is not yours.
    """
    detail = service.get_investment(db, user_id, investment_id)
    period = detail.holding_period

    return InvestmentDetailResponse(
        **_map_investment(detail.enriched),
        holding_period=HoldingPeriodResponse(
            days=period.days,
            months=period.months,
            years=period.years,
        ),
    )


@router.post(
    "",
    response_model=InvestmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a purchase",
)
def create_investment(
        payload: InvestmentCreate,
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
        service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    """
    Record a purchase of a supported coin.

    The current USD price and USD -> local rate are stored as the purchase
    price and purchase-time exchange rate.

    Raises **400** for an unsupported coin.
    """
    # Domain exceptions (UnsupportedAssetError, ValidationError) propagate to global handlers
    enriched = service.create_investment(
        db,
        user_id,
        CreateInvestmentParams(
            asset_id=payload.asset_id,
            invested_amount=payload.invested_amount,
            quantity=payload.quantity,
            purchase_date=payload.purchase_date,
            notes=payload.notes,
            tags=payload.tags,
        ),
    )
    return InvestmentResponse(**_map_investment(enriched))


@router.post(
    "/{investment_id}/sell",
    response_model=SellResponse,
    summary="Sell an investment",
)
def sell_investment(
        investment_id: int,
        payload: SellRequest,
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
        service: InvestmentService = Depends(get_investment_service),
) -> SellResponse:
    """
    Sell part or all of an investment at the given local price.

    The cost basis is reduced pro rata; realized P&L accumulates on the
    record across partial sales.

    Raises:
    - **400** if the quantity exceeds what is held
    - **404** if the investment does not exist or is not yours
    - **409** if it is already sold or was changed by a concurrent request
    """
    enriched, summary = service.sell_investment(
        db,
        user_id,
        investment_id,
        sell_quantity=payload.sell_quantity,
        sell_price_local=payload.sell_price_local,
        sell_date=payload.sell_date,
    )

    asset = get_asset(enriched.asset_id)
    name = asset.name if asset else enriched.investment.asset_name
    fully = "fully" if enriched.is_sold else "partially"

    return SellResponse(
        message=f"Investment {investment_id} ({name}) {fully} sold",
        investment=InvestmentResponse(**_map_investment(enriched)),
        sale_summary=_map_sale_summary(summary),
    )


@router.delete(
    "/{investment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an investment",
)
def delete_investment(
        investment_id: int,
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
        service: InvestmentService = Depends(get_investment_service),
) -> Response:
    """
    Delete an investment record.

    Raises **404** if the investment does not exist or is not yours.
    """
    service.delete_investment(db, user_id, investment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
