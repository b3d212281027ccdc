# backend/app/services/valuation/service.py
"""
Investment Service - Main orchestrator for the investment portfolio.

This is the single entry point the API layer uses:
- list_enriched_investments(): every lot, valued, plus portfolio analytics
- create_investment() / get_investment() / delete_investment()
- sell_investment(): full or partial sale with an atomic write
- get_summary(): portfolio analytics only
- batch_prices() / refresh_prices() / current_exchange_rate() / supported_assets()

Design Principles:
- Dependency Injection: PriceCache and FXRateService via constructor
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Composable: valuation, aggregation and selling are separate components
- One batched price fetch per request

Usage:
    from app.services.valuation import InvestmentService

    service = InvestmentService(price_cache=cache, fx_service=fx)

    listing = service.list_enriched_investments(db, user_id="user-42")
    enriched, receipt = service.sell_investment(
        db, "user-42", investment_id=7,
        sell_quantity=Decimal("0.004"),
        sell_price_local=Decimal("11000000"),
        sell_date=date.today(),
    )
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from sqlalchemy.orm import Session

from app.models import Investment, InvestmentStatus
from app.repositories import InvestmentRepository
from app.services.constants import (
    DAYS_PER_MONTH,
    DAYS_PER_YEAR,
    DISPLAY_PERCENTAGE_PRECISION,
    MAX_NOTES_LENGTH,
    SHARE_PRECISION,
    SUPPORTED_INVESTMENT_CURRENCIES,
    ZERO,
)
from app.services.exceptions import (
    ConcurrentModificationError,
    InvestmentNotFoundError,
    UnsupportedAssetError,
    ValidationError,
)
from app.services.market_data.assets import (
    AssetInfo,
    get_asset,
    list_supported_assets,
    normalize_asset_id,
)
from app.services.valuation.aggregator import PortfolioAggregator
from app.services.valuation.calculators import InvestmentValuator
from app.services.valuation.sell_processor import SellProcessor
from app.services.valuation.types import (
    CreateInvestmentParams,
    EnrichedInvestment,
    HoldingPeriod,
    InvestmentDetail,
    InvestmentListing,
    PortfolioSnapshot,
    SaleSummary,
)

if TYPE_CHECKING:
    from app.services.fx_rate_service import FXRateService
    from app.services.market_data.base import PriceQuote
    from app.services.market_data.price_cache import PriceCache

logger = logging.getLogger(__name__)

_OPEN_STATUSES = (InvestmentStatus.ACTIVE, InvestmentStatus.PARTIAL)


class InvestmentService:
    """
    Main service for investment portfolio operations.

    Attributes:
        _price_cache: Injected price cache (shared across requests)
        _fx_service: Injected FX rate service (shared across requests)
        _valuator: Per-investment valuation
        _aggregator: Portfolio analytics
        _sell_processor: Sale computation
    """

    def __init__(self, price_cache: PriceCache, fx_service: FXRateService) -> None:
        self._price_cache = price_cache
        self._fx_service = fx_service

        self._valuator = InvestmentValuator()
        self._aggregator = PortfolioAggregator()
        self._sell_processor = SellProcessor()

        logger.info(
            f"InvestmentService initialized: price source={price_cache.source_name}, "
            f"local currency={fx_service.local_currency}"
        )

    @property
    def local_currency(self) -> str:
        return self._fx_service.local_currency

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def list_enriched_investments(self, db: Session, user_id: str) -> InvestmentListing:
        """
        Every investment of the user (newest purchase first), valued, with
        portfolio analytics over the open ones.
        """
        investments = InvestmentRepository(db).list_for_user(user_id)
        fx_rate = self._fx_service.current_exchange_rate()
        enriched = self._enrich(investments, fx_rate)
        snapshot = self._aggregator.aggregate(enriched)

        logger.info(
            f"Listed {len(enriched)} investments for user {user_id} "
            f"({snapshot.count} open)"
        )
        return InvestmentListing(
            investments=enriched,
            snapshot=snapshot,
            exchange_rate=fx_rate,
            local_currency=self.local_currency,
        )

    def get_summary(self, db: Session, user_id: str) -> PortfolioSnapshot:
        """
        Portfolio analytics over active and partial investments.

        Realized P&L is still summed over every record, so sold lots are
        loaded too but never priced.
        """
        investments = InvestmentRepository(db).list_for_user(user_id)
        fx_rate = self._fx_service.current_exchange_rate()
        return self._aggregator.aggregate(self._enrich(investments, fx_rate))

    def get_investment(self, db: Session, user_id: str, investment_id: int) -> InvestmentDetail:
        """
        Raises:
            InvestmentNotFoundError: No such investment for this user
        """
        investment = self._load(db, user_id, investment_id)
        fx_rate = self._fx_service.current_exchange_rate()
        enriched = self._enrich([investment], fx_rate)[0]

        return InvestmentDetail(
            enriched=enriched,
            holding_period=self.holding_period(investment),
        )

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def create_investment(
            self,
            db: Session,
            user_id: str,
            params: CreateInvestmentParams,
    ) -> EnrichedInvestment:
        """
        Record a new purchase.

        The USD spot price and the USD->local rate at this moment become the
        lot's purchase_price_usd and exchange_rate_at_purchase. A fallback
        price is acceptable.

        Raises:
            UnsupportedAssetError: asset_id not in the registry
            ValidationError: non-positive amounts, notes too long, no price
        """
        asset = get_asset(params.asset_id)
        if asset is None:
            raise UnsupportedAssetError(normalize_asset_id(params.asset_id))

        self._validate_create(params)

        local_currency = self.local_currency
        if local_currency not in SUPPORTED_INVESTMENT_CURRENCIES:
            raise ValidationError(
                f"Local currency {local_currency} cannot be used for investments",
                field="original_currency",
            )

        quote = self._price_cache.get_prices([asset.asset_id]).get(asset.asset_id)
        if quote is None:
            raise ValidationError(f"No price available for {asset.asset_id}", field="asset_id")
        if quote.is_stale:
            logger.warning(
                f"Recording {asset.asset_id} purchase with {quote.source.value} price {quote.price_usd}"
            )

        fx_rate = self._fx_service.current_exchange_rate()

        investment = Investment(
            user_id=user_id,
            asset_id=asset.asset_id,
            asset_name=asset.name,
            symbol=asset.symbol,
            invested_amount=params.invested_amount,
            quantity=params.quantity,
            purchase_price_local=(params.invested_amount / params.quantity).quantize(SHARE_PRECISION),
            purchase_price_usd=quote.price_usd,
            purchase_date=params.purchase_date,
            original_currency=local_currency,
            exchange_rate_at_purchase=fx_rate,
            status=InvestmentStatus.ACTIVE,
            notes=params.notes,
            tags=list(params.tags),
        )
        investment = InvestmentRepository(db).add(investment)

        logger.info(
            f"Created investment {investment.id}: {investment.quantity} {asset.symbol} "
            f"for {investment.invested_amount} {local_currency}"
        )
        return self._enrich([investment], fx_rate)[0]

    def sell_investment(
            self,
            db: Session,
            user_id: str,
            investment_id: int,
            sell_quantity: Decimal,
            sell_price_local: Decimal,
            sell_date: date,
    ) -> tuple[EnrichedInvestment, SaleSummary]:
        """
        Sell part or all of an investment.

        The write is conditional on the status and quantity this call read;
        if another request changed either in between, nothing is written.

        Raises:
            InvestmentNotFoundError: No such investment for this user
            InvestmentAlreadySoldError: Investment already fully sold
            InsufficientQuantityError: sell_quantity not in (0, quantity]
            ValidationError: sell_price_local not positive
            ConcurrentModificationError: Record changed during the sale
        """
        repo = InvestmentRepository(db)
        investment = self._load(db, user_id, investment_id)
        fx_rate = self._fx_service.current_exchange_rate()

        observed_status = investment.status
        observed_quantity = investment.quantity

        result = self._sell_processor.sell(
            investment,
            sell_quantity=sell_quantity,
            sell_price_local=sell_price_local,
            sell_date=sell_date,
            current_fx_rate=fx_rate,
        )

        if not repo.apply_sale(
                investment_id,
                expected_status=observed_status,
                expected_quantity=observed_quantity,
                values=result.updated.as_values(),
        ):
            raise ConcurrentModificationError(investment_id)

        investment = repo.refresh(investment)
        logger.info(
            f"Sold {sell_quantity} of investment {investment_id} "
            f"(realized {result.summary.realized_profit_loss_local} {self.local_currency}, "
            f"status {result.summary.status.value})"
        )
        return self._enrich([investment], fx_rate)[0], result.summary

    def delete_investment(self, db: Session, user_id: str, investment_id: int) -> None:
        """
        Raises:
            InvestmentNotFoundError: No such investment for this user
        """
        investment = self._load(db, user_id, investment_id)
        InvestmentRepository(db).delete(investment)
        logger.info(f"Deleted investment {investment_id} for user {user_id}")

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    def batch_prices(
            self,
            asset_ids: Iterable[str],
            force_refresh: bool = False,
    ) -> dict[str, PriceQuote]:
        """Quotes in the local currency for the supported ids among asset_ids."""
        return self._price_cache.get_prices(
            asset_ids,
            quote_currency=self.local_currency,
            force_refresh=force_refresh,
        )

    def refresh_prices(self) -> None:
        self._price_cache.invalidate()

    def current_exchange_rate(self) -> Decimal:
        return self._fx_service.current_exchange_rate()

    def exchange_rate_source(self) -> str:
        """Provider behind the current rate table, "static" when degraded."""
        return self._fx_service.rates_source

    @staticmethod
    def supported_assets() -> list[AssetInfo]:
        return list_supported_assets()

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def holding_period(investment: Investment, today: date | None = None) -> HoldingPeriod:
        """Days since purchase, up to the sale date for sold lots."""
        end = today or date.today()
        if investment.status == InvestmentStatus.SOLD and investment.sell_date is not None:
            end = investment.sell_date

        days = max((end - investment.purchase_date).days, 0)
        return HoldingPeriod(
            days=days,
            months=(Decimal(days) / DAYS_PER_MONTH).quantize(DISPLAY_PERCENTAGE_PRECISION),
            years=(Decimal(days) / DAYS_PER_YEAR).quantize(DISPLAY_PERCENTAGE_PRECISION),
        )

    def _enrich(self, investments: list[Investment], fx_rate: Decimal) -> list[EnrichedInvestment]:
        """Value investments with a single batched price lookup for the open ones."""
        open_ids = {inv.asset_id for inv in investments if inv.status in _OPEN_STATUSES}
        quotes = self._price_cache.get_prices(open_ids) if open_ids else {}
        return self._valuator.valuate_many(investments, quotes, fx_rate, self.local_currency)

    @staticmethod
    def _load(db: Session, user_id: str, investment_id: int) -> Investment:
        investment = InvestmentRepository(db).get_for_user(user_id, investment_id)
        if investment is None:
            raise InvestmentNotFoundError(investment_id)
        return investment

    @staticmethod
    def _validate_create(params: CreateInvestmentParams) -> None:
        if params.invested_amount <= ZERO:
            raise ValidationError("Invested amount must be greater than zero", field="invested_amount")
        if params.quantity <= ZERO:
            raise ValidationError("Quantity must be greater than zero", field="quantity")
        if params.notes is not None and len(params.notes) > MAX_NOTES_LENGTH:
            raise ValidationError(
                f"Notes cannot exceed {MAX_NOTES_LENGTH} characters",
                field="notes",
            )
        if params.purchase_date > date.today():
            raise ValidationError("Purchase date cannot be in the future", field="purchase_date")
