# backend/app/services/valuation/calculators.py
"""
Point-in-time investment valuation.

Each calculator follows the Single Responsibility Principle:
- CostBasisCalculator: Converts the stored cost basis to USD
- ValueCalculator: Current value in USD and local currency
- UnrealizedPnLCalculator: P&L amounts and percentage
- InvestmentValuator: Composes the three into an EnrichedInvestment

Design Principles:
- Stateless (no instance state, pure functions)
- Receives quote and FX rate explicitly, never fetches
- Uses Decimal for ALL financial calculations
- Missing price -> every derived figure is None, never zero

Formulas:
    current_value_usd   = quantity × price_usd
    current_value_local = quantity × price_usd × fx_rate   (local != USD)
    invested_amount_usd = invested_amount                  (record in USD)
                        = invested_amount / exchange_rate_at_purchase
    profit_loss_usd     = current_value_usd − invested_amount_usd
    profit_loss_local   = current_value_local − invested_amount
    profit_loss_pct     = profit_loss_usd / invested_amount_usd × 100  (0 if denominator 0)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from app.models import InvestmentStatus
from app.services.constants import (
    BASE_CURRENCY,
    CURRENCY_PRECISION,
    DISPLAY_PERCENTAGE_PRECISION,
    HUNDRED,
    SHARE_PRECISION,
    ZERO,
)
from app.services.market_data.assets import get_asset
from app.services.valuation.types import (
    EnrichedInvestment,
    UNAVAILABLE,
    ValuationResult,
)

if TYPE_CHECKING:
    from app.models import Investment
    from app.services.market_data.base import PriceQuote

logger = logging.getLogger(__name__)


# =============================================================================
# COST BASIS CALCULATOR
# =============================================================================

class CostBasisCalculator:
    """
    Converts an investment's cost basis into USD.

    Uses the exchange rate recorded at purchase, not today's rate, so the
    USD cost basis of a lot never moves with the currency.
    """

    def invested_amount_usd(self, investment: Investment) -> Decimal:
        if investment.original_currency.upper() == BASE_CURRENCY:
            return investment.invested_amount

        rate = investment.exchange_rate_at_purchase
        if rate is None or rate <= ZERO:
            logger.warning(
                f"Investment {investment.id} has no usable purchase exchange rate; "
                f"treating cost basis as USD"
            )
            return investment.invested_amount

        return investment.invested_amount / rate


# =============================================================================
# VALUE CALCULATOR
# =============================================================================

class ValueCalculator:
    """Current market value of the held quantity."""

    def calculate(
            self,
            quantity: Decimal,
            price_usd: Decimal,
            fx_rate: Decimal,
            local_currency: str,
    ) -> tuple[Decimal, Decimal]:
        """
        Returns:
            (current_value_usd, current_value_local), unquantized
        """
        value_usd = quantity * price_usd
        if local_currency.upper() == BASE_CURRENCY:
            return value_usd, value_usd
        return value_usd, value_usd * fx_rate


# =============================================================================
# UNREALIZED P&L CALCULATOR
# =============================================================================

class UnrealizedPnLCalculator:
    """
    Unrealized P&L on the held quantity.

    The percentage is measured in USD so that currency moves since purchase
    do not show up as investment performance.
    """

    def calculate(
            self,
            current_value_usd: Decimal,
            current_value_local: Decimal,
            invested_amount_usd: Decimal,
            invested_amount_local: Decimal,
    ) -> tuple[Decimal, Decimal, Decimal]:
        """
        Returns:
            (profit_loss_usd, profit_loss_local, profit_loss_percentage), unquantized
        """
        pnl_usd = current_value_usd - invested_amount_usd
        pnl_local = current_value_local - invested_amount_local

        if invested_amount_usd == ZERO:
            pct = ZERO
        else:
            pct = pnl_usd / invested_amount_usd * HUNDRED

        return pnl_usd, pnl_local, pct


# =============================================================================
# INVESTMENT VALUATOR
# =============================================================================

class InvestmentValuator:
    """
    Values stored investments against current quotes.

    Usage:
        valuator = InvestmentValuator()
        enriched = valuator.valuate(investment, quote, fx_rate=Decimal("280"), local_currency="PKR")
    """

    def __init__(self) -> None:
        self._cost_basis = CostBasisCalculator()
        self._value = ValueCalculator()
        self._pnl = UnrealizedPnLCalculator()

    def valuate(
            self,
            investment: Investment,
            quote: PriceQuote | None,
            fx_rate: Decimal,
            local_currency: str,
    ) -> EnrichedInvestment:
        """
        Value one investment.

        Args:
            investment: Stored record (active or partial)
            quote: Current quote for the asset, or None if unavailable
            fx_rate: Current local units per 1 USD
            local_currency: The user's local currency

        Returns:
            EnrichedInvestment; valuation is UNAVAILABLE when quote is None
        """
        asset_info = get_asset(investment.asset_id)

        if quote is None:
            logger.debug(f"No price for {investment.asset_id}; investment {investment.id} unvalued")
            return EnrichedInvestment(investment=investment, valuation=UNAVAILABLE, asset_info=asset_info)

        is_usd = local_currency.upper() == BASE_CURRENCY
        effective_rate = Decimal("1") if is_usd else fx_rate

        value_usd, value_local = self._value.calculate(
            investment.quantity, quote.price_usd, fx_rate, local_currency
        )
        invested_usd = self._cost_basis.invested_amount_usd(investment)
        pnl_usd, pnl_local, pnl_pct = self._pnl.calculate(
            value_usd, value_local, invested_usd, investment.invested_amount
        )

        valuation = ValuationResult(
            current_price_usd=quote.price_usd.quantize(SHARE_PRECISION),
            current_price_local=(quote.price_usd * effective_rate).quantize(SHARE_PRECISION),
            price_change_24h=quote.change_24h.quantize(DISPLAY_PERCENTAGE_PRECISION),
            current_value_usd=value_usd.quantize(CURRENCY_PRECISION),
            current_value_local=value_local.quantize(CURRENCY_PRECISION),
            invested_amount_usd=invested_usd.quantize(CURRENCY_PRECISION),
            profit_loss_usd=pnl_usd.quantize(CURRENCY_PRECISION),
            profit_loss_local=pnl_local.quantize(CURRENCY_PRECISION),
            profit_loss_percentage=pnl_pct.quantize(DISPLAY_PERCENTAGE_PRECISION),
            exchange_rate=effective_rate.quantize(SHARE_PRECISION),
            price_source=quote.source.value,
        )
        return EnrichedInvestment(investment=investment, valuation=valuation, asset_info=asset_info)

    def valuate_many(
            self,
            investments: Iterable[Investment],
            quotes: dict[str, PriceQuote],
            fx_rate: Decimal,
            local_currency: str,
    ) -> list[EnrichedInvestment]:
        """
        Value a batch of investments, preserving input order.

        Sold investments are passed through with an UNAVAILABLE valuation:
        their figures are historical and live in the realized fields.
        """
        enriched: list[EnrichedInvestment] = []
        for investment in investments:
            if investment.status == InvestmentStatus.SOLD:
                enriched.append(EnrichedInvestment(
                    investment=investment,
                    valuation=UNAVAILABLE,
                    asset_info=get_asset(investment.asset_id),
                ))
                continue
            enriched.append(
                self.valuate(investment, quotes.get(investment.asset_id), fx_rate, local_currency)
            )
        return enriched
