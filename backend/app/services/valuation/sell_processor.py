# backend/app/services/valuation/sell_processor.py
"""
Sell and partial-sell processing for a single investment lot.

State machine:
    active  -> partial | sold
    partial -> partial | sold
    sold    -> (terminal, InvestmentAlreadySoldError)

Cost basis of the sold portion is pro rata across the single lot:

    invested_portion_local = sell_quantity / quantity × invested_amount
    sold_amount_local      = sell_quantity × sell_price_local
    realized_local         = sold_amount_local − invested_portion_local

USD figures use today's rate for the proceeds and the purchase-time rate
for the cost:

    sell_price_usd       = sell_price_local / current_fx_rate
    invested_portion_usd = invested_portion_local / exchange_rate_at_purchase
    realized_usd         = sell_quantity × sell_price_usd − invested_portion_usd
    realized_pct         = realized_usd / invested_portion_usd × 100

A full sell keeps quantity and invested_amount as the historical record.
A partial sell shrinks both by the fraction sold, so purchase_price_local
(the unit cost) is unchanged for the remainder.

The processor is pure: it computes the new column values and a receipt,
and the caller persists them.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from app.models import InvestmentStatus
from app.services.constants import (
    BASE_CURRENCY,
    CURRENCY_PRECISION,
    DISPLAY_PERCENTAGE_PRECISION,
    HUNDRED,
    ONE,
    SHARE_PRECISION,
    ZERO,
)
from app.services.exceptions import (
    InsufficientQuantityError,
    InvestmentAlreadySoldError,
    ValidationError,
)
from app.services.valuation.types import InvestmentUpdate, SaleSummary, SellResult

if TYPE_CHECKING:
    from app.models import Investment

logger = logging.getLogger(__name__)


class SellProcessor:
    """
    Computes the outcome of selling part or all of an investment.

    Usage:
        result = SellProcessor().sell(
            investment,
            sell_quantity=Decimal("0.004"),
            sell_price_local=Decimal("11000000"),
            sell_date=date.today(),
            current_fx_rate=Decimal("280"),
        )
        result.updated   # InvestmentUpdate to persist
        result.summary   # SaleSummary for the receipt
    """

    def sell(
            self,
            investment: Investment,
            sell_quantity: Decimal,
            sell_price_local: Decimal,
            sell_date: date,
            current_fx_rate: Decimal,
    ) -> SellResult:
        """
        Raises:
            InvestmentAlreadySoldError: investment status is SOLD
            InsufficientQuantityError: sell_quantity not in (0, quantity]
            ValidationError: sell_price_local or current_fx_rate not positive,
                or sell_date before purchase_date
        """
        self._validate(investment, sell_quantity, sell_price_local, sell_date, current_fx_rate)

        quantity = investment.quantity
        invested_amount = investment.invested_amount
        is_usd_record = investment.original_currency.upper() == BASE_CURRENCY

        fraction_sold = sell_quantity / quantity
        sold_amount_local = sell_quantity * sell_price_local
        invested_portion_local = fraction_sold * invested_amount
        realized_local = sold_amount_local - invested_portion_local

        if is_usd_record:
            sell_price_usd = sell_price_local
            invested_portion_usd = invested_portion_local
        else:
            sell_price_usd = sell_price_local / current_fx_rate
            invested_portion_usd = invested_portion_local / investment.exchange_rate_at_purchase

        sold_amount_usd = sell_quantity * sell_price_usd
        realized_usd = sold_amount_usd - invested_portion_usd
        realized_pct = self._percentage(realized_usd, invested_portion_usd)

        if sell_quantity == quantity:
            status = InvestmentStatus.SOLD
            remaining_quantity = quantity
            remaining_invested = invested_amount
        else:
            status = InvestmentStatus.PARTIAL
            remaining_quantity = quantity - sell_quantity
            remaining_invested = invested_amount * (ONE - fraction_sold)

        # Realized figures accumulate across successive partial sells
        cumulative_local = (investment.realized_profit_loss or ZERO) + realized_local
        cumulative_usd = (investment.realized_profit_loss_usd or ZERO) + realized_usd
        cumulative_cost_usd = (investment.realized_cost_basis_usd or ZERO) + invested_portion_usd

        updated = InvestmentUpdate(
            status=status,
            quantity=remaining_quantity.quantize(SHARE_PRECISION),
            invested_amount=remaining_invested.quantize(SHARE_PRECISION),
            purchase_price_local=investment.purchase_price_local,
            sell_date=sell_date,
            sell_price_local=sell_price_local.quantize(SHARE_PRECISION),
            sell_price_usd=sell_price_usd.quantize(SHARE_PRECISION),
            sell_quantity=sell_quantity.quantize(SHARE_PRECISION),
            realized_profit_loss=cumulative_local.quantize(CURRENCY_PRECISION),
            realized_profit_loss_percentage=self._percentage(cumulative_usd, cumulative_cost_usd),
            realized_profit_loss_usd=cumulative_usd.quantize(CURRENCY_PRECISION),
            realized_cost_basis_usd=cumulative_cost_usd.quantize(CURRENCY_PRECISION),
        )

        summary = SaleSummary(
            investment_id=investment.id,
            asset_id=investment.asset_id,
            sell_date=sell_date,
            quantity_sold=sell_quantity,
            sell_price_local=sell_price_local,
            sell_price_usd=sell_price_usd.quantize(SHARE_PRECISION),
            sale_amount_local=sold_amount_local.quantize(CURRENCY_PRECISION),
            sale_amount_usd=sold_amount_usd.quantize(CURRENCY_PRECISION),
            invested_portion_local=invested_portion_local.quantize(CURRENCY_PRECISION),
            invested_portion_usd=invested_portion_usd.quantize(CURRENCY_PRECISION),
            realized_profit_loss_local=realized_local.quantize(CURRENCY_PRECISION),
            realized_profit_loss_usd=realized_usd.quantize(CURRENCY_PRECISION),
            realized_profit_loss_percentage=realized_pct,
            remaining_quantity=(
                ZERO if status == InvestmentStatus.SOLD else remaining_quantity
            ).quantize(SHARE_PRECISION),
            remaining_invested_amount=(
                ZERO if status == InvestmentStatus.SOLD else remaining_invested
            ).quantize(CURRENCY_PRECISION),
            status=status,
        )

        logger.debug(
            f"Sale computed for investment {investment.id}: qty={sell_quantity}, "
            f"realized={summary.realized_profit_loss_local}, status={status.value}"
        )
        return SellResult(updated=updated, summary=summary)

    @staticmethod
    def _validate(
            investment: Investment,
            sell_quantity: Decimal,
            sell_price_local: Decimal,
            sell_date: date,
            current_fx_rate: Decimal,
    ) -> None:
        if investment.status == InvestmentStatus.SOLD:
            raise InvestmentAlreadySoldError(investment.id)

        if sell_quantity <= ZERO or sell_quantity > investment.quantity:
            raise InsufficientQuantityError(requested=sell_quantity, available=investment.quantity)

        if sell_price_local <= ZERO:
            raise ValidationError("Sell price must be greater than zero", field="sell_price_local")

        if investment.purchase_date is not None and sell_date < investment.purchase_date:
            raise ValidationError(
                f"Sell date {sell_date} is before purchase date {investment.purchase_date}",
                field="sell_date",
            )

        if current_fx_rate <= ZERO:
            raise ValidationError("Exchange rate must be greater than zero", field="exchange_rate")

        if (
                investment.original_currency.upper() != BASE_CURRENCY
                and (investment.exchange_rate_at_purchase or ZERO) <= ZERO
        ):
            raise ValidationError(
                f"Investment {investment.id} has no purchase exchange rate",
                field="exchange_rate_at_purchase",
            )

    @staticmethod
    def _percentage(part: Decimal, whole: Decimal) -> Decimal:
        if whole == ZERO:
            return ZERO.quantize(DISPLAY_PERCENTAGE_PRECISION)
        return (part / whole * HUNDRED).quantize(DISPLAY_PERCENTAGE_PRECISION)
