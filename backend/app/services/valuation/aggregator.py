# backend/app/services/valuation/aggregator.py
"""
Portfolio analytics over valued investments.

Turns a list of EnrichedInvestment into a PortfolioSnapshot:
- Totals (invested, current value, unrealized P&L) over non-sold lots
- Realized P&L summed over every lot, sold ones included
- Per-asset breakdown with blended average purchase price
- Allocation of current value per asset
- Best and worst performing asset by P&L percentage

Unpriced investments count towards invested totals with a current value of
zero; the snapshot flags whether any stale or fallback price was used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from app.services.constants import (
    CURRENCY_PRECISION,
    DISPLAY_PERCENTAGE_PRECISION,
    HUNDRED,
    SHARE_PRECISION,
    ZERO,
)
from app.services.valuation.types import (
    AllocationEntry,
    AssetBreakdown,
    EnrichedInvestment,
    PortfolioSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class _AssetTotals:
    """Running sums for one asset while grouping."""

    asset_id: str
    asset_name: str
    symbol: str
    invested: Decimal = ZERO
    current_value: Decimal = ZERO
    quantity: Decimal = ZERO
    count: int = 0


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole × 100 at display precision; 0 when whole is 0."""
    if whole == ZERO:
        return ZERO.quantize(DISPLAY_PERCENTAGE_PRECISION)
    return (part / whole * HUNDRED).quantize(DISPLAY_PERCENTAGE_PRECISION)


class PortfolioAggregator:
    """
    Stateless portfolio aggregation.

    Usage:
        snapshot = PortfolioAggregator().aggregate(enriched_investments)
    """

    def aggregate(self, investments: Iterable[EnrichedInvestment]) -> PortfolioSnapshot:
        investments = list(investments)

        total_realized = sum(
            (e.investment.realized_profit_loss or ZERO for e in investments),
            ZERO,
        )
        open_positions = [e for e in investments if not e.is_sold]

        total_invested = ZERO
        total_current = ZERO
        has_stale = False
        groups: dict[str, _AssetTotals] = {}

        for enriched in open_positions:
            inv = enriched.investment
            current = enriched.valuation.current_value_local or ZERO

            total_invested += inv.invested_amount
            total_current += current
            has_stale = has_stale or enriched.valuation.is_stale

            totals = groups.get(inv.asset_id)
            if totals is None:
                totals = _AssetTotals(asset_id=inv.asset_id, asset_name=inv.asset_name, symbol=inv.symbol)
                groups[inv.asset_id] = totals
            totals.invested += inv.invested_amount
            totals.current_value += current
            totals.quantity += inv.quantity
            totals.count += 1

        breakdown = sorted(
            (self._to_breakdown(t) for t in groups.values()),
            key=lambda b: (-b.total_current_value, b.asset_id),
        )
        allocation = {
            b.asset_id: AllocationEntry(
                asset_id=b.asset_id,
                asset_name=b.asset_name,
                symbol=b.symbol,
                amount=b.total_current_value,
                percentage=_percentage(b.total_current_value, total_current),
            )
            for b in breakdown
        }

        total_pnl = total_current - total_invested
        snapshot = PortfolioSnapshot(
            total_invested=total_invested.quantize(CURRENCY_PRECISION),
            total_current_value=total_current.quantize(CURRENCY_PRECISION),
            total_profit_loss=total_pnl.quantize(CURRENCY_PRECISION),
            total_profit_loss_percentage=_percentage(total_pnl, total_invested),
            total_realized_profit_loss=total_realized.quantize(CURRENCY_PRECISION),
            count=len(open_positions),
            asset_breakdown=breakdown,
            allocation=allocation,
            best_performer=self._best(breakdown),
            worst_performer=self._worst(breakdown),
            has_stale_prices=has_stale,
        )

        logger.debug(
            f"Aggregated {snapshot.count} open investments across {len(breakdown)} assets: "
            f"invested={snapshot.total_invested}, value={snapshot.total_current_value}"
        )
        return snapshot

    @staticmethod
    def _to_breakdown(totals: _AssetTotals) -> AssetBreakdown:
        pnl = totals.current_value - totals.invested
        if totals.quantity == ZERO:
            avg_price = ZERO
        else:
            avg_price = totals.invested / totals.quantity

        return AssetBreakdown(
            asset_id=totals.asset_id,
            asset_name=totals.asset_name,
            symbol=totals.symbol,
            total_invested=totals.invested.quantize(CURRENCY_PRECISION),
            total_current_value=totals.current_value.quantize(CURRENCY_PRECISION),
            total_quantity=totals.quantity.quantize(SHARE_PRECISION),
            average_purchase_price=avg_price.quantize(SHARE_PRECISION),
            profit_loss=pnl.quantize(CURRENCY_PRECISION),
            profit_loss_percentage=_percentage(pnl, totals.invested),
            investment_count=totals.count,
        )

    # Ties on percentage go to the alphabetically first asset id
    @staticmethod
    def _best(breakdown: list[AssetBreakdown]) -> AssetBreakdown | None:
        if not breakdown:
            return None
        return min(breakdown, key=lambda b: (-b.profit_loss_percentage, b.asset_id))

    @staticmethod
    def _worst(breakdown: list[AssetBreakdown]) -> AssetBreakdown | None:
        if not breakdown:
            return None
        return min(breakdown, key=lambda b: (b.profit_loss_percentage, b.asset_id))
