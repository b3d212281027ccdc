# backend/tests/services/test_aggregator.py
"""
Unit tests for PortfolioAggregator.

Test Coverage:
- Totals over open investments only
- Realized P&L over every record
- Per-asset breakdown with blended average price
- Allocation percentages
- Best/worst performer selection and tie-break
- Empty portfolios and unpriced assets
"""

from decimal import Decimal

from app.models import InvestmentStatus
from app.services.valuation.aggregator import PortfolioAggregator
from app.services.valuation.types import UNAVAILABLE, EnrichedInvestment, ValuationResult
from tests.conftest import build_investment

ASSETS = {
    "bitcoin": ("Bitcoin", "BTC"),
    "ethereum": ("Ethereum", "ETH"),
    "solana": ("Solana", "SOL"),
}


def enriched(
        asset_id: str = "bitcoin",
        invested: str = "100000",
        quantity: str = "0.01",
        current_value_local: str | None = "120000",
        status: InvestmentStatus = InvestmentStatus.ACTIVE,
        realized: str | None = None,
        price_source: str = "live",
) -> EnrichedInvestment:
    name, symbol = ASSETS[asset_id]
    inv = build_investment(
        asset_id=asset_id,
        asset_name=name,
        symbol=symbol,
        invested_amount=invested,
        quantity=quantity,
        status=status,
        realized_profit_loss=realized,
    )
    if current_value_local is None or status == InvestmentStatus.SOLD:
        valuation = UNAVAILABLE
    else:
        valuation = ValuationResult(
            current_price_usd=Decimal("1"),
            current_value_local=Decimal(current_value_local),
            price_source=price_source,
        )
    return EnrichedInvestment(investment=inv, valuation=valuation)


class TestTotals:
    """Tests for portfolio totals."""

    def test_empty_portfolio(self):
        snapshot = PortfolioAggregator().aggregate([])

        assert snapshot.count == 0
        assert snapshot.total_invested == Decimal("0")
        assert snapshot.total_current_value == Decimal("0")
        assert snapshot.total_profit_loss_percentage == Decimal("0")
        assert snapshot.asset_breakdown == []
        assert snapshot.allocation == {}
        assert snapshot.best_performer is None
        assert snapshot.worst_performer is None

    def test_totals_cover_open_investments_only(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(invested="100000", current_value_local="120000"),
            enriched(invested="50000", current_value_local="45000", status=InvestmentStatus.PARTIAL),
            enriched(invested="70000", status=InvestmentStatus.SOLD, realized="5000"),
        ])

        assert snapshot.count == 2
        assert snapshot.total_invested == Decimal("150000.00")
        assert snapshot.total_current_value == Decimal("165000.00")
        assert snapshot.total_profit_loss == Decimal("15000.00")
        assert snapshot.total_profit_loss_percentage == Decimal("10.00")

    def test_realized_summed_over_all_records(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(status=InvestmentStatus.PARTIAL, realized="1500.50"),
            enriched(status=InvestmentStatus.SOLD, realized="-500"),
            enriched(),
        ])

        assert snapshot.total_realized_profit_loss == Decimal("1000.50")

    def test_unpriced_investment_counts_as_zero_value(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(invested="1000", current_value_local=None),
        ])

        assert snapshot.count == 1
        assert snapshot.total_invested == Decimal("1000.00")
        assert snapshot.total_current_value == Decimal("0.00")
        assert snapshot.total_profit_loss == Decimal("-1000.00")

    def test_stale_prices_flagged(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(),
            enriched(asset_id="ethereum", price_source="fallback"),
        ])

        assert snapshot.has_stale_prices


class TestBreakdown:
    """Tests for per-asset breakdown and allocation."""

    def test_lots_of_same_asset_are_grouped(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(invested="100000", quantity="0.01", current_value_local="120000"),
            enriched(invested="200000", quantity="0.03", current_value_local="360000"),
        ])

        [btc] = snapshot.asset_breakdown
        assert btc.investment_count == 2
        assert btc.total_quantity == Decimal("0.04")
        assert btc.total_invested == Decimal("300000.00")
        assert btc.total_current_value == Decimal("480000.00")
        # Blended: 300000 / 0.04, not the mean of 10,000,000 and 6,666,666.67
        assert btc.average_purchase_price == Decimal("7500000")
        assert btc.profit_loss_percentage == Decimal("60.00")

    def test_breakdown_sorted_by_value_descending(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(asset_id="solana", current_value_local="10"),
            enriched(asset_id="bitcoin", current_value_local="300"),
            enriched(asset_id="ethereum", current_value_local="90"),
        ])

        assert [b.asset_id for b in snapshot.asset_breakdown] == ["bitcoin", "ethereum", "solana"]

    def test_allocation_percentages(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(asset_id="bitcoin", current_value_local="750"),
            enriched(asset_id="ethereum", current_value_local="250"),
        ])

        assert snapshot.allocation["bitcoin"].percentage == Decimal("75.00")
        assert snapshot.allocation["ethereum"].percentage == Decimal("25.00")
        assert snapshot.allocation["ethereum"].symbol == "ETH"
        assert snapshot.allocation["bitcoin"].amount == Decimal("750.00")

    def test_allocation_zero_when_nothing_priced(self):
        snapshot = PortfolioAggregator().aggregate([enriched(current_value_local=None)])

        assert snapshot.allocation["bitcoin"].percentage == Decimal("0.00")

    def test_sold_assets_not_in_breakdown(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(asset_id="bitcoin"),
            enriched(asset_id="ethereum", status=InvestmentStatus.SOLD, realized="10"),
        ])

        assert [b.asset_id for b in snapshot.asset_breakdown] == ["bitcoin"]
        assert "ethereum" not in snapshot.allocation


class TestPerformers:
    """Tests for best/worst performer."""

    def test_best_and_worst_by_percentage(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(asset_id="bitcoin", invested="100", current_value_local="150"),
            enriched(asset_id="ethereum", invested="100", current_value_local="80"),
            enriched(asset_id="solana", invested="100", current_value_local="110"),
        ])

        assert snapshot.best_performer.asset_id == "bitcoin"
        assert snapshot.worst_performer.asset_id == "ethereum"

    def test_single_asset_is_both(self):
        snapshot = PortfolioAggregator().aggregate([enriched()])

        assert snapshot.best_performer.asset_id == "bitcoin"
        assert snapshot.worst_performer.asset_id == "bitcoin"

    def test_ties_go_to_first_asset_id(self):
        snapshot = PortfolioAggregator().aggregate([
            enriched(asset_id="solana", invested="100", current_value_local="120"),
            enriched(asset_id="ethereum", invested="200", current_value_local="240"),
        ])

        assert snapshot.best_performer.asset_id == "ethereum"
        assert snapshot.worst_performer.asset_id == "ethereum"
