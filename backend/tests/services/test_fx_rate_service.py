# backend/tests/services/test_fx_rate_service.py
"""
Tests for the FXRateService.

This module tests:
- Rate retrieval and cross rates via USD
- Conversion, including unknown currencies
- Table caching and TTL
- Fallback order: primary -> secondary -> static table
"""

from decimal import Decimal

import pytest

from app.services.constants import STATIC_FX_RATES
from app.services.fx_rate_service import FXRateService
from tests.conftest import FakeClock, MockRateSource


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def primary() -> MockRateSource:
    return MockRateSource(name="primary", rates={"PKR": "300", "EUR": "0.9", "GBP": "0.8"})


@pytest.fixture
def secondary() -> MockRateSource:
    return MockRateSource(name="secondary", rates={"PKR": "290", "EUR": "0.95"})


@pytest.fixture
def service(primary, secondary, clock) -> FXRateService:
    return FXRateService(sources=[primary, secondary], ttl_seconds=3600, local_currency="PKR", clock=clock)


# =============================================================================
# TESTS
# =============================================================================

class TestGetRate:
    """Tests for get_rate()."""

    def test_same_currency_is_one_without_fetch(self, service, primary):
        """Identical currencies should return exactly 1 and not touch sources."""
        assert service.get_rate("PKR", "pkr") == Decimal("1")
        assert primary.call_count == 0

    def test_usd_to_local(self, service):
        assert service.get_rate("USD", "PKR") == Decimal("300")

    def test_local_to_usd(self, service):
        assert service.get_rate("PKR", "USD") == Decimal("0.00333333")

    def test_cross_rate_via_usd(self, service):
        """EUR->GBP should be GBP/EUR from the USD-based table."""
        assert service.get_rate("EUR", "GBP") == Decimal("0.88888889")

    def test_unknown_currency_returns_one(self, service, caplog):
        """Unknown currencies should log a warning and yield 1."""
        with caplog.at_level("WARNING"):
            assert service.get_rate("USD", "XYZ") == Decimal("1")
        assert "XYZ" in caplog.text

    def test_static_entries_fill_gaps(self, service):
        """Currencies the source omits come from the static table."""
        assert service.get_rate("USD", "INR") == STATIC_FX_RATES["INR"]

    def test_current_exchange_rate_is_usd_to_local(self, service):
        assert service.current_exchange_rate() == Decimal("300")
        assert service.local_currency == "PKR"


class TestConvert:
    """Tests for convert()."""

    def test_same_currency_returns_amount(self, service):
        amount = Decimal("123.456")
        assert service.convert(amount, "EUR", "EUR") is amount

    def test_converts_via_usd(self, service):
        """300 PKR -> 1 USD -> 0.9 EUR."""
        assert service.convert(Decimal("300"), "PKR", "EUR") == Decimal("0.9")

    def test_unknown_currency_returns_amount_unchanged(self, service):
        assert service.convert(Decimal("50"), "XYZ", "USD") == Decimal("50")
        assert service.convert(Decimal("50"), "USD", "XYZ") == Decimal("50")


class TestCaching:
    """Tests for the cached rate table."""

    def test_table_fetched_once_within_ttl(self, service, primary, clock):
        service.get_rate("USD", "PKR")
        clock.advance(3599)
        service.get_rate("USD", "EUR")

        assert primary.call_count == 1

    def test_table_refetched_after_ttl(self, service, primary, clock):
        service.get_rate("USD", "PKR")
        primary.set_rate("PKR", "310")
        clock.advance(3600)

        assert service.get_rate("USD", "PKR") == Decimal("310")
        assert primary.call_count == 2

    def test_invalidate_forces_refetch(self, service, primary):
        service.get_rate("USD", "PKR")
        service.invalidate()
        service.get_rate("USD", "PKR")

        assert primary.call_count == 2


class TestFallback:
    """Tests for source fallback."""

    def test_secondary_used_when_primary_fails(self, service, primary, secondary):
        primary.fail()

        assert service.get_rate("USD", "PKR") == Decimal("290")
        assert service.rates_source == "secondary"

    def test_static_used_when_all_fail(self, service, primary, secondary):
        primary.fail()
        secondary.fail()

        assert service.get_rate("USD", "PKR") == STATIC_FX_RATES["PKR"]
        assert service.rates_source == "static"

    def test_no_sources_uses_static(self):
        service = FXRateService(sources=[], local_currency="pkr")

        assert service.current_exchange_rate() == Decimal("280")
        assert service.rates_source == "static"

    def test_failure_retried_sooner_than_ttl(self, service, primary, secondary, clock):
        """A degraded table should be retried after 60s, not the full TTL."""
        primary.fail()
        secondary.fail()
        service.get_rate("USD", "PKR")

        primary.recover()
        clock.advance(60)

        assert service.get_rate("USD", "PKR") == Decimal("300")
        assert service.rates_source == "primary"

    def test_previous_table_kept_when_refresh_fails(self, service, primary, secondary, clock):
        """After a good fetch, a total failure should keep serving the last table."""
        service.get_rate("USD", "PKR")
        primary.fail()
        secondary.fail()
        clock.advance(3600)

        assert service.get_rate("USD", "PKR") == Decimal("300")
        assert service.rates_source == "primary"


def test_ttl_is_respected_with_fake_clock():
    """Smoke test: a fresh service with a single source respects its TTL."""
    clock = FakeClock()
    source = MockRateSource(rates={"PKR": "300"})
    service = FXRateService(sources=[source], ttl_seconds=10, clock=clock)

    service.get_rates()
    clock.advance(9)
    service.get_rates()
    clock.advance(1)
    service.get_rates()

    assert source.call_count == 2


class TestUnusableRates:
    """Rates that cannot be used in Decimal math never reach callers."""

    @pytest.mark.parametrize("value", ["Infinity", "NaN", "-5", "1e300"])
    def test_unusable_fetched_rate_replaced_by_static(self, value):
        source = MockRateSource(rates={"PKR": value, "EUR": "0.9"})
        service = FXRateService(sources=[source], local_currency="PKR")

        assert service.current_exchange_rate() == STATIC_FX_RATES["PKR"]
        assert service.get_rate("USD", "EUR") == Decimal("0.9")
        assert service.rates_source == "mock-fx"

    def test_out_of_range_cross_rate_degrades(self, caplog):
        """A cross rate too large to quantize yields 1 and leaves amounts unconverted."""
        source = MockRateSource(rates={"PKR": "300", "EUR": "1e-30"})
        service = FXRateService(sources=[source], local_currency="PKR")

        with caplog.at_level("WARNING"):
            assert service.get_rate("EUR", "PKR") == Decimal("1")
            assert service.convert(Decimal("5"), "EUR", "PKR") == Decimal("5")
        assert "out of range" in caplog.text
