# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Mock price and rate sources, a controllable clock
- Sample data factories
"""

import os

# Settings are read at import time; keep tests on in-memory SQLite
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Iterator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.models import Base, Investment, InvestmentStatus  # noqa: E402
from app.services.exceptions import FXProviderError, ProviderUnavailableError  # noqa: E402
from app.services.fx_rate_service import FXRateService  # noqa: E402
from app.services.market_data.base import PriceSource, SpotPrice  # noqa: E402
from app.services.market_data.fx_sources import RateTableSource  # noqa: E402
from app.services.market_data.price_cache import PriceCache  # noqa: E402
from app.services.valuation import InvestmentService  # noqa: E402


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# CLOCK
# =============================================================================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# MOCK PRICE SOURCE
# =============================================================================

class MockPriceSource(PriceSource):
    """
    Mock implementation of PriceSource for testing.

    Prices are configured per asset id; failures can be switched on to
    simulate an unavailable provider.
    """

    def __init__(self, prices: dict[str, str | Decimal] | None = None):
        self._prices: dict[str, Decimal] = {}
        self._changes: dict[str, Decimal] = {}
        self._error: Exception | None = None
        self.calls: list[list[str]] = []
        for asset_id, price in (prices or {}).items():
            self.set_price(asset_id, price)

    @property
    def name(self) -> str:
        return "mock"

    def set_price(self, asset_id: str, price: str | Decimal, change_24h: str | Decimal = "0") -> None:
        self._prices[asset_id] = Decimal(str(price))
        self._changes[asset_id] = Decimal(str(change_24h))

    def remove_price(self, asset_id: str) -> None:
        self._prices.pop(asset_id, None)

    def fail_with(self, error: Exception | None = None) -> None:
        """Make every subsequent call raise (default: ProviderUnavailableError)."""
        self._error = error or ProviderUnavailableError(provider=self.name, reason="simulated outage")

    def recover(self) -> None:
        self._error = None

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def fetch_prices(self, asset_ids: list[str]) -> dict[str, SpotPrice]:
        self.calls.append(list(asset_ids))
        if self._error is not None:
            raise self._error
        return {
            asset_id: SpotPrice(
                asset_id=asset_id,
                price_usd=self._prices[asset_id],
                change_24h=self._changes[asset_id],
            )
            for asset_id in asset_ids
            if asset_id in self._prices
        }


@pytest.fixture
def price_source() -> MockPriceSource:
    """Mock source with bitcoin at 40000 USD and ethereum at 2000 USD."""
    return MockPriceSource({"bitcoin": "40000", "ethereum": "2000"})


# =============================================================================
# MOCK RATE SOURCE
# =============================================================================

class MockRateSource(RateTableSource):
    """Mock USD-based rate table source."""

    def __init__(self, name: str = "mock-fx", rates: dict[str, str] | None = None):
        self._name = name
        self._rates = {code: Decimal(value) for code, value in (rates or {}).items()}
        self._failing = False
        self.call_count = 0

    @property
    def name(self) -> str:
        return self._name

    def set_rate(self, currency: str, rate: str) -> None:
        self._rates[currency] = Decimal(rate)

    def fail(self) -> None:
        self._failing = True

    def recover(self) -> None:
        self._failing = False

    def fetch_rates(self) -> dict[str, Decimal]:
        self.call_count += 1
        if self._failing:
            raise FXProviderError(provider=self._name, reason="simulated outage")
        return dict(self._rates)


@pytest.fixture
def rate_source() -> MockRateSource:
    """Rate source quoting 300 PKR per USD."""
    return MockRateSource(rates={"PKR": "300", "EUR": "0.9", "GBP": "0.8"})


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def fx_service(rate_source: MockRateSource, clock: FakeClock) -> FXRateService:
    return FXRateService(sources=[rate_source], ttl_seconds=3600, local_currency="PKR", clock=clock)


@pytest.fixture
def price_cache(price_source: MockPriceSource, fx_service: FXRateService, clock: FakeClock) -> PriceCache:
    return PriceCache(source=price_source, fx_service=fx_service, ttl_seconds=60, clock=clock)


@pytest.fixture
def investment_service(price_cache: PriceCache, fx_service: FXRateService) -> InvestmentService:
    return InvestmentService(price_cache=price_cache, fx_service=fx_service)


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def build_investment(
        user_id: str = "user-1",
        asset_id: str = "bitcoin",
        asset_name: str = "Bitcoin",
        symbol: str = "BTC",
        invested_amount: str = "100000",
        quantity: str = "0.01",
        purchase_price_usd: str = "33333.33",
        exchange_rate_at_purchase: str = "300",
        original_currency: str = "PKR",
        purchase_date: date | None = None,
        status: InvestmentStatus = InvestmentStatus.ACTIVE,
        realized_profit_loss: str | None = None,
        investment_id: int | None = None,
) -> Investment:
    """Factory for transient Investment objects (not added to a session)."""
    invested = Decimal(invested_amount)
    qty = Decimal(quantity)
    return Investment(
        id=investment_id,
        user_id=user_id,
        asset_id=asset_id,
        asset_name=asset_name,
        symbol=symbol,
        invested_amount=invested,
        quantity=qty,
        purchase_price_local=(invested / qty).quantize(Decimal("0.00000001")),
        purchase_price_usd=Decimal(purchase_price_usd),
        purchase_date=purchase_date or date.today() - timedelta(days=30),
        original_currency=original_currency,
        exchange_rate_at_purchase=Decimal(exchange_rate_at_purchase),
        status=status,
        realized_profit_loss=Decimal(realized_profit_loss) if realized_profit_loss is not None else None,
        notes=None,
        tags=[],
    )


def create_investment(db: Session, **kwargs) -> Investment:
    """Factory function for creating Investment entities in the database."""
    investment = build_investment(**kwargs)
    db.add(investment)
    db.commit()
    db.refresh(investment)
    return investment
