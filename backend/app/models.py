# backend/app/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Enum, Numeric, JSON, Index, CheckConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class InvestmentStatus(str, enum.Enum):
    """
    Lifecycle of an investment record.

    State transitions:
        ACTIVE → PARTIAL (some quantity sold)
        ACTIVE → SOLD (everything sold)
        PARTIAL → PARTIAL | SOLD

        SOLD is terminal.
    """
    ACTIVE = "active"
    PARTIAL = "partial"
    SOLD = "sold"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Money and quantities share one column type so Decimal round-trips unchanged
_AMOUNT = Numeric(18, 8)


class Investment(Base):
    """
    One purchase lot of a crypto asset held by a user.

    The cost basis is recorded in the user's original currency together with
    the USD spot price and the local-per-USD exchange rate observed at
    purchase time. Sells mutate the record in place: a partial sell shrinks
    quantity and invested_amount pro rata, a full sell freezes them and flips
    status to SOLD. Realized P&L accumulates across successive sells.
    """
    __tablename__ = "investments"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_investment_quantity_positive"),
        CheckConstraint("invested_amount > 0", name="ck_investment_invested_positive"),
        # Portfolio listing: WHERE user_id = ? ORDER BY purchase_date DESC
        Index("ix_investment_user_purchase_date", "user_id", "purchase_date"),
        Index("ix_investment_user_status", "user_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)

    # Identity of the asset (registry id such as "bitcoin")
    asset_id: Mapped[str] = mapped_column(String(50))
    asset_name: Mapped[str] = mapped_column(String(100))
    symbol: Mapped[str] = mapped_column(String(20))

    # Cost basis
    invested_amount: Mapped[Decimal] = mapped_column(_AMOUNT)
    quantity: Mapped[Decimal] = mapped_column(_AMOUNT)
    purchase_price_local: Mapped[Decimal] = mapped_column(_AMOUNT)
    purchase_price_usd: Mapped[Decimal] = mapped_column(_AMOUNT)
    purchase_date: Mapped[date] = mapped_column(Date)

    # Provenance: local units per 1 USD when the lot was bought
    original_currency: Mapped[str] = mapped_column(String(3), default="PKR")
    exchange_rate_at_purchase: Mapped[Decimal] = mapped_column(_AMOUNT)

    # Lifecycle
    status: Mapped[InvestmentStatus] = mapped_column(
        Enum(InvestmentStatus, values_callable=lambda e: [m.value for m in e]),
        default=InvestmentStatus.ACTIVE,
    )

    # Most recent sale
    sell_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sell_price_local: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)
    sell_price_usd: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)
    sell_quantity: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)

    # Cumulative over every sale of this lot
    realized_profit_loss: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)
    realized_profit_loss_percentage: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)
    realized_profit_loss_usd: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)
    realized_cost_basis_usd: Mapped[Decimal | None] = mapped_column(_AMOUNT, nullable=True)

    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<Investment(id={self.id}, user={self.user_id}, asset={self.asset_id}, "
            f"qty={self.quantity}, status={self.status.value if self.status else None})>"
        )
