# backend/app/repositories/investment_repository.py
"""
Persistence for Investment records.

All queries are scoped to a user: a record that exists but belongs to
someone else is indistinguishable from a missing one.

apply_sale() is the only write that can race with another request, so it
is a compare-and-swap: the UPDATE matches the row only while its status
and quantity are still what the caller observed.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models import Investment, InvestmentStatus

logger = logging.getLogger(__name__)


class InvestmentRepository:
    """
    Repository for Investment.

    Usage:
        repo = InvestmentRepository(db)
        investments = repo.list_for_user("user-42")
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(
            self,
            user_id: str,
            statuses: Iterable[InvestmentStatus] | None = None,
    ) -> list[Investment]:
        """
        All investments of a user, newest purchase first.

        Args:
            user_id: Owner
            statuses: Restrict to these statuses (None = all)
        """
        query = select(Investment).where(Investment.user_id == user_id)
        if statuses is not None:
            query = query.where(Investment.status.in_(list(statuses)))
        query = query.order_by(Investment.purchase_date.desc(), Investment.id.desc())

        return list(self.session.scalars(query).all())

    def get_for_user(self, user_id: str, investment_id: int) -> Investment | None:
        return self.session.scalar(
            select(Investment).where(
                Investment.id == investment_id,
                Investment.user_id == user_id,
            )
        )

    def add(self, investment: Investment) -> Investment:
        """Insert and commit; returns the refreshed record with its id."""
        self.session.add(investment)
        self.session.commit()
        self.session.refresh(investment)
        logger.debug(f"Inserted investment {investment.id} for user {investment.user_id}")
        return investment

    def delete(self, investment: Investment) -> None:
        self.session.delete(investment)
        self.session.commit()

    def apply_sale(
            self,
            investment_id: int,
            expected_status: InvestmentStatus,
            expected_quantity: Decimal,
            values: dict[str, Any],
    ) -> bool:
        """
        Conditionally write sale results.

        The row is updated only if its status and quantity still equal the
        observed values. Returns False (and changes nothing) otherwise.
        """
        result = self.session.execute(
            update(Investment)
            .where(
                Investment.id == investment_id,
                Investment.status == expected_status,
                Investment.quantity == expected_quantity,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            self.session.rollback()
            logger.info(
                f"Conditional sale update matched {result.rowcount} rows for investment {investment_id}"
            )
            return False

        self.session.commit()
        return True

    def refresh(self, investment: Investment) -> Investment:
        self.session.refresh(investment)
        return investment
