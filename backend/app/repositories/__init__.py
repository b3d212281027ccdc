# backend/app/repositories/__init__.py
"""Database access objects, one per aggregate."""

from app.repositories.investment_repository import InvestmentRepository

__all__ = [
    "InvestmentRepository",
]
