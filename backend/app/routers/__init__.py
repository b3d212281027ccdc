# backend/app/routers/__init__.py
"""
API routers for the Crypto Investment Tracker.

Each router handles a specific domain:
- investments: Crypto investments, sells, portfolio summary and prices
"""

from app.routers.investments import router as investments_router

__all__ = [
    "investments_router",
]
