# backend/app/middleware/__init__.py
"""
ASGI middleware for the investment tracker.

Usage:
    from app.middleware import CorrelationIdMiddleware

    app.add_middleware(CorrelationIdMiddleware)
"""

from app.middleware.correlation import CorrelationIdMiddleware

__all__ = [
    "CorrelationIdMiddleware",
]
