# backend/app/utils/__init__.py
"""
Cross-cutting utilities for the investment tracker.

- logging: root logger setup with request context on every record
- context: contextvars for correlation ID and caller user ID

Usage:
    from app.utils import setup_logging
    from app.utils import get_correlation_id, set_user_id
"""

from app.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    get_user_id,
    set_user_id,
    clear_user_id,
)
from app.utils.logging import setup_logging

__all__ = [
    # Logging
    "setup_logging",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_user_id",
    "set_user_id",
    "clear_user_id",
]
