# backend/app/utils/context.py
"""
Request-scoped context for the investment tracker.

Two values travel with every request:
- correlation_id: request tracing across log lines
- user_id: the caller identified by the X-User-ID header

Both live in contextvars so they propagate through async/await and
threadpool-executed sync endpoints without being passed explicitly.

Usage:
    from app.utils.context import get_correlation_id, set_user_id

    set_user_id("user-42")
    logger.info("...")  # log line carries user-42
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


# =============================================================================
# CORRELATION ID
# =============================================================================

def get_correlation_id() -> str | None:
    """Return the current request's correlation ID, or None outside a request."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


# =============================================================================
# USER ID
# =============================================================================

def get_user_id() -> str | None:
    """Return the user the current request acts for, if known."""
    return _user_id_var.get()


def set_user_id(user_id: str) -> None:
    """
    Bind the caller's user ID to the current context.

    Set by the get_current_user_id dependency once the X-User-ID header
    has been validated, so service-layer logs can be attributed.
    """
    _user_id_var.set(user_id)


def clear_user_id() -> None:
    _user_id_var.set(None)
