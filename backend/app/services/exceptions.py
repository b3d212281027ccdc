# backend/app/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The router layer is responsible for mapping these to appropriate HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   ├── UnsupportedAssetError
    │   └── InsufficientQuantityError
    ├── NotFoundError
    │   └── InvestmentNotFoundError
    ├── ConflictError
    │   ├── InvestmentAlreadySoldError
    │   └── ConcurrentModificationError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   └── RateLimitError
    └── FXRateError
        └── FXProviderError

    CircuitBreakerOpen (from circuit_breaker module)
        - Raised when a provider's circuit breaker is open

MarketDataError, FXRateError and CircuitBreakerOpen never leave the price
cache or FX service: those components degrade to cached or static data.
"""

from decimal import Decimal


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when a request is well-formed but violates a business rule.

    Shape checks (types, required fields) are handled by Pydantic before a
    request reaches the service layer.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class UnsupportedAssetError(ValidationError):
    """Raised when an asset id is not in the supported registry."""

    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Unsupported asset: '{asset_id}'", field="asset_id")


class InsufficientQuantityError(ValidationError):
    """
    Raised when a sell quantity is not in (0, held quantity].

    Attributes:
        requested: Quantity the caller tried to sell
        available: Quantity currently held
    """

    def __init__(self, requested: Decimal, available: Decimal) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient quantity: requested {requested}, available {available}",
            field="sell_quantity",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Investment")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class InvestmentNotFoundError(NotFoundError):
    """
    Raised when an investment does not exist or belongs to another user.

    Both cases are reported identically so record ids cannot be probed.
    """

    def __init__(self, investment_id: int) -> None:
        self.investment_id = investment_id
        super().__init__(
            f"Investment {investment_id} not found",
            resource_type="Investment",
            resource_id=investment_id,
        )


# =============================================================================
# CONFLICT ERRORS
# =============================================================================


class ConflictError(ServiceError):
    """
    Base exception for requests that clash with the record's current state.

    Callers are expected to re-fetch and decide again; retrying the same
    request unchanged will not succeed.
    """

    def __init__(self, message: str, resource_id: int | str | None = None) -> None:
        self.resource_id = resource_id
        super().__init__(message)


class InvestmentAlreadySoldError(ConflictError):
    """Raised when selling an investment whose status is already SOLD."""

    def __init__(self, investment_id: int) -> None:
        self.investment_id = investment_id
        super().__init__(
            f"Investment {investment_id} is already sold",
            resource_id=investment_id,
        )


class ConcurrentModificationError(ConflictError):
    """
    Raised when a conditional update matched no row.

    Another request changed the investment's status or quantity between
    the read and the write.
    """

    def __init__(self, investment_id: int) -> None:
        self.investment_id = investment_id
        super().__init__(
            f"Investment {investment_id} was modified concurrently; reload and retry",
            resource_id=investment_id,
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for price provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a price provider cannot serve the request.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)
    - Malformed or empty payload

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class RateLimitError(MarketDataError):
    """
    Raised when the provider's rate limit has been exceeded (HTTP 429).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# FX RATE ERRORS
# =============================================================================


class FXRateError(ServiceError):
    """Base exception for FX rate errors."""
    pass


class FXProviderError(FXRateError):
    """
    Raised when an FX rate table source fails.

    Attributes:
        provider: Name of the FX data provider
        reason: Specific reason for failure
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"FX provider '{provider}' error: {reason}")


# =============================================================================
# CIRCUIT BREAKER (re-exported for convenience)
# =============================================================================

from app.services.circuit_breaker import CircuitBreakerOpen  # noqa: E402

__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "UnsupportedAssetError",
    "InsufficientQuantityError",
    # Not Found
    "NotFoundError",
    "InvestmentNotFoundError",
    # Conflict
    "ConflictError",
    "InvestmentAlreadySoldError",
    "ConcurrentModificationError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "RateLimitError",
    # FX Rate
    "FXRateError",
    "FXProviderError",
    # Circuit Breaker
    "CircuitBreakerOpen",
]
