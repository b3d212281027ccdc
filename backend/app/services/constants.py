# backend/app/services/constants.py
"""
Business constants shared by the pricing, FX and valuation services.

Usage:
    from app.services.constants import (
        CURRENCY_PRECISION,
        STATIC_FX_RATES,
        PRICE_PROVIDER_RETRY_ATTEMPTS,
    )
"""

from decimal import Decimal


# =============================================================================
# CURRENCIES
# =============================================================================

# Base of every rate table: rates are "units of currency per 1 USD"
BASE_CURRENCY: str = "USD"

# Currencies an investment may be recorded in
SUPPORTED_INVESTMENT_CURRENCIES: tuple[str, ...] = ("PKR", "USD", "EUR", "GBP")

# Last-resort rate table when every FX source is down.
# Also the base layer that fetched rates are merged over, so currencies a
# source does not publish (Frankfurter has no PKR) keep a usable value.
STATIC_FX_RATES: dict[str, Decimal] = {
    "PKR": Decimal("280"),
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "INR": Decimal("83"),
    "CAD": Decimal("1.35"),
    "AUD": Decimal("1.52"),
}


# =============================================================================
# PROVIDER RESILIENCE
# =============================================================================

# Attempts per provider call (first try + one retry)
PRICE_PROVIDER_RETRY_ATTEMPTS: int = 2
FX_PROVIDER_RETRY_ATTEMPTS: int = 2

# Exponential backoff bounds between attempts (seconds)
PROVIDER_RETRY_WAIT_MIN: float = 0.5
PROVIDER_RETRY_WAIT_MAX: float = 2.0

# Consecutive failures before a provider is skipped
CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = 3

# Seconds a tripped provider is skipped before one probe call
CIRCUIT_BREAKER_RECOVERY_TIMEOUT: float = 30.0

# After every FX source failed, the degraded table is kept this long
# before the sources are tried again
FX_FAILURE_RETRY_SECONDS: int = 60

# Upper bound on distinct (currency, asset set) entries in the price cache
PRICE_CACHE_MAX_ENTRIES: int = 256


# =============================================================================
# REQUEST LIMITS
# =============================================================================

# Maximum asset ids in a single batch price request
MAX_BATCH_ASSET_IDS: int = 50

# Free-text limits on an investment
MAX_NOTES_LENGTH: int = 500
MAX_TAGS: int = 10
MAX_TAG_LENGTH: int = 30


# =============================================================================
# DECIMAL PRECISION CONSTANTS
# =============================================================================

# Currency amounts: 2 decimal places
# Used for: current value, invested amount, P&L amounts, sale proceeds
CURRENCY_PRECISION: Decimal = Decimal("0.01")

# Quantities, unit prices and FX rates: 8 decimal places (BTC has 8 decimals)
SHARE_PRECISION: Decimal = Decimal("0.00000001")

# Display percentage: 2 decimal places (e.g., 12.34%)
# Used for: P&L percentages, allocation, 24h change
DISPLAY_PERCENTAGE_PRECISION: Decimal = Decimal("0.01")

# Largest price or FX rate accepted from a provider. Keeps price × rate
# within the 28-digit decimal context when quantized to SHARE_PRECISION.
MAX_MARKET_VALUE: Decimal = Decimal("1000000000")


# =============================================================================
# UTILITY CONSTANTS
# =============================================================================

ZERO: Decimal = Decimal("0")
ONE: Decimal = Decimal("1")
HUNDRED: Decimal = Decimal("100")

# Used for holding period display (months / years)
DAYS_PER_MONTH: Decimal = Decimal("30.4375")
DAYS_PER_YEAR: Decimal = Decimal("365.25")
