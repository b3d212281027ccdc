# backend/app/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

This module provides:
- Asset id normalization
- Transaction date bounds (purchase and sell dates)
- Tag list cleanup

These validators ensure consistent input handling across all schemas.
"""

import re
from datetime import date

from app.services.constants import MAX_TAG_LENGTH, MAX_TAGS

# =============================================================================
# CONSTANTS
# =============================================================================

# Asset id: lower-case slug as used by the registry ("bitcoin", "bnb")
ASSET_ID_PATTERN = re.compile(r'^[a-z0-9][a-z0-9-]{0,49}$')

# No crypto purchase can predate the Bitcoin genesis block
MIN_VALID_DATE = date(2009, 1, 3)


# =============================================================================
# ASSET ID VALIDATION
# =============================================================================

def validate_asset_id(value: str) -> str:
    """
    Normalize an asset id (trim, lower-case) and check its shape.

    Whether the asset is actually supported is a business rule checked by
    the service layer.

    Raises:
        ValueError: If the id is empty or malformed
    """
    if not value or not value.strip():
        raise ValueError("Asset id cannot be empty")

    normalized = value.strip().lower()
    if not ASSET_ID_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid asset id: '{normalized}'. "
            "Use lower-case letters, digits and dashes (e.g. 'bitcoin')"
        )
    return normalized


# =============================================================================
# DATE VALIDATION
# =============================================================================

def validate_transaction_date(value: date) -> date:
    """
    Purchase/sell dates must be between MIN_VALID_DATE and today.

    Raises:
        ValueError: If the date is out of range
    """
    if value > date.today():
        raise ValueError("Date cannot be in the future")
    if value < MIN_VALID_DATE:
        raise ValueError(f"Date cannot be before {MIN_VALID_DATE.isoformat()}")
    return value


# =============================================================================
# TAGS
# =============================================================================

def normalize_tags(values: list[str] | None) -> list[str]:
    """
    Trim, drop empties and duplicates (case-insensitive, first spelling wins).

    Raises:
        ValueError: Too many tags or a tag longer than MAX_TAG_LENGTH
    """
    if not values:
        return []

    seen: set[str] = set()
    tags: list[str] = []
    for raw in values:
        tag = raw.strip()
        if not tag or tag.lower() in seen:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tag '{tag[:10]}...' exceeds {MAX_TAG_LENGTH} characters")
        seen.add(tag.lower())
        tags.append(tag)

    if len(tags) > MAX_TAGS:
        raise ValueError(f"At most {MAX_TAGS} tags are allowed")
    return tags
