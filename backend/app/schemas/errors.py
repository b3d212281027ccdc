# backend/app/schemas/errors.py
"""
Pydantic schemas for error responses.

Every non-2xx response from the API has one of these shapes.
Used by the global exception handlers in main.py.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """
    Standard error response format.

    `error` is the domain exception class name so clients can branch on it
    (e.g., 'InsufficientQuantityError' vs 'InvestmentAlreadySoldError').
    """

    error: str = Field(
        ...,
        description="Error type (e.g., 'InvestmentNotFoundError')"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: dict | None = Field(
        default=None,
        description="Additional error context, e.g. the offending field"
    )


class ValidationErrorDetail(BaseModel):
    """Request validation failure (422): one entry per invalid field."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(
        ...,
        description="List of field errors (field, message, type)"
    )
