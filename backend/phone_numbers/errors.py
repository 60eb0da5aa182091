"""Typed failures raised while searching, buying and releasing phone numbers.

``InsufficientBalance`` and ``NotFound`` come from the wallet and are
re-exported so callers only need this module.
"""
from __future__ import annotations

from wallet.errors import InsufficientBalance, NotFound

__all__ = [
    "InsufficientBalance",
    "InvalidAssignment",
    "NotConfigured",
    "NotFound",
    "NumberUnavailable",
    "NumbersError",
    "PricingUnavailable",
    "PrimaryNumberInUse",
    "ProviderFailure",
]


class NumbersError(Exception):
    """Base exception for phone number operations."""

    code = "NUMBERS_ERROR"


class NotConfigured(NumbersError):
    """Raised when the telephony provider has no usable credentials."""

    code = "TWILIO_NOT_CONFIGURED"


class NumberUnavailable(NumbersError):
    """Raised when the requested number was taken before we could buy it."""

    code = "NUMBER_UNAVAILABLE"


class ProviderFailure(NumbersError):
    """Raised for any other telephony provider error."""

    code = "PROVIDER_FAILURE"

    def __init__(self, message: str, *, provider_code=None):
        self.provider_code = provider_code
        super().__init__(message)


class PricingUnavailable(NumbersError, ValueError):
    code = "PRICING_UNAVAILABLE"


class PrimaryNumberInUse(NumbersError):
    """Raised when releasing a business's primary number while it has others."""

    code = "PRIMARY_NUMBER_DELETE"


class InvalidAssignment(NumbersError, ValueError):
    code = "INVALID_ASSIGNMENT"
