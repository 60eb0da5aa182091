"""Typed failures raised by the wallet ledger.

Views and tasks branch on these classes; each carries a stable ``code`` that is
returned to API clients alongside the human-readable message.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional


class WalletError(Exception):
    """Base exception for wallet ledger operations."""

    code = "WALLET_ERROR"


class InsufficientBalance(WalletError):
    """Raised when a debit would take a balance below zero."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, *, required: Decimal, available: Optional[Decimal], currency: str):
        self.required = required
        self.available = available
        self.currency = currency
        if available is None:
            message = f"Insufficient {currency} balance: {required} required, balance unavailable."
        else:
            message = f"Insufficient {currency} balance: {required} required, {available} available."
        super().__init__(message)


class InvalidAmount(WalletError, ValueError):
    """Raised when an amount is missing, malformed or not strictly positive."""

    code = "INVALID_AMOUNT"


class UnsupportedCurrency(WalletError, ValueError):
    """Raised for currencies the wallet does not hold a balance in."""

    code = "UNSUPPORTED_CURRENCY"


class InvalidTransition(WalletError):
    """Raised when a transaction status change is not allowed."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, transaction_id: Optional[str] = None):
        self.current = current
        self.requested = requested
        label = f"Transaction {transaction_id}" if transaction_id else "Transaction"
        super().__init__(f"{label} cannot move from {current} to {requested}.")


class NotFound(WalletError):
    """Raised when a wallet-owned resource does not exist for the caller."""

    code = "NOT_FOUND"
