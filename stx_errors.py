"""
Exceptions for Stacks wallet operations.

Only programmer/input errors and failed reads are raised. Broadcast
rejections and stacking ineligibility are returned as result values.
"""

from __future__ import annotations


class STXWalletError(Exception):
    """Base exception for Stacks wallet errors."""


class IdentityError(STXWalletError):
    """Raised for a malformed secret or seed phrase, or a sender/identity mismatch."""


class NetworkQueryError(STXWalletError):
    """Raised when a read against the Stacks API fails."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class TransactionValidationError(STXWalletError, ValueError):
    """Raised when transaction parameters are rejected before any network call."""
