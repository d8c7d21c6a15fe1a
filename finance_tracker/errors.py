"""Exception types raised by the finance tracker."""

from __future__ import annotations


class FinanceTrackerError(Exception):
    """Base class for all errors raised by this package."""


class AuthenticationError(FinanceTrackerError):
    """No user could be resolved for an operation that needs one."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class StoreError(FinanceTrackerError):
    """The ledger store failed to read or write."""


class ValidationError(FinanceTrackerError):
    """Input was rejected before reaching the store.

    ``field`` names the offending attribute when there is one so the UI can
    point at it.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field
