"""
Exceptions shared across the bundler.

Adapter-specific errors live next to their interfaces
(bundler.ledger.interface, bundler.relay.interface).
"""

from typing import Optional


class BundlerError(Exception):
    """Base class for all bundler errors."""
    pass


class InvalidCapacity(BundlerError, ValueError):
    """Raised when a group capacity is not a positive integer."""

    def __init__(self, capacity: int):
        super().__init__(f"Group capacity must be positive, got {capacity}")
        self.capacity = capacity


class DuplicateTip(BundlerError):
    """Raised when a bundle set already carries its tip."""
    pass


class SealedGroupError(BundlerError):
    """Raised when a sealed group is modified or sealed again."""
    pass


class ConfirmationTimeout(BundlerError):
    """
    Raised when submitted bundles did not confirm in time.

    The outcome is unknown: the relay or the ledger may still apply
    the bundles after this is raised.
    """

    def __init__(self, message: str, records: Optional[list] = None):
        super().__init__(message)
        self.records = records or []


class RetryExhausted(BundlerError):
    """Raised when every submission attempt failed."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error

    @property
    def outcome_unknown(self) -> bool:
        """True when the last attempt timed out, so its bundles may still land."""
        return isinstance(self.last_error, ConfirmationTimeout)
