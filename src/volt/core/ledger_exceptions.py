"""
Ledger-specific exception hierarchy for Volt.

Provides typed exceptions for staking ledger operations so callers can
distinguish a rejected operation (bad input, wrong state) from a failing
collaborator or a storage problem.

Every exception raised by a mutating operation aborts the whole operation;
the platform rolls back any partial effect before the exception propagates.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all ledger-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Account & Registration Errors ====================


class NotRegistered(LedgerError):
    """Raised when an unregistered account calls a gated operation."""
    pass


class AlreadyRegistered(LedgerError):
    """Raised when registering an account that already has a record."""
    pass


class InvalidReferrer(LedgerError):
    """Raised when a referrer is empty, self, unregistered or would form a cycle."""
    pass


class InvalidArrayLength(LedgerError):
    """Raised when paired batch inputs differ in length or a fixed-size list is wrong."""
    pass


class Unauthorized(LedgerError):
    """Raised when a non-owner calls an administrative operation."""
    pass


# ==================== Amount & Balance Errors ====================


class AmountIsZero(LedgerError):
    """Raised when an operation is given a zero (or negative) amount."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a lock or withdrawal exceeds the available balance."""
    pass


class BelowMinWithdraw(LedgerError):
    """Raised when a withdrawal is smaller than the configured minimum."""
    pass


class InsufficientLiquidity(LedgerError):
    """Raised when moving reserve out would leave claims uncovered."""
    pass


class BonusStillLocked(LedgerError):
    """Raised when claiming a bonus before any part of it has vested."""
    pass


# ==================== Lock Errors ====================


class InvalidDuration(LedgerError):
    """Raised when a lock duration is not one of the fixed tiers."""
    pass


class InvalidLockIndex(LedgerError):
    """Raised when a lock index is out of range or already unlocked."""
    pass


class ActiveLocksPresent(LedgerError):
    """Raised when a full exit is requested while locks are still active."""
    pass


class LockNotMatured(LedgerError):
    """Raised when unlocking before maturity while the maturity gate is on."""
    pass


# ==================== Parameter Errors ====================


class ParameterOutOfBounds(LedgerError):
    """Raised when an administrative parameter update violates its bound."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field = field


# ==================== Execution Errors ====================


class ReentrancyError(LedgerError):
    """Raised when a mutating operation is entered while another is running."""
    pass


class Paused(LedgerError):
    """Raised when a user operation is attempted while the platform is paused."""

    recoverable = True


class NotPaused(LedgerError):
    """Raised when unpausing a platform that is not paused."""
    pass


class CollaboratorError(LedgerError):
    """Raised when an external collaborator rejects a call."""
    pass


class TokenError(CollaboratorError):
    """Raised when the claim token rejects a mint or burn."""
    pass


class CustodyError(CollaboratorError):
    """Raised when reserve custody cannot move the requested amount."""
    pass


# ==================== Storage Errors ====================


class StorageError(LedgerError):
    """Raised when ledger storage operations fail."""
    recoverable = True


class CorruptedDataError(StorageError):
    """Raised when stored ledger data is corrupted or invalid."""
    recoverable = False  # Data corruption usually requires manual intervention


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error.

    Args:
        exc: The exception to check

    Returns:
        True if the error is recoverable and the operation can be retried
    """
    if isinstance(exc, LedgerError):
        return exc.recoverable
    return isinstance(exc, (OSError, TimeoutError))


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, ParameterOutOfBounds) and exc.field:
        context["field"] = exc.field

    return context
