"""
Domain Errors

Every failure in the ledger is value-level: raised with a message the
caller can show as-is. Write paths are all-or-nothing, so when one of
these is raised nothing has been persisted.

Storage errors (StorageError, NotFoundError) live next to the storage
interface they belong to.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    Input or state rejected by a business rule.

    Carries the signed outstanding amount when the rule is an
    allocation check, so the UI can show exactly what is left.
    """

    def __init__(
        self,
        message: str,
        delta: Optional[Decimal] = None,
        issues: Optional[list] = None,
    ):
        super().__init__(message)
        self.message = message
        self.delta = delta
        self.issues = list(issues or [])


class MonthClosedError(ValidationError):
    """Attempted to modify the transactions of a closed month."""

    def __init__(self, month_key: str):
        super().__init__(f"Month {month_key} is closed and can no longer be modified")
        self.month_key = month_key


class AllocationMismatchError(ValidationError):
    """An allocation pass does not sum to its target."""

    def __init__(
        self,
        stage: str,
        delta: Decimal,
        message: Optional[str] = None,
        issues: Optional[list] = None,
    ):
        super().__init__(
            message or f"Allocation ({stage}) is off by {delta}",
            delta=delta,
            issues=issues,
        )
        self.stage = stage


class AuthorizationError(LedgerError):
    """A gated operation was attempted with the wrong secret."""
    pass


class ExternalServiceError(LedgerError):
    """A notification or export collaborator failed."""

    def __init__(
        self,
        service: str,
        message: str,
        recipient: Optional[str] = None,
    ):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message
        self.recipient = recipient
