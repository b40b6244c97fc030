"""
Exception hierarchy for the budgets engine and its stores.

Every error raised by this package derives from FinanceAppError and carries a
message, a ``details`` dictionary of context and optionally the lower level
exception it wraps.

    FinanceAppError
    ├── ConfigError
    ├── DatabaseError
    ├── SynchronizationError
    └── BudgetError
        ├── TimelineInvariantError
        ├── CategoryNotFoundError
        ├── PendingWriteError
        └── BudgetValidationError
"""

from typing import Any, Dict, Optional


class FinanceAppError(Exception):
    """
    Base class for budgets errors.

    Attributes:
        message: Human-readable error message
        details: Context such as ids, periods or field messages
        original_error: Lower level exception that triggered this one, if any
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}
        self.original_error = original_error

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({context})"


class ConfigError(FinanceAppError):
    """Configuration file or value could not be used."""


class DatabaseError(FinanceAppError):
    """The local SQLAlchemy store could not be opened or queried."""


class SynchronizationError(FinanceAppError):
    """
    The backing store failed or rejected a write.

    By the time this is raised the in-memory state has been rolled back.
    """


class BudgetError(FinanceAppError):
    """Base class for errors raised by the budget engine itself."""


class TimelineInvariantError(BudgetError):
    """
    A goal timeline or its cursor is inconsistent.

    Raised for duplicate periods, records out of order and cursors out of
    bounds. These indicate a bug and are never recovered from.
    """


class CategoryNotFoundError(BudgetError):
    """No category with the given id exists in the state."""


class PendingWriteError(BudgetError):
    """The category still has an unconfirmed write outstanding."""


class BudgetValidationError(BudgetError):
    """
    User input was rejected before any change was made.

    ``details`` maps each offending field to its message.
    """
