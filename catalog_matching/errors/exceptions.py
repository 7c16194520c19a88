"""Custom exception hierarchy for the catalog matching engine."""
from typing import Any, Dict, Optional


class CatalogMatchingError(Exception):
    """Base exception for all catalog matching errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with message and optional structured details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(CatalogMatchingError):
    """Raised when input data validation fails."""
    pass


class DatabaseError(CatalogMatchingError):
    """Raised when database operations fail."""
    pass


class ConsolidationConflictError(DatabaseError):
    """Raised when a price could not be consolidated after all retry attempts.

    Concurrent writers kept winning the optimistic-lock race on the same
    supplier ledger.
    """
    pass


class DuplicateCodeError(DatabaseError):
    """Raised when no unique internal code could be assigned to a new entry."""
    pass


class CatalogEntryNotFoundError(CatalogMatchingError):
    """Raised when a catalog entry does not exist for the given tenant."""
    pass


class LineMatchNotFoundError(CatalogMatchingError):
    """Raised when an invoice line projection does not exist for the given tenant."""
    pass
