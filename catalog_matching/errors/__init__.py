"""Error handling module."""
from catalog_matching.errors.exceptions import (
    CatalogMatchingError,
    ValidationError,
    DatabaseError,
    ConsolidationConflictError,
    DuplicateCodeError,
    CatalogEntryNotFoundError,
    LineMatchNotFoundError,
)

__all__ = [
    "CatalogMatchingError",
    "ValidationError",
    "DatabaseError",
    "ConsolidationConflictError",
    "DuplicateCodeError",
    "CatalogEntryNotFoundError",
    "LineMatchNotFoundError",
]
