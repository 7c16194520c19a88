"""Database models for the catalog matching engine."""
from catalog_matching.db.models.catalog_entry import CatalogEntry, ApprovalStatus
from catalog_matching.db.models.alternative_description import (
    AlternativeDescription,
    DescriptionProvenance,
)
from catalog_matching.db.models.supplier_ledger import SupplierLedger
from catalog_matching.db.models.price_history import PriceHistory
from catalog_matching.db.models.invoice_line_match import InvoiceLineMatch

__all__ = [
    # Catalog
    "CatalogEntry",
    "ApprovalStatus",
    "AlternativeDescription",
    "DescriptionProvenance",
    "SupplierLedger",
    "PriceHistory",
    # Invoice line projection
    "InvoiceLineMatch",
]
