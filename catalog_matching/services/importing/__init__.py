"""Invoice line import orchestration."""
from catalog_matching.services.importing.line_processor import (
    AUTO_APPROVAL_NOTE,
    InvoiceLineProcessor,
)

__all__ = [
    "AUTO_APPROVAL_NOTE",
    "InvoiceLineProcessor",
]
