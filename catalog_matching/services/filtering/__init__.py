"""Non-product invoice line filter."""
from catalog_matching.services.filtering.line_filter import (
    NON_PRODUCT_PATTERNS,
    INFORMATIVE_NOTE_PATTERNS,
    SKIPPED_LINE_NOTE,
    LineFilterVerdict,
    evaluate_line,
    is_valid_product_line,
    product_signals,
)

__all__ = [
    "NON_PRODUCT_PATTERNS",
    "INFORMATIVE_NOTE_PATTERNS",
    "SKIPPED_LINE_NOTE",
    "LineFilterVerdict",
    "evaluate_line",
    "is_valid_product_line",
    "product_signals",
]
