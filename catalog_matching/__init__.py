"""Product matching and price consolidation engine for invoice line items."""

__version__ = "1.0.0"
