"""Pytest configuration and fixtures for test suite.

This is the root-level conftest.py that provides:
- Environment variable defaults (set before catalog_matching is imported,
  since settings are read at import time)
- Shared fixtures for all tests

Integration-specific fixtures are in tests/integration/conftest.py
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("LOG_LEVEL", "INFO")

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from catalog_matching.models import InvoiceLineItem, InvoiceReference, SupplierIdentity


@pytest.fixture
def tenant_id():
    """A fresh tenant id per test."""
    return uuid4()


@pytest.fixture
def supplier():
    """Primary supplier; VAT number written with the IT prefix."""
    return SupplierIdentity(fiscal_id="IT01234567890", name="Ferramenta Rossi Srl")


@pytest.fixture
def other_supplier():
    """A second supplier with a different legal identity."""
    return SupplierIdentity(fiscal_id="09876543210", name="Bulloneria Bianchi SpA")


@pytest.fixture
def invoice_ref():
    """Invoice reference used as price provenance."""
    return InvoiceReference(
        invoice_id="INV-2024-001",
        invoice_number="1/2024",
        invoice_date=date(2024, 1, 15),
    )


@pytest.fixture
def make_line():
    """Factory for invoice lines with sensible product defaults."""
    def _make_line(
        description,
        unit_price="10.00",
        quantity="1",
        line_number=1,
        **kwargs
    ) -> InvoiceLineItem:
        return InvoiceLineItem(
            line_number=line_number,
            description=description,
            unit_price=Decimal(unit_price),
            quantity=Decimal(quantity),
            **kwargs
        )
    return _make_line
