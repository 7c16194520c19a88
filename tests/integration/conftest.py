"""Pytest fixtures for integration tests.

This conftest.py provides integration-specific fixtures:
- A file-backed SQLite database per test, schema created from the ORM models
- Session factory bound to it
- Catalog services wired to that session factory

The root tests/conftest.py handles environment defaults.
"""
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from catalog_matching.db.base import Base, build_engine, build_session_maker
from catalog_matching.models import InvoiceImport, InvoiceLineItem, InvoiceReference
from catalog_matching.services.catalog import (
    AlternativeDescriptionRegistry,
    CatalogEntryFactory,
    PriceConsolidationLedger,
)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Async engine on a fresh SQLite file; every connection waits on locks."""
    db_engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        connect_args={"timeout": 30},
    )
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test database."""
    return build_session_maker(engine)


@pytest.fixture
def ledger(session_maker):
    """Price ledger without waits between retries."""
    return PriceConsolidationLedger(session_maker, wait_max=0)


@pytest.fixture
def registry(session_maker):
    """Alternative description registry without waits between retries."""
    return AlternativeDescriptionRegistry(session_maker, wait_max=0)


@pytest.fixture
def factory(session_maker):
    """Catalog entry factory bound to the test database."""
    return CatalogEntryFactory(session_maker)


@pytest_asyncio.fixture
async def existing_entry(factory, tenant_id, supplier, invoice_ref, make_line):
    """An approved catalog entry created from a 'Widget Pro 500' line."""
    return await factory.create_entry(
        tenant_id,
        make_line("Widget Pro 500", unit_price="10.00", quantity="2", unit_of_measure="PZ"),
        supplier,
        invoice_ref,
    )


@pytest.fixture
def make_invoice(tenant_id, supplier):
    """Factory for invoice imports, from the primary supplier unless told otherwise."""
    def _make_invoice(
        lines,
        invoice_id="INV-2024-002",
        invoice_date=date(2024, 2, 1),
        from_supplier=None,
    ) -> InvoiceImport:
        return InvoiceImport(
            tenant_id=tenant_id,
            invoice=InvoiceReference(
                invoice_id=invoice_id,
                invoice_number=invoice_id.rsplit("-", 1)[-1],
                invoice_date=invoice_date,
            ),
            supplier=from_supplier or supplier,
            lines=[
                line if isinstance(line, InvoiceLineItem)
                else InvoiceLineItem(
                    line_number=number,
                    description=line[0],
                    unit_price=Decimal(line[1]),
                    quantity=Decimal("1"),
                )
                for number, line in enumerate(lines, start=1)
            ],
        )
    return _make_invoice
