"""Integration tests for CatalogEntryFactory.

Tests cover:
    - Entry created with original description and first price
    - Internal code collisions retried with a fresh code
    - Retry exhaustion
    - Pending entries
    - Empty descriptions
"""
import pytest
import re
from uuid import uuid4
from decimal import Decimal

from catalog_matching.db.models import ApprovalStatus
from catalog_matching.errors import DuplicateCodeError, ValidationError
from catalog_matching.services.catalog import CatalogEntryFactory, generate_internal_code

pytestmark = pytest.mark.integration


def fixed_codes(*codes):
    """Code generator returning the given codes in order."""
    iterator = iter(codes)
    return lambda: next(iterator)


class TestGenerateInternalCode:
    """Tests for internal code generation."""

    def test_format(self):
        """Test the PROD-{millis}-{6 chars} format."""
        assert re.fullmatch(r"PROD-\d{13}-[A-Z0-9]{6}", generate_internal_code())


class TestCatalogEntryFactory:
    """Tests for catalog entry creation."""

    @pytest.mark.asyncio
    async def test_entry_created(self, existing_entry, tenant_id, supplier, invoice_ref):
        """Test that a new entry carries description, price and provenance."""
        entry = existing_entry

        assert entry.tenant_id == tenant_id
        assert entry.description == "Widget Pro 500"
        assert entry.normalized_description == "widget pro 500"
        assert entry.unit_of_measure == "PZ"
        assert entry.approval_status == ApprovalStatus.APPROVED
        assert entry.approved_at is not None
        assert entry.attributes["source_line_number"] == 1

        [ledger] = entry.supplier_ledgers
        [record] = ledger.price_history
        assert ledger.supplier_fiscal_id == supplier.fiscal_id
        assert ledger.current_price == Decimal("10.00")
        assert record.quantity == Decimal("2")
        assert record.currency == "EUR"
        assert record.source_invoice_id == invoice_ref.invoice_id

    @pytest.mark.asyncio
    async def test_line_metadata_in_attributes(self, factory, tenant_id, supplier, invoice_ref, make_line):
        """Test that article code and VAT rate are kept as attributes."""
        entry = await factory.create_entry(
            tenant_id,
            make_line("Vite M6x20 inox", article_code="V-620", vat_rate=Decimal("22")),
            supplier,
            invoice_ref,
        )

        assert entry.attributes["supplier_article_codes"] == {supplier.fiscal_id: "V-620"}
        assert entry.attributes["vat_rate"] == "22"

    @pytest.mark.asyncio
    async def test_code_collision_retried(
        self, session_maker, existing_entry, tenant_id, supplier, invoice_ref, make_line
    ):
        """Test that a colliding code is replaced by a fresh one."""
        factory = CatalogEntryFactory(
            session_maker,
            code_generator=fixed_codes(existing_entry.internal_code, "PROD-NEW"),
        )

        entry = await factory.create_entry(tenant_id, make_line("Gadget 200"), supplier, invoice_ref)

        assert entry.internal_code == "PROD-NEW"

    @pytest.mark.asyncio
    async def test_same_code_allowed_for_other_tenant(
        self, session_maker, existing_entry, supplier, invoice_ref, make_line
    ):
        """Test that internal codes are unique per tenant only."""
        factory = CatalogEntryFactory(
            session_maker, code_generator=fixed_codes(existing_entry.internal_code)
        )

        entry = await factory.create_entry(uuid4(), make_line("Widget Pro 500"), supplier, invoice_ref)

        assert entry.internal_code == existing_entry.internal_code

    @pytest.mark.asyncio
    async def test_collision_exhaustion(
        self, session_maker, existing_entry, tenant_id, supplier, invoice_ref, make_line
    ):
        """Test that DuplicateCodeError is raised when every code collides."""
        factory = CatalogEntryFactory(
            session_maker,
            code_generator=lambda: existing_entry.internal_code,
            max_attempts=3,
        )

        with pytest.raises(DuplicateCodeError) as exc_info:
            await factory.create_entry(tenant_id, make_line("Gadget 200"), supplier, invoice_ref)

        assert exc_info.value.details["last_code"] == existing_entry.internal_code

    @pytest.mark.asyncio
    async def test_pending_entry(self, factory, tenant_id, supplier, invoice_ref, make_line):
        """Test that a pending entry has no approval timestamp."""
        entry = await factory.create_entry(
            tenant_id,
            make_line("Gadget 200"),
            supplier,
            invoice_ref,
            approval_status=ApprovalStatus.PENDING,
        )

        assert entry.approval_status == ApprovalStatus.PENDING
        assert entry.approved_at is None

    @pytest.mark.asyncio
    async def test_reviewer_description_wins(self, factory, tenant_id, supplier, invoice_ref, make_line):
        """Test that an explicit description replaces the line text."""
        entry = await factory.create_entry(
            tenant_id,
            make_line("GADG.200 CF10"),
            supplier,
            invoice_ref,
            description="Gadget 200 (conf. 10 pz)",
            approved_by="reviewer-1",
        )

        assert entry.description == "Gadget 200 (conf. 10 pz)"
        assert entry.approved_by == "reviewer-1"
        assert entry.alternative_descriptions[0].added_by == "reviewer-1"

    @pytest.mark.asyncio
    async def test_empty_description_rejected(self, factory, tenant_id, supplier, invoice_ref, make_line):
        """Test that an entry needs a description."""
        with pytest.raises(ValidationError):
            await factory.create_entry(tenant_id, make_line("   "), supplier, invoice_ref)
