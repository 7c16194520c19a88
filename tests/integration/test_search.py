"""Integration tests for tenant-scoped similarity search.

Tests cover:
    - Exact matches found through the database
    - Rejected entries excluded
    - Tenant isolation
"""
import pytest
from uuid import uuid4

from catalog_matching.db.models import ApprovalStatus
from catalog_matching.services.matching import find_similar_products

pytestmark = pytest.mark.integration


class TestFindSimilarProducts:
    """Tests for find_similar_products."""

    @pytest.mark.asyncio
    async def test_exact_match(self, session_maker, existing_entry, tenant_id):
        """Test that the stored entry is found with exact confidence."""
        async with session_maker() as session:
            candidates = await find_similar_products(session, tenant_id, "widget PRO 500")

        assert candidates[0].entry.id == existing_entry.id
        assert candidates[0].is_exact

    @pytest.mark.asyncio
    async def test_rejected_entries_excluded(
        self, factory, session_maker, tenant_id, supplier, invoice_ref, make_line
    ):
        """Test that rejected entries are never candidates."""
        await factory.create_entry(
            tenant_id,
            make_line("Gadget 200 acciaio"),
            supplier,
            invoice_ref,
            approval_status=ApprovalStatus.REJECTED,
        )

        async with session_maker() as session:
            candidates = await find_similar_products(session, tenant_id, "Gadget 200 acciaio")

        assert candidates == []

    @pytest.mark.asyncio
    async def test_other_tenant_catalog_invisible(self, session_maker, existing_entry):
        """Test that another tenant's catalog is never searched."""
        async with session_maker() as session:
            candidates = await find_similar_products(session, uuid4(), "Widget Pro 500")

        assert candidates == []
