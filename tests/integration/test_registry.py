"""Integration tests for AlternativeDescriptionRegistry.

Tests cover:
    - Original description recorded at creation
    - New phrasings and repeat sightings
    - Empty phrasings
    - Best-effort recording
"""
import pytest
from uuid import uuid4

from catalog_matching.db.models import DescriptionProvenance
from catalog_matching.db.operations import get_catalog_entry
from catalog_matching.errors import ValidationError

pytestmark = pytest.mark.integration


async def reload(session_maker, tenant_id, entry_id):
    async with session_maker() as session:
        return await get_catalog_entry(session, tenant_id, entry_id)


class TestAlternativeDescriptionRegistry:
    """Tests for alternative description upserts."""

    @pytest.mark.asyncio
    async def test_original_recorded_on_creation(self, existing_entry):
        """Test that a new entry carries its own description as original."""
        [original] = existing_entry.alternative_descriptions

        assert original.provenance == DescriptionProvenance.ORIGINAL
        assert original.normalized_text == "widget pro 500"
        assert original.frequency == 1
        assert original.confidence == 1.0

    @pytest.mark.asyncio
    async def test_new_phrasing_added(self, registry, session_maker, existing_entry, tenant_id):
        """Test that a new phrasing gets its own record."""
        await registry.add_alternative_description(
            tenant_id, existing_entry.id, "WIDGET PRO-500 BLU", DescriptionProvenance.INVOICE
        )

        entry = await reload(session_maker, tenant_id, existing_entry.id)
        texts = {a.normalized_text: a for a in entry.alternative_descriptions}

        assert set(texts) == {"widget pro 500", "widget pro 500 blu"}
        assert texts["widget pro 500 blu"].provenance == DescriptionProvenance.INVOICE
        assert texts["widget pro 500 blu"].confidence == 0.8

    @pytest.mark.asyncio
    async def test_repeat_increments_frequency(self, registry, session_maker, existing_entry, tenant_id):
        """Test that the same normalized phrasing bumps the existing record."""
        await registry.add_alternative_description(tenant_id, existing_entry.id, "widget pro 500")
        await registry.add_alternative_description(tenant_id, existing_entry.id, "Widget, Pro 500!")

        entry = await reload(session_maker, tenant_id, existing_entry.id)
        [record] = entry.alternative_descriptions

        assert record.frequency == 3
        assert record.provenance == DescriptionProvenance.ORIGINAL
        assert record.text == "Widget Pro 500"

    @pytest.mark.asyncio
    async def test_manual_phrasing_keeps_reviewer(self, registry, session_maker, existing_entry, tenant_id):
        """Test that manual records keep who added them."""
        await registry.add_alternative_description(
            tenant_id, existing_entry.id, "Widget professionale 500",
            DescriptionProvenance.MANUAL, added_by="reviewer-1",
        )

        entry = await reload(session_maker, tenant_id, existing_entry.id)
        manual = [a for a in entry.alternative_descriptions if a.provenance == DescriptionProvenance.MANUAL]

        assert len(manual) == 1
        assert manual[0].added_by == "reviewer-1"

    @pytest.mark.asyncio
    async def test_empty_phrasing_rejected(self, registry, existing_entry, tenant_id):
        """Test that a phrasing without words is rejected."""
        with pytest.raises(ValidationError):
            await registry.add_alternative_description(tenant_id, existing_entry.id, " -- ")

    @pytest.mark.asyncio
    async def test_best_effort_swallows_failures(self, registry, tenant_id):
        """Test that best-effort recording returns None instead of raising."""
        result = await registry.record_best_effort(tenant_id, uuid4(), "Widget Pro 500")

        assert result is None
