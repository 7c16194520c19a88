"""Unit tests for Pydantic models.

Tests cover:
    - TenantMatchingConfig parsing, defaults and phase dependencies
    - Fiscal id normalization
    - InvoiceLineItem defaults and price observations
    - ImportSummary counters
"""
import pytest
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from catalog_matching.models import (
    ImportAction,
    ImportSummary,
    InvoiceImport,
    InvoiceLineItem,
    LineMatchingUpdate,
    LineOutcome,
    MatchingStatus,
    SupplierIdentity,
    TenantMatchingConfig,
    normalize_fiscal_id,
)


class TestTenantMatchingConfig:
    """Tests for TenantMatchingConfig snapshot."""

    def test_none_selects_legacy_mode(self):
        """Test that a missing configuration stays None."""
        assert TenantMatchingConfig.from_mapping(None) is None

    def test_defaults(self):
        """Test that an empty document is fully defaulted."""
        config = TenantMatchingConfig.from_mapping({})

        assert config.phase1.enabled is False
        assert config.phase1.confidence_threshold == 0.7
        assert config.phase1.auto_approve_above == 0.9
        assert config.phase1.require_manual_review is True
        assert config.phase2.require_approval_for_new is True
        assert config.phase3.analytics_level == "basic"

    def test_camel_case_document(self):
        """Test parsing the collaborator's camelCase document."""
        config = TenantMatchingConfig.from_mapping({
            "phase1": {
                "enabled": True,
                "confidenceThreshold": 0.75,
                "autoApproveAbove": 0.95,
                "requireManualReview": False,
            },
            "phase2": {"enabled": True, "requireApprovalForNew": False},
            "phase3": {"enabled": True, "analyticsLevel": "advanced"},
            "globalSettings": {"notifyReviewers": True},
        })

        assert config.phase1.confidence_threshold == 0.75
        assert config.phase1.auto_approve_above == 0.95
        assert config.phase1.require_manual_review is False
        assert config.phase2.require_approval_for_new is False
        assert config.phase3.analytics_level == "advanced"
        assert config.is_phase_enabled("phase3") is True

    def test_phase2_requires_phase1(self):
        """Test that phase 2 cannot be enabled without phase 1."""
        with pytest.raises(ValidationError):
            TenantMatchingConfig.from_mapping({"phase2": {"enabled": True}})

    def test_phase3_requires_phase2(self):
        """Test that phase 3 cannot be enabled without phase 2."""
        with pytest.raises(ValidationError):
            TenantMatchingConfig.from_mapping({
                "phase1": {"enabled": True},
                "phase3": {"enabled": True},
            })

    @pytest.mark.parametrize("phase1", [
        {"confidenceThreshold": 0.4},
        {"autoApproveAbove": 0.6},
        {"autoApproveAbove": 1.1},
    ])
    def test_threshold_ranges(self, phase1):
        """Test that out-of-range thresholds are rejected."""
        with pytest.raises(ValidationError):
            TenantMatchingConfig.from_mapping({"phase1": phase1})

    def test_snapshot_is_immutable(self):
        """Test that a snapshot cannot be modified during a run."""
        config = TenantMatchingConfig.from_mapping({})

        with pytest.raises(ValidationError):
            config.phase1.enabled = True


class TestFiscalId:
    """Tests for supplier fiscal id normalization."""

    @pytest.mark.parametrize("raw", [
        "01234567890",
        "IT01234567890",
        "it 012.345.678.90",
        " IT-01234567890 ",
    ])
    def test_italian_vat_forms(self, raw):
        """Test that all spellings of the same VAT number are equal."""
        assert normalize_fiscal_id(raw) == "01234567890"

    def test_foreign_vat_kept(self):
        """Test that non-Italian ids keep their country prefix."""
        assert normalize_fiscal_id("de 123456789") == "DE123456789"

    def test_supplier_identity_normalizes(self):
        """Test that SupplierIdentity stores the canonical id."""
        supplier = SupplierIdentity(fiscal_id="IT01234567890", name="Ferramenta Rossi")

        assert supplier.fiscal_id == "01234567890"

    def test_blank_fiscal_id_rejected(self):
        """Test that a fiscal id made of separators is rejected."""
        with pytest.raises(ValidationError):
            SupplierIdentity(fiscal_id=" . ")


class TestInvoiceLineItem:
    """Tests for InvoiceLineItem model."""

    def test_missing_amounts_default_to_zero(self):
        """Test that absent quantity and price become zero."""
        line = InvoiceLineItem(line_number=1, description="Widget", quantity=None, unit_price=None)

        assert line.quantity == Decimal("0")
        assert line.unit_price == Decimal("0")

    def test_price_observation_uses_default_currency(self):
        """Test that the observation falls back to the given currency."""
        line = InvoiceLineItem(
            line_number=1,
            description="Widget",
            quantity="2",
            unit_price="10.50",
            unit_of_measure="PZ",
        )

        observation = line.to_price_observation("EUR")

        assert observation.price == Decimal("10.50")
        assert observation.currency == "EUR"
        assert observation.quantity == Decimal("2")
        assert observation.unit_of_measure == "PZ"

    def test_price_observation_without_quantity(self):
        """Test that a zero quantity is not recorded."""
        line = InvoiceLineItem(line_number=1, description="Widget", unit_price="10", currency="usd")

        observation = line.to_price_observation("EUR")

        assert observation.quantity is None
        assert observation.currency == "USD"

    def test_line_supplier_overrides_invoice_supplier(self, supplier, other_supplier, invoice_ref):
        """Test that a per-line supplier wins over the invoice supplier."""
        line = InvoiceLineItem(line_number=2, description="Widget", supplier=other_supplier)
        invoice = InvoiceImport(
            tenant_id=uuid4(),
            invoice=invoice_ref,
            supplier=supplier,
            lines=[InvoiceLineItem(line_number=1, description="Gadget"), line],
        )

        assert invoice.supplier_for(invoice.lines[0]) == supplier
        assert invoice.supplier_for(line) == other_supplier


class TestImportSummary:
    """Tests for ImportSummary counters."""

    def test_to_dict_counts_actions(self):
        """Test that every action is counted."""
        tenant_id = uuid4()
        summary = ImportSummary(
            tenant_id=tenant_id,
            invoice_id="INV-1",
            outcomes=[
                LineOutcome(
                    line_number=1,
                    action=ImportAction.PRICE_ADDED,
                    update=LineMatchingUpdate(matching_status=MatchingStatus.MATCHED),
                ),
                LineOutcome(
                    line_number=2,
                    action=ImportAction.PRICE_ADDED,
                    update=LineMatchingUpdate(matching_status=MatchingStatus.MATCHED),
                ),
                LineOutcome(
                    line_number=3,
                    action=ImportAction.SKIPPED,
                    update=LineMatchingUpdate(matching_status=MatchingStatus.SKIPPED),
                ),
            ],
        )

        result = summary.to_dict()

        assert result["tenant_id"] == str(tenant_id)
        assert result["lines_total"] == 3
        assert result["price_added"] == 2
        assert result["skipped"] == 1
        assert result["created"] == 0
        assert result["error"] == 0

    def test_confidence_range_validated(self):
        """Test that a confidence above one is rejected."""
        with pytest.raises(ValidationError):
            LineMatchingUpdate(matching_status=MatchingStatus.MATCHED, match_confidence=1.5)
