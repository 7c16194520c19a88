"""InvoiceLineMatch ORM model: matching projection of one invoice line."""
from sqlalchemy import (
    String,
    Text,
    Boolean,
    Integer,
    Float,
    Numeric,
    Date,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from catalog_matching.db.base import Base, UUIDMixin, TimestampMixin
from catalog_matching.models.matching import MatchingStatus, MatchingMethod
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
import uuid


class InvoiceLineMatch(Base, UUIDMixin, TimestampMixin):
    """Matching state of one invoice line, one row per (tenant, invoice, line).

    The line snapshot (description, price, supplier, invoice reference) is
    stored with the projection so a reviewer can later consolidate or create
    an entry without going back to the invoice document.

    Attributes:
        matching_status: pending, matched, unmatched, pending_review,
            approved, rejected or skipped
        match_confidence: Confidence of the linked or suggested candidate
        matched_catalog_entry_id: Linked catalog entry (when matched/approved)
        matching_method: Confidence tier or manual
        is_new_entry_candidate: Line waits for approval as a new entry
        suggested_*: Best candidate shown to the reviewer
        decision_reason: Reason code of the Phase Decision Engine
        reviewed_by / reviewed_at / review_notes: Set by manual review
    """

    __tablename__ = "invoice_line_matches"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "invoice_id",
            "line_number",
            name="uq_invoice_line_matches_tenant_invoice_line",
        ),
        CheckConstraint(
            "match_confidence IS NULL OR (match_confidence >= 0 AND match_confidence <= 1)",
            name="check_match_confidence",
        ),
        Index("ix_invoice_line_matches_tenant_status", "tenant_id", "matching_status"),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    invoice_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Line snapshot
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    article_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vat_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    supplier_fiscal_id: Mapped[str] = mapped_column(String(64), nullable=False)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)

    # Matching projection
    matching_status: Mapped[MatchingStatus] = mapped_column(
        SQLEnum(
            MatchingStatus,
            name="matching_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=MatchingStatus.PENDING,
    )
    match_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    matched_catalog_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("catalog_entries.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    matched_internal_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    matching_method: Mapped[Optional[MatchingMethod]] = mapped_column(
        SQLEnum(
            MatchingMethod,
            name="matching_method",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    is_new_entry_candidate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    decision_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    matching_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Review suggestion
    suggested_catalog_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    suggested_description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    suggested_internal_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Manual review
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InvoiceLineMatch(invoice='{self.invoice_id}', line={self.line_number}, "
            f"status='{self.matching_status.value}')>"
        )
