"""CatalogEntry ORM model: one tenant-scoped distinct purchasable product."""
from sqlalchemy import (
    String,
    Text,
    Boolean,
    Integer,
    DateTime,
    JSON,
    Index,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from catalog_matching.db.base import Base, UUIDMixin, TimestampMixin
from catalog_matching.services.normalization import normalize_description
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from catalog_matching.db.models.alternative_description import AlternativeDescription
    from catalog_matching.db.models.supplier_ledger import SupplierLedger


class ApprovalStatus(str, PyEnum):
    """Approval state of a catalog entry."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CatalogEntry(Base, UUIDMixin, TimestampMixin):
    """Catalog entry representing one distinct product of a tenant.

    Attributes:
        tenant_id: Owning tenant; catalogs never cross tenants
        internal_code: Tenant-unique code, immutable once assigned
        description: Canonical display text
        normalized_description: normalize_description(description), kept in
            sync by the description validator
        unit_of_measure: Default unit of measure
        category: Free-form category label
        attributes: Extra metadata (vat rate, supplier article codes, ...)
        approval_status: pending, approved or rejected
        approved_by / approved_at / approval_notes: Set when not pending
        duplicate_ignored: Suppresses the entry from duplicate groups
        version: Optimistic-lock counter

    Relationships:
        alternative_descriptions: Every distinct phrasing seen for the entry
        supplier_ledgers: Per-supplier price histories
    """

    __tablename__ = "catalog_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "internal_code", name="uq_catalog_entries_tenant_code"),
        Index("ix_catalog_entries_tenant_normalized", "tenant_id", "normalized_description"),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    internal_code: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    normalized_description: Mapped[str] = mapped_column(String(1000), nullable=False)
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attributes: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Note: values_callable stores enum VALUES (lowercase strings)
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(
            ApprovalStatus,
            name="approval_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=ApprovalStatus.PENDING,
        index=True,
    )
    approved_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    duplicate_ignored: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
        doc="Suppress this entry from duplicate-group detection",
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    alternative_descriptions: Mapped[List["AlternativeDescription"]] = relationship(
        back_populates="catalog_entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AlternativeDescription.first_seen_at",
    )
    supplier_ledgers: Mapped[List["SupplierLedger"]] = relationship(
        back_populates="catalog_entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SupplierLedger.created_at",
    )

    @validates("description")
    def _sync_normalized_description(self, key: str, value: str) -> str:
        self.normalized_description = normalize_description(value)
        return value

    @validates("internal_code")
    def _freeze_internal_code(self, key: str, value: str) -> str:
        current = self.__dict__.get("internal_code")
        if current is not None and current != value:
            raise ValueError(f"internal_code is immutable (current: {current})")
        return value

    def ledger_for(self, fiscal_id: str) -> Optional["SupplierLedger"]:
        """Supplier ledger keyed by the (canonical) supplier fiscal id."""
        for ledger in self.supplier_ledgers:
            if ledger.supplier_fiscal_id == fiscal_id:
                return ledger
        return None

    def __repr__(self) -> str:
        return f"<CatalogEntry(id={self.id}, code='{self.internal_code}', status='{self.approval_status.value}')>"
