"""SupplierLedger ORM model: per-supplier price history of a catalog entry."""
from sqlalchemy import String, ForeignKey, Numeric, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from catalog_matching.db.base import Base, UUIDMixin, utcnow
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from catalog_matching.db.models.catalog_entry import CatalogEntry
    from catalog_matching.db.models.price_history import PriceHistory


class SupplierLedger(Base, UUIDMixin):
    """Price ledger of one supplier inside one catalog entry.

    Keyed by supplier fiscal identity, never by display name. The derived
    price fields are recomputed from price_history on every append and are
    never written any other way.

    The version column makes concurrent consolidations into the same ledger
    fail with StaleDataError instead of losing an update.
    """

    __tablename__ = "supplier_ledgers"
    __table_args__ = (
        UniqueConstraint(
            "catalog_entry_id",
            "supplier_fiscal_id",
            name="uq_supplier_ledgers_entry_supplier",
        ),
    )

    catalog_entry_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("catalog_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supplier_fiscal_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)

    # Derived from price_history
    current_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)
    average_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    best_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    last_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    catalog_entry: Mapped["CatalogEntry"] = relationship(back_populates="supplier_ledgers")
    price_history: Mapped[List["PriceHistory"]] = relationship(
        back_populates="ledger",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PriceHistory.sequence",
    )

    def __repr__(self) -> str:
        return (
            f"<SupplierLedger(supplier='{self.supplier_fiscal_id}', "
            f"current={self.current_price}, records={len(self.price_history)})>"
        )
