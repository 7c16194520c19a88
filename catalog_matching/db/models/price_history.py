"""PriceHistory ORM model: append-only price observations."""
from sqlalchemy import ForeignKey, Numeric, String, Integer, Date, DateTime, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from catalog_matching.db.base import Base, UUIDMixin, utcnow
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from catalog_matching.db.models.supplier_ledger import SupplierLedger


class PriceHistory(Base, UUIDMixin):
    """One price observed on one invoice line for one supplier.

    sequence is the 1-based insertion order within the ledger; it breaks
    ties between observations carrying the same invoice date. A numbered
    invoice line is recorded at most once per ledger.
    """

    __tablename__ = "price_history"
    __table_args__ = (
        UniqueConstraint("ledger_id", "sequence", name="uq_price_history_ledger_sequence"),
        UniqueConstraint(
            "ledger_id",
            "source_invoice_id",
            "source_line_number",
            name="uq_price_history_ledger_invoice_line",
        ),
    )

    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("supplier_ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("1"))
    unit_of_measure: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Provenance
    source_invoice_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    source_invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    source_invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    source_line_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    ledger: Mapped["SupplierLedger"] = relationship(back_populates="price_history")

    def __repr__(self) -> str:
        return (
            f"<PriceHistory(price={self.price}, invoice='{self.source_invoice_number}', "
            f"date={self.source_invoice_date})>"
        )


@event.listens_for(PriceHistory, "before_update")
def _reject_history_update(mapper, connection, target: PriceHistory) -> None:
    raise ValueError(f"price history is append-only (record {target.id})")
