"""AlternativeDescription ORM model: phrasings seen for a catalog entry."""
from sqlalchemy import String, ForeignKey, Integer, Float, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from catalog_matching.db.base import Base, UUIDMixin, utcnow
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from catalog_matching.db.models.catalog_entry import CatalogEntry


class DescriptionProvenance(str, PyEnum):
    """Where an alternative description came from."""
    ORIGINAL = "original"
    INVOICE = "invoice"
    MANUAL = "manual"
    SUPPLIER = "supplier"


class AlternativeDescription(Base, UUIDMixin):
    """A distinct phrasing of a catalog entry, unique by normalized text."""

    __tablename__ = "alternative_descriptions"
    __table_args__ = (
        UniqueConstraint(
            "catalog_entry_id",
            "normalized_text",
            name="uq_alternative_descriptions_entry_text",
        ),
        CheckConstraint("frequency >= 1", name="check_frequency_positive"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="check_confidence_range"),
    )

    catalog_entry_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("catalog_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text: Mapped[str] = mapped_column(String(1000), nullable=False)
    normalized_text: Mapped[str] = mapped_column(String(1000), nullable=False)
    provenance: Mapped[DescriptionProvenance] = mapped_column(
        SQLEnum(
            DescriptionProvenance,
            name="description_provenance",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=DescriptionProvenance.INVOICE,
    )
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    added_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    catalog_entry: Mapped["CatalogEntry"] = relationship(back_populates="alternative_descriptions")

    def __repr__(self) -> str:
        return f"<AlternativeDescription(text='{self.text}', frequency={self.frequency})>"
