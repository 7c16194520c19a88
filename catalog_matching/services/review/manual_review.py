"""Manual review workflow for lines left in pending_review.

A reviewer either confirms the suggested (or another) catalog entry, which
consolidates the stored line price into it, rejects the suggestion, or
approves the line as a brand new catalog entry.

Every action first claims the line with a conditional update on its status,
so a line is consolidated or turned into an entry at most once, and lines
the import already settled (matched, created, skipped) are left alone.
"""
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import math
import uuid
import structlog

from catalog_matching.db.base import get_session_maker, utcnow
from catalog_matching.db.models.alternative_description import DescriptionProvenance
from catalog_matching.db.models.catalog_entry import ApprovalStatus, CatalogEntry
from catalog_matching.db.models.invoice_line_match import InvoiceLineMatch
from catalog_matching.db.operations import (
    average_match_confidence,
    count_line_matches_by_status,
    get_catalog_entry,
    get_line_match,
    list_line_matches,
)
from catalog_matching.errors.exceptions import ValidationError
from catalog_matching.models.line_item import InvoiceLineItem, InvoiceReference, SupplierIdentity
from catalog_matching.models.matching import MatchingMethod, MatchingStatus
from catalog_matching.services.catalog.entries import CatalogEntryFactory
from catalog_matching.services.catalog.ledger import PriceConsolidationLedger
from catalog_matching.services.catalog.registry import AlternativeDescriptionRegistry

logger = structlog.get_logger(__name__)

# Statuses a reviewer may approve a match from
MATCH_REVIEWABLE_STATUSES = (MatchingStatus.PENDING_REVIEW, MatchingStatus.REJECTED)

_REVIEW_FIELDS = (
    "matching_status",
    "matched_catalog_entry_id",
    "matched_internal_code",
    "matching_method",
    "is_new_entry_candidate",
    "reviewed_by",
    "reviewed_at",
    "review_notes",
)


@dataclass
class PendingReviewPage:
    """One page of line projections awaiting review."""
    items: List[InvoiceLineMatch]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class ReviewStats:
    """Matching and review statistics of a tenant."""
    counts: Dict[str, int] = field(default_factory=dict)
    total: int = 0
    average_confidence: float = 0.0

    @property
    def review_rate(self) -> float:
        reviewed = self.counts.get("approved", 0) + self.counts.get("rejected", 0)
        return reviewed / self.total if self.total else 0.0

    @property
    def approval_rate(self) -> float:
        approved = self.counts.get("approved", 0)
        reviewed = approved + self.counts.get("rejected", 0)
        return approved / reviewed if reviewed else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/response."""
        return {
            **self.counts,
            "total": self.total,
            "average_confidence": round(self.average_confidence, 4),
            "review_rate": round(self.review_rate, 4),
            "approval_rate": round(self.approval_rate, 4),
        }


def _snapshot_line(line_match: InvoiceLineMatch) -> InvoiceLineItem:
    return InvoiceLineItem(
        line_number=line_match.line_number,
        description=line_match.description,
        quantity=line_match.quantity,
        unit_price=line_match.unit_price,
        currency=line_match.currency,
        unit_of_measure=line_match.unit_of_measure,
        article_code=line_match.article_code,
        vat_rate=line_match.vat_rate,
    )


def _snapshot_supplier(line_match: InvoiceLineMatch) -> SupplierIdentity:
    return SupplierIdentity(
        fiscal_id=line_match.supplier_fiscal_id,
        name=line_match.supplier_name,
        supplier_id=line_match.supplier_id,
    )


def _snapshot_invoice(line_match: InvoiceLineMatch) -> InvoiceReference:
    return InvoiceReference(
        invoice_id=line_match.invoice_id,
        invoice_number=line_match.invoice_number,
        invoice_date=line_match.invoice_date,
    )


def _review_values(
    status: MatchingStatus,
    reviewer_id: str,
    notes: Optional[str],
    entry: Optional[CatalogEntry],
) -> Dict[str, Any]:
    return {
        "matching_status": status,
        "matched_catalog_entry_id": entry.id if entry else None,
        "matched_internal_code": entry.internal_code if entry else None,
        "matching_method": MatchingMethod.MANUAL if entry else None,
        "is_new_entry_candidate": False,
        "reviewed_by": reviewer_id,
        "reviewed_at": utcnow(),
        "review_notes": notes,
    }


class ManualReviewService:
    """Reviewer actions on invoice line projections of one tenant at a time."""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        ledger: Optional[PriceConsolidationLedger] = None,
        registry: Optional[AlternativeDescriptionRegistry] = None,
        factory: Optional[CatalogEntryFactory] = None,
    ):
        self._session_maker = session_maker
        self.ledger = ledger or PriceConsolidationLedger(session_maker)
        self.registry = registry or AlternativeDescriptionRegistry(session_maker)
        self.factory = factory or CatalogEntryFactory(session_maker)

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    async def list_pending_reviews(
        self,
        tenant_id: uuid.UUID,
        status: MatchingStatus = MatchingStatus.PENDING_REVIEW,
        page: int = 1,
        limit: int = 20,
    ) -> PendingReviewPage:
        """Page through the lines of a tenant with the given status.

        Raises:
            ValidationError: If page or limit is not positive
        """
        if page < 1 or limit < 1:
            raise ValidationError(
                "page and limit must be positive",
                details={"page": page, "limit": limit},
            )
        async with self.session_maker() as session:
            items, total = await list_line_matches(
                session, tenant_id, status, offset=(page - 1) * limit, limit=limit
            )
        return PendingReviewPage(items=items, total=total, page=page, limit=limit)

    async def approve_match(
        self,
        tenant_id: uuid.UUID,
        invoice_id: str,
        line_number: int,
        entry_id: uuid.UUID,
        reviewer_id: str,
        notes: Optional[str] = None,
    ) -> InvoiceLineMatch:
        """Link a line to a catalog entry and consolidate its price.

        Only lines awaiting review (or rejected earlier) can be approved.
        The line is claimed before its price is consolidated, so concurrent
        approvals of one line consolidate it once. The line description is
        recorded as a manual alternative description of the entry (best
        effort).

        Raises:
            LineMatchNotFoundError: If the line does not exist for the tenant
            CatalogEntryNotFoundError: If the entry does not exist for the tenant
            ValidationError: If the line is not awaiting review
            ConsolidationConflictError: If the price could not be consolidated
        """
        log = logger.bind(
            tenant_id=str(tenant_id),
            invoice_id=invoice_id,
            line_number=line_number,
            reviewer_id=reviewer_id,
        )

        async with self.session_maker() as session:
            entry = await get_catalog_entry(session, tenant_id, entry_id)

        claimed = await self._claim(
            tenant_id,
            invoice_id,
            line_number,
            MATCH_REVIEWABLE_STATUSES,
            _review_values(MatchingStatus.APPROVED, reviewer_id, notes, entry),
        )
        line = _snapshot_line(claimed)
        try:
            await self.ledger.add_price_entry(
                tenant_id,
                entry.id,
                _snapshot_supplier(claimed),
                line.to_price_observation(),
                _snapshot_invoice(claimed),
                line_number,
            )
        except Exception:
            await self._release(claimed, log)
            raise

        if line.description:
            await self.registry.record_best_effort(
                tenant_id,
                entry.id,
                line.description,
                DescriptionProvenance.MANUAL,
                added_by=reviewer_id,
            )

        log.info("match_approved", entry_id=str(entry.id), internal_code=entry.internal_code)
        return await self._load(tenant_id, invoice_id, line_number)

    async def reject_match(
        self,
        tenant_id: uuid.UUID,
        invoice_id: str,
        line_number: int,
        reviewer_id: str,
        reason: Optional[str] = None,
    ) -> InvoiceLineMatch:
        """Reject the suggestion of a line awaiting review.

        Raises:
            LineMatchNotFoundError: If the line does not exist for the tenant
            ValidationError: If the line is not awaiting review
        """
        await self._claim(
            tenant_id,
            invoice_id,
            line_number,
            (MatchingStatus.PENDING_REVIEW,),
            _review_values(MatchingStatus.REJECTED, reviewer_id, reason, None),
        )
        logger.info(
            "match_rejected",
            tenant_id=str(tenant_id),
            invoice_id=invoice_id,
            line_number=line_number,
            reviewer_id=reviewer_id,
            reason=reason,
        )
        return await self._load(tenant_id, invoice_id, line_number)

    async def approve_new_entry(
        self,
        tenant_id: uuid.UUID,
        invoice_id: str,
        line_number: int,
        reviewer_id: str,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> CatalogEntry:
        """Create an approved catalog entry from a new entry candidate.

        Only lines the import flagged as new entry candidates and that still
        await review qualify; the line is claimed before the entry is created.

        Args:
            description: Canonical description chosen by the reviewer
                (default: the line description)

        Raises:
            LineMatchNotFoundError: If the line does not exist for the tenant
            ValidationError: If the line is not a new entry candidate awaiting review
            DuplicateCodeError: If no unique internal code could be assigned
        """
        log = logger.bind(
            tenant_id=str(tenant_id),
            invoice_id=invoice_id,
            line_number=line_number,
            reviewer_id=reviewer_id,
        )

        claimed = await self._claim(
            tenant_id,
            invoice_id,
            line_number,
            (MatchingStatus.PENDING_REVIEW,),
            _review_values(MatchingStatus.APPROVED, reviewer_id, notes, None),
            new_entry_candidate=True,
        )
        try:
            entry = await self.factory.create_entry(
                tenant_id,
                _snapshot_line(claimed),
                _snapshot_supplier(claimed),
                _snapshot_invoice(claimed),
                approval_status=ApprovalStatus.APPROVED,
                approved_by=reviewer_id,
                approval_notes=notes,
                description=description,
            )
        except Exception:
            await self._release(claimed, log)
            raise

        async with self.session_maker() as session:
            async with session.begin():
                await session.execute(
                    update(InvoiceLineMatch)
                    .where(InvoiceLineMatch.id == claimed.id)
                    .values(
                        matched_catalog_entry_id=entry.id,
                        matched_internal_code=entry.internal_code,
                        matching_method=MatchingMethod.MANUAL,
                    )
                )
        log.info("new_entry_approved", entry_id=str(entry.id))
        return entry

    async def review_stats(self, tenant_id: uuid.UUID) -> ReviewStats:
        """Per-status line counts, average confidence, review and approval rates."""
        async with self.session_maker() as session:
            by_status = await count_line_matches_by_status(session, tenant_id)
            average = await average_match_confidence(session, tenant_id)

        counts = {status.value: by_status.get(status, 0) for status in MatchingStatus}
        return ReviewStats(
            counts=counts,
            total=sum(counts.values()),
            average_confidence=average or 0.0,
        )

    async def _load(self, tenant_id: uuid.UUID, invoice_id: str, line_number: int) -> InvoiceLineMatch:
        async with self.session_maker() as session:
            return await get_line_match(session, tenant_id, invoice_id, line_number)

    async def _claim(
        self,
        tenant_id: uuid.UUID,
        invoice_id: str,
        line_number: int,
        allowed: Tuple[MatchingStatus, ...],
        values: Dict[str, Any],
        new_entry_candidate: bool = False,
    ) -> InvoiceLineMatch:
        """Apply a review decision only if the line is still in an allowed status.

        The status check and the write are one conditional UPDATE, so of two
        reviewers acting on the same line only one claims it.

        Returns:
            The line as it was before the claim

        Raises:
            LineMatchNotFoundError: If the line does not exist for the tenant
            ValidationError: If the line is not in an allowed status
        """
        async with self.session_maker() as session:
            async with session.begin():
                line_match = await get_line_match(session, tenant_id, invoice_id, line_number)
                statement = (
                    update(InvoiceLineMatch)
                    .where(InvoiceLineMatch.id == line_match.id)
                    .where(InvoiceLineMatch.matching_status.in_(allowed))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if new_entry_candidate:
                    statement = statement.where(InvoiceLineMatch.is_new_entry_candidate.is_(True))
                result = await session.execute(statement)

        if result.rowcount != 1:
            current = await self._load(tenant_id, invoice_id, line_number)
            problem = "is not awaiting review"
            if (
                new_entry_candidate
                and current.matching_status in allowed
                and not current.is_new_entry_candidate
            ):
                problem = "is not a new entry candidate"
            raise ValidationError(
                f"Invoice line {invoice_id}#{line_number} {problem} "
                f"(status: {current.matching_status.value})",
                details={
                    "invoice_id": invoice_id,
                    "line_number": line_number,
                    "matching_status": current.matching_status.value,
                    "is_new_entry_candidate": current.is_new_entry_candidate,
                },
            )
        return line_match

    async def _release(self, claimed: InvoiceLineMatch, log) -> None:
        """Put a claimed line back as it was after a failed review action."""
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await session.execute(
                        update(InvoiceLineMatch)
                        .where(InvoiceLineMatch.id == claimed.id)
                        .values(**{name: getattr(claimed, name) for name in _REVIEW_FIELDS})
                    )
        except Exception as e:
            log.error(
                "review_claim_release_failed",
                line_match_id=str(claimed.id),
                error=str(e),
                error_type=type(e).__name__,
            )
