"""Invoice line processor.

Runs every line of an imported invoice through the matching pipeline:

    filter → similarity search → phase decision → act → projection

Lines are processed one at a time in invoice order, so an entry created
for an early line is a match candidate for every later line. Each line is
independent: a failure becomes an `error` outcome, its projection stays
pending with the error as note, and the next line runs. Lines settled by an
earlier import of the same invoice are reported as `already_processed`.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import Optional
import time
import structlog

from catalog_matching.config import matching_settings
from catalog_matching.db.base import get_session_maker
from catalog_matching.db.models.alternative_description import DescriptionProvenance
from catalog_matching.db.models.catalog_entry import ApprovalStatus
from catalog_matching.db.operations import find_line_match, get_or_create_line_match
from catalog_matching.models.line_item import InvoiceImport, InvoiceLineItem, SupplierIdentity
from catalog_matching.models.matching import (
    ImportAction,
    ImportSummary,
    LineMatchingUpdate,
    LineOutcome,
    MatchDecision,
    MatchingStatus,
    SETTLED_STATUSES,
    SuggestedEntry,
)
from catalog_matching.models.tenant_config import TenantMatchingConfig
from catalog_matching.services.catalog.entries import CatalogEntryFactory
from catalog_matching.services.catalog.ledger import PriceConsolidationLedger
from catalog_matching.services.catalog.registry import AlternativeDescriptionRegistry
from catalog_matching.services.filtering import SKIPPED_LINE_NOTE, evaluate_line
from catalog_matching.services.matching.decision import determine_matching_status
from catalog_matching.services.matching.matcher import (
    MatcherStrategy,
    SimilarityCandidate,
    create_matcher,
    get_matching_method,
)
from catalog_matching.services.matching.search import find_similar_products

logger = structlog.get_logger(__name__)

AUTO_APPROVAL_NOTE = "Auto-approved during invoice import"
IMPORT_ERROR_REASON = "import_error"


class InvoiceLineProcessor:
    """Imports invoice lines into a tenant catalog.

    Attributes:
        limit: Candidates considered per line
        threshold: Minimum confidence for a candidate to count as a match
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        matcher: Optional[MatcherStrategy] = None,
        ledger: Optional[PriceConsolidationLedger] = None,
        registry: Optional[AlternativeDescriptionRegistry] = None,
        factory: Optional[CatalogEntryFactory] = None,
        limit: Optional[int] = None,
        threshold: Optional[float] = None,
    ):
        self._session_maker = session_maker
        self.matcher = matcher or create_matcher()
        self.ledger = ledger or PriceConsolidationLedger(session_maker)
        self.registry = registry or AlternativeDescriptionRegistry(session_maker)
        self.factory = factory or CatalogEntryFactory(session_maker)
        self.limit = limit or matching_settings.import_limit
        self.threshold = threshold if threshold is not None else matching_settings.import_threshold

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    async def import_invoice_lines(
        self,
        invoice: InvoiceImport,
        config: Optional[TenantMatchingConfig] = None,
    ) -> ImportSummary:
        """Import every line of an invoice.

        Args:
            invoice: Invoice reference, supplier and ordered lines
            config: Tenant matching configuration (None selects legacy mode)

        Returns:
            ImportSummary with one outcome per line, in line order
        """
        start_time = time.monotonic()
        log = logger.bind(
            tenant_id=str(invoice.tenant_id),
            invoice_id=invoice.invoice.invoice_id,
        )
        log.info(
            "invoice_import_started",
            lines=len(invoice.lines),
            legacy_mode=config is None,
        )

        summary = ImportSummary(tenant_id=invoice.tenant_id, invoice_id=invoice.invoice.invoice_id)
        for line in invoice.lines:
            summary.outcomes.append(await self._process_line(invoice, line, config, log))

        log.info(
            "invoice_import_completed",
            duration_seconds=round(time.monotonic() - start_time, 3),
            **summary.to_dict(),
        )
        return summary

    async def _process_line(
        self,
        invoice: InvoiceImport,
        line: InvoiceLineItem,
        config: Optional[TenantMatchingConfig],
        log,
    ) -> LineOutcome:
        supplier = invoice.supplier_for(line)
        log = log.bind(line_number=line.line_number)

        try:
            settled = await self._settled_outcome(invoice, line, log)
            if settled is not None:
                return settled

            verdict = evaluate_line(line)
            if not verdict.accepted:
                log.info("line_skipped", description=line.description, reason=verdict.reason)
                outcome = LineOutcome(
                    line_number=line.line_number,
                    description=line.description,
                    action=ImportAction.SKIPPED,
                    update=LineMatchingUpdate(matching_status=MatchingStatus.SKIPPED),
                    reason=verdict.reason,
                )
                await self._save_projection(invoice, line, supplier, outcome, SKIPPED_LINE_NOTE)
                return outcome

            async with self.session_maker() as session:
                candidates = await find_similar_products(
                    session,
                    invoice.tenant_id,
                    line.description,
                    limit=self.limit,
                    threshold=self.threshold,
                    matcher=self.matcher,
                )
            best = candidates[0] if candidates else None
            decision = determine_matching_status(best, config)

            if best is not None and decision.status == MatchingStatus.MATCHED:
                outcome = await self._handle_match(invoice, line, supplier, best, decision, log)
            elif best is not None:
                outcome = self._handle_review(line, best, decision, log)
            elif decision.status == MatchingStatus.UNMATCHED:
                outcome = await self._handle_new_entry(invoice, line, supplier, decision, log)
            else:
                outcome = self._handle_pending_new_entry(line, decision, log)

            await self._save_projection(invoice, line, supplier, outcome)
            return outcome

        except Exception as e:
            log.error(
                "line_import_failed",
                description=line.description,
                error=str(e),
                error_type=type(e).__name__,
            )
            outcome = LineOutcome(
                line_number=line.line_number,
                description=line.description,
                action=ImportAction.ERROR,
                update=LineMatchingUpdate(matching_status=MatchingStatus.PENDING),
                reason=IMPORT_ERROR_REASON,
                error=str(e),
            )
            await self._save_error_projection(invoice, line, supplier, outcome, log)
            return outcome

    async def _settled_outcome(
        self,
        invoice: InvoiceImport,
        line: InvoiceLineItem,
        log,
    ) -> Optional[LineOutcome]:
        """Stored outcome of a line a previous import already settled.

        Settled lines (matched, created, reviewed or skipped) are never
        consolidated again, so re-importing an invoice cannot duplicate
        prices or overwrite a reviewer's decision. Lines still pending or
        awaiting review go through the pipeline again.
        """
        async with self.session_maker() as session:
            line_match = await find_line_match(
                session, invoice.tenant_id, invoice.invoice.invoice_id, line.line_number
            )
        if line_match is None or line_match.matching_status not in SETTLED_STATUSES:
            return None

        log.info("line_already_processed", matching_status=line_match.matching_status.value)
        return LineOutcome(
            line_number=line.line_number,
            description=line.description,
            action=ImportAction.ALREADY_PROCESSED,
            update=LineMatchingUpdate(
                matching_status=line_match.matching_status,
                match_confidence=line_match.match_confidence,
                matched_catalog_entry_id=line_match.matched_catalog_entry_id,
                matching_method=line_match.matching_method,
                matched_internal_code=line_match.matched_internal_code,
            ),
            reason=line_match.decision_reason,
        )

    async def _handle_match(
        self,
        invoice: InvoiceImport,
        line: InvoiceLineItem,
        supplier: SupplierIdentity,
        best: SimilarityCandidate,
        decision: MatchDecision,
        log,
    ) -> LineOutcome:
        """Consolidate the line price into the matched entry."""
        entry = best.entry
        await self.ledger.add_price_entry(
            invoice.tenant_id,
            entry.id,
            supplier,
            line.to_price_observation(invoice.currency),
            invoice.invoice,
            line.line_number,
        )
        await self.registry.record_best_effort(
            invoice.tenant_id,
            entry.id,
            line.description,
            DescriptionProvenance.INVOICE,
        )

        method = get_matching_method(best.confidence)
        log.info(
            "price_added",
            entry_id=str(entry.id),
            confidence=round(best.confidence, 4),
            matching_method=method.value,
            reason=decision.reason.value,
        )
        return LineOutcome(
            line_number=line.line_number,
            description=line.description,
            action=ImportAction.PRICE_ADDED,
            update=LineMatchingUpdate(
                matching_status=MatchingStatus.MATCHED,
                match_confidence=best.confidence,
                matched_catalog_entry_id=entry.id,
                matching_method=method,
                matched_internal_code=entry.internal_code,
            ),
            reason=decision.reason.value,
        )

    def _handle_review(
        self,
        line: InvoiceLineItem,
        best: SimilarityCandidate,
        decision: MatchDecision,
        log,
    ) -> LineOutcome:
        """Leave the line for a reviewer, with the best candidate as suggestion."""
        entry = best.entry
        method = get_matching_method(best.confidence)
        log.info(
            "line_requires_review",
            suggested_entry_id=str(entry.id),
            confidence=round(best.confidence, 4),
            reason=decision.reason.value,
        )
        return LineOutcome(
            line_number=line.line_number,
            description=line.description,
            action=ImportAction.PENDING_REVIEW,
            update=LineMatchingUpdate(
                matching_status=MatchingStatus.PENDING_REVIEW,
                match_confidence=best.confidence,
                matching_method=method,
            ),
            reason=decision.reason.value,
            suggested_entry=SuggestedEntry(
                id=entry.id,
                description=entry.description,
                internal_code=entry.internal_code,
                confidence=best.confidence,
            ),
        )

    async def _handle_new_entry(
        self,
        invoice: InvoiceImport,
        line: InvoiceLineItem,
        supplier: SupplierIdentity,
        decision: MatchDecision,
        log,
    ) -> LineOutcome:
        """Create an approved catalog entry from the line."""
        entry = await self.factory.create_entry(
            invoice.tenant_id,
            line,
            supplier,
            invoice.invoice,
            approval_status=ApprovalStatus.APPROVED,
            approval_notes=AUTO_APPROVAL_NOTE,
            default_currency=invoice.currency,
        )
        log.info(
            "new_entry_created",
            entry_id=str(entry.id),
            internal_code=entry.internal_code,
            reason=decision.reason.value,
        )
        return LineOutcome(
            line_number=line.line_number,
            description=line.description,
            action=ImportAction.CREATED,
            update=LineMatchingUpdate(
                matching_status=MatchingStatus.UNMATCHED,
                matched_catalog_entry_id=entry.id,
                matched_internal_code=entry.internal_code,
            ),
            reason=decision.reason.value,
        )

    def _handle_pending_new_entry(
        self,
        line: InvoiceLineItem,
        decision: MatchDecision,
        log,
    ) -> LineOutcome:
        """Flag the line as a new-entry candidate awaiting approval."""
        log.info("new_entry_requires_approval", reason=decision.reason.value)
        return LineOutcome(
            line_number=line.line_number,
            description=line.description,
            action=ImportAction.PENDING_NEW_ENTRY,
            update=LineMatchingUpdate(matching_status=MatchingStatus.PENDING_REVIEW),
            reason=decision.reason.value,
            is_new_entry_candidate=True,
        )

    async def _save_projection(
        self,
        invoice: InvoiceImport,
        line: InvoiceLineItem,
        supplier: SupplierIdentity,
        outcome: LineOutcome,
        notes: Optional[str] = None,
    ) -> None:
        """Upsert the matching projection of a line from its outcome."""
        update = outcome.update
        suggestion = outcome.suggested_entry
        async with self.session_maker() as session:
            async with session.begin():
                line_match = await get_or_create_line_match(
                    session, invoice.tenant_id, invoice.invoice, line, supplier
                )
                line_match.matching_status = update.matching_status
                line_match.match_confidence = update.match_confidence
                line_match.matched_catalog_entry_id = update.matched_catalog_entry_id
                line_match.matched_internal_code = update.matched_internal_code
                line_match.matching_method = update.matching_method
                line_match.is_new_entry_candidate = outcome.is_new_entry_candidate
                line_match.decision_reason = outcome.reason
                line_match.matching_notes = notes
                line_match.suggested_catalog_entry_id = suggestion.id if suggestion else None
                line_match.suggested_description = suggestion.description if suggestion else None
                line_match.suggested_internal_code = suggestion.internal_code if suggestion else None

    async def _save_error_projection(
        self,
        invoice: InvoiceImport,
        line: InvoiceLineItem,
        supplier: SupplierIdentity,
        outcome: LineOutcome,
        log,
    ) -> None:
        """Record a failed line as pending, with the error as matching note."""
        try:
            await self._save_projection(invoice, line, supplier, outcome, outcome.error)
        except Exception as e:
            log.error(
                "line_projection_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
