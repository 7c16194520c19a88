"""Alternative Description Registry.

Accumulates every distinct phrasing seen for a catalog entry so that later
invoices using that phrasing match exactly. Records are unique by
normalized text within an entry; a repeat bumps frequency and refreshes
last_seen_at instead of adding a record.

New non-original records get a fixed confidence (MATCH_ALTERNATIVE_CONFIDENCE,
0.8) whatever the confidence of the match that produced them.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import Optional
import uuid
import structlog

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from catalog_matching.config import matching_settings
from catalog_matching.db.base import get_session_maker, utcnow
from catalog_matching.db.models.alternative_description import (
    AlternativeDescription,
    DescriptionProvenance,
)
from catalog_matching.db.models.catalog_entry import CatalogEntry
from catalog_matching.db.operations import get_catalog_entry
from catalog_matching.errors.exceptions import ValidationError
from catalog_matching.services.catalog.ledger import CONFLICT_ERRORS
from catalog_matching.services.normalization import normalize_description

logger = structlog.get_logger(__name__)


def upsert_alternative_description(
    entry: CatalogEntry,
    text: str,
    provenance: DescriptionProvenance = DescriptionProvenance.INVOICE,
    added_by: Optional[str] = None,
    confidence: Optional[float] = None,
) -> AlternativeDescription:
    """Record a phrasing on an entry inside the current transaction.

    Args:
        entry: Catalog entry with alternative descriptions loaded
        text: Phrasing as seen
        provenance: original, invoice, manual or supplier
        added_by: Reviewer or system id
        confidence: Confidence of a new record (default: 1.0 for original,
            MATCH_ALTERNATIVE_CONFIDENCE otherwise)

    Returns:
        The new or updated record

    Raises:
        ValidationError: If the text normalizes to nothing
    """
    normalized = normalize_description(text)
    if not normalized:
        raise ValidationError(
            "Alternative description is empty after normalization",
            details={"entry_id": str(entry.id), "text": text},
        )

    for existing in entry.alternative_descriptions:
        if existing.normalized_text == normalized:
            existing.frequency += 1
            existing.last_seen_at = utcnow()
            return existing

    if confidence is None:
        confidence = (
            1.0 if provenance == DescriptionProvenance.ORIGINAL
            else matching_settings.alternative_confidence
        )

    record = AlternativeDescription(
        text=text,
        normalized_text=normalized,
        provenance=provenance,
        frequency=1,
        confidence=confidence,
        added_by=added_by,
    )
    entry.alternative_descriptions.append(record)
    return record


class AlternativeDescriptionRegistry:
    """Records alternative descriptions of catalog entries in their own transaction."""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        max_attempts: Optional[int] = None,
        wait_max: Optional[float] = None,
    ):
        self._session_maker = session_maker
        self.max_attempts = max_attempts or matching_settings.consolidation_max_attempts
        self.wait_max = wait_max if wait_max is not None else matching_settings.retry_wait_max

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    async def add_alternative_description(
        self,
        tenant_id: uuid.UUID,
        entry_id: uuid.UUID,
        text: str,
        provenance: DescriptionProvenance = DescriptionProvenance.INVOICE,
        added_by: Optional[str] = None,
    ) -> CatalogEntry:
        """Upsert a phrasing on a catalog entry and commit.

        Concurrent upserts of the same phrasing are retried like price
        consolidations.

        Raises:
            CatalogEntryNotFoundError: If the entry does not exist for the tenant
            ValidationError: If the text normalizes to nothing
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random(0, self.wait_max),
            retry=retry_if_exception_type(CONFLICT_ERRORS),
            reraise=True,
        ):
            with attempt:
                async with self.session_maker() as session:
                    async with session.begin():
                        entry = await get_catalog_entry(session, tenant_id, entry_id)
                        record = upsert_alternative_description(entry, text, provenance, added_by)

        logger.debug(
            "alternative_description_recorded",
            tenant_id=str(tenant_id),
            entry_id=str(entry_id),
            normalized_text=record.normalized_text,
            frequency=record.frequency,
            provenance=provenance.value,
        )
        return entry

    async def record_best_effort(
        self,
        tenant_id: uuid.UUID,
        entry_id: uuid.UUID,
        text: str,
        provenance: DescriptionProvenance = DescriptionProvenance.INVOICE,
        added_by: Optional[str] = None,
    ) -> Optional[CatalogEntry]:
        """Like add_alternative_description, but failures are logged and swallowed.

        Used after a consolidation has already been committed: losing an
        alternative phrasing only costs future recall.

        Returns:
            The updated entry, or None if recording failed
        """
        try:
            return await self.add_alternative_description(
                tenant_id, entry_id, text, provenance, added_by
            )
        except Exception as e:
            logger.warning(
                "alternative_description_failed",
                tenant_id=str(tenant_id),
                entry_id=str(entry_id),
                text=text,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
