"""Catalog entry creation with bounded retry on internal code collisions."""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import Callable, Optional
import random
import string
import time
import uuid
import structlog

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_none

from catalog_matching.config import matching_settings
from catalog_matching.db.base import get_session_maker, utcnow
from catalog_matching.db.models.alternative_description import DescriptionProvenance
from catalog_matching.db.models.catalog_entry import ApprovalStatus, CatalogEntry
from catalog_matching.errors.exceptions import DuplicateCodeError, ValidationError
from catalog_matching.models.line_item import InvoiceLineItem, InvoiceReference, SupplierIdentity
from catalog_matching.services.catalog.ledger import append_price_entry
from catalog_matching.services.catalog.registry import upsert_alternative_description

logger = structlog.get_logger(__name__)

CodeGenerator = Callable[[], str]


def generate_internal_code() -> str:
    """Generate an internal code for a new catalog entry.

    Format: PROD-{timestamp}-{random}
    Example: PROD-1732623600000-A3F5Q1

    Returns:
        Internal code string (uniqueness is enforced by the database)
    """
    timestamp = int(time.time() * 1000)
    random_suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"PROD-{timestamp}-{random_suffix}"


class CatalogEntryFactory:
    """Creates catalog entries from invoice lines.

    An entry is created together with its original alternative description
    and its first price record, in one transaction. A unique violation on
    (tenant_id, internal_code) rolls the attempt back and retries with a
    freshly generated code.

    Attributes:
        code_generator: Callable producing candidate internal codes
        max_attempts: Attempts before DuplicateCodeError is raised
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        code_generator: Optional[CodeGenerator] = None,
        max_attempts: Optional[int] = None,
    ):
        self._session_maker = session_maker
        self.code_generator = code_generator or generate_internal_code
        self.max_attempts = max_attempts or matching_settings.create_max_attempts

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    async def create_entry(
        self,
        tenant_id: uuid.UUID,
        line: InvoiceLineItem,
        supplier: SupplierIdentity,
        invoice_ref: InvoiceReference,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
        approved_by: Optional[str] = None,
        approval_notes: Optional[str] = None,
        description: Optional[str] = None,
        default_currency: Optional[str] = None,
    ) -> CatalogEntry:
        """Create a catalog entry from an invoice line.

        Args:
            tenant_id: Tenant owning the new entry
            line: Invoice line the entry is created from
            supplier: Supplier whose ledger receives the first price
            invoice_ref: Invoice the price was observed on
            approval_status: approved (auto-create or reviewer) or pending
            approved_by: Reviewer id, or None for automatic creation
            approval_notes: Free-form notes stored with the approval
            description: Canonical description (default: the line's)
            default_currency: Currency used when the line carries none

        Returns:
            The committed catalog entry

        Raises:
            ValidationError: If the description is empty
            DuplicateCodeError: If every generated code collided
        """
        description = (description or line.description or "").strip()
        if not description:
            raise ValidationError(
                "Cannot create a catalog entry without a description",
                details={"tenant_id": str(tenant_id), "line_number": line.line_number},
            )

        log = logger.bind(
            tenant_id=str(tenant_id),
            invoice_id=invoice_ref.invoice_id,
            line_number=line.line_number,
        )
        code = None

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_none(),
                retry=retry_if_exception_type(IntegrityError),
                reraise=True,
            ):
                with attempt:
                    code = self.code_generator()
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        log.warning("internal_code_collision_retry", attempt=attempt_number, code=code)
                    entry = await self._create_once(
                        tenant_id,
                        code,
                        description,
                        line,
                        supplier,
                        invoice_ref,
                        approval_status,
                        approved_by,
                        approval_notes,
                        default_currency,
                    )
        except IntegrityError as e:
            log.error(
                "catalog_entry_creation_exhausted",
                attempts=self.max_attempts,
                last_code=code,
                error=str(e),
            )
            raise DuplicateCodeError(
                f"No unique internal code after {self.max_attempts} attempts",
                details={"tenant_id": str(tenant_id), "last_code": code},
            ) from e

        log.info(
            "catalog_entry_created",
            entry_id=str(entry.id),
            internal_code=entry.internal_code,
            approval_status=entry.approval_status.value,
        )
        return entry

    async def _create_once(
        self,
        tenant_id: uuid.UUID,
        code: str,
        description: str,
        line: InvoiceLineItem,
        supplier: SupplierIdentity,
        invoice_ref: InvoiceReference,
        approval_status: ApprovalStatus,
        approved_by: Optional[str],
        approval_notes: Optional[str],
        default_currency: Optional[str],
    ) -> CatalogEntry:
        attributes = {"source_line_number": line.line_number}
        if line.article_code:
            attributes["supplier_article_codes"] = {supplier.fiscal_id: line.article_code}
        if line.vat_rate is not None:
            attributes["vat_rate"] = str(line.vat_rate)

        entry = CatalogEntry(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            internal_code=code,
            description=description,
            unit_of_measure=line.unit_of_measure,
            attributes=attributes,
            approval_status=approval_status,
            approved_by=approved_by,
            approved_at=utcnow() if approval_status != ApprovalStatus.PENDING else None,
            approval_notes=approval_notes,
            alternative_descriptions=[],
            supplier_ledgers=[],
        )
        upsert_alternative_description(
            entry, description, DescriptionProvenance.ORIGINAL, added_by=approved_by
        )
        append_price_entry(
            entry,
            supplier,
            line.to_price_observation(default_currency),
            invoice_ref,
            line.line_number,
        )

        async with self.session_maker() as session:
            async with session.begin():
                session.add(entry)
        return entry
