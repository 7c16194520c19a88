"""Tenant-scoped database operations shared by the engine services.

Every function takes the tenant id explicitly and filters on it; nothing
here can read or write another tenant's rows.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Dict, List, Optional, Sequence, Tuple
import uuid
import structlog

from catalog_matching.db.models.catalog_entry import CatalogEntry, ApprovalStatus
from catalog_matching.db.models.invoice_line_match import InvoiceLineMatch
from catalog_matching.errors.exceptions import (
    DatabaseError,
    CatalogEntryNotFoundError,
    LineMatchNotFoundError,
)
from catalog_matching.models.line_item import (
    InvoiceLineItem,
    InvoiceReference,
    SupplierIdentity,
)
from catalog_matching.models.matching import MatchingStatus

logger = structlog.get_logger(__name__)


async def list_matchable_entries(
    session: AsyncSession,
    tenant_id: uuid.UUID,
) -> Sequence[CatalogEntry]:
    """Load the tenant catalog in catalog order (created_at, id).

    Rejected entries are never match candidates.

    Raises:
        DatabaseError: If the query fails
    """
    try:
        result = await session.execute(
            select(CatalogEntry)
            .where(CatalogEntry.tenant_id == tenant_id)
            .where(CatalogEntry.approval_status != ApprovalStatus.REJECTED)
            .order_by(CatalogEntry.created_at, CatalogEntry.id)
        )
        return result.scalars().all()
    except Exception as e:
        logger.error(
            "list_matchable_entries_failed",
            tenant_id=str(tenant_id),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DatabaseError(f"Failed to load catalog: {e}") from e


async def get_catalog_entry(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    entry_id: uuid.UUID,
) -> CatalogEntry:
    """Fetch one catalog entry of the tenant.

    Raises:
        CatalogEntryNotFoundError: If no such entry exists for the tenant
    """
    result = await session.execute(
        select(CatalogEntry)
        .where(CatalogEntry.tenant_id == tenant_id)
        .where(CatalogEntry.id == entry_id)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise CatalogEntryNotFoundError(
            f"Catalog entry {entry_id} not found",
            details={"tenant_id": str(tenant_id), "entry_id": str(entry_id)},
        )
    return entry


async def get_line_match(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    invoice_id: str,
    line_number: int,
) -> InvoiceLineMatch:
    """Fetch the matching projection of one invoice line.

    Raises:
        LineMatchNotFoundError: If the line was never imported for the tenant
    """
    line_match = await find_line_match(session, tenant_id, invoice_id, line_number)
    if line_match is None:
        raise LineMatchNotFoundError(
            f"Invoice line {invoice_id}#{line_number} not found",
            details={
                "tenant_id": str(tenant_id),
                "invoice_id": invoice_id,
                "line_number": line_number,
            },
        )
    return line_match


async def find_line_match(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    invoice_id: str,
    line_number: int,
) -> Optional[InvoiceLineMatch]:
    """Like get_line_match, but returns None for a line never imported."""
    result = await session.execute(
        select(InvoiceLineMatch)
        .where(InvoiceLineMatch.tenant_id == tenant_id)
        .where(InvoiceLineMatch.invoice_id == invoice_id)
        .where(InvoiceLineMatch.line_number == line_number)
    )
    return result.scalar_one_or_none()


async def get_or_create_line_match(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    invoice: InvoiceReference,
    line: InvoiceLineItem,
    supplier: SupplierIdentity,
) -> InvoiceLineMatch:
    """Get the projection row of a line or create it with a fresh snapshot.

    Re-importing an invoice refreshes the snapshot of existing rows; the
    matching fields are left for the caller to overwrite.

    Raises:
        DatabaseError: If the database operation fails
    """
    try:
        line_match = await find_line_match(
            session, tenant_id, invoice.invoice_id, line.line_number
        )
        if line_match is None:
            line_match = InvoiceLineMatch(
                tenant_id=tenant_id,
                invoice_id=invoice.invoice_id,
                line_number=line.line_number,
                matching_status=MatchingStatus.PENDING,
            )
            session.add(line_match)

        line_match.invoice_number = invoice.invoice_number
        line_match.invoice_date = invoice.invoice_date
        line_match.description = line.description
        line_match.quantity = line.quantity
        line_match.unit_price = line.unit_price
        line_match.currency = line.currency
        line_match.unit_of_measure = line.unit_of_measure
        line_match.article_code = line.article_code
        line_match.vat_rate = line.vat_rate
        line_match.supplier_fiscal_id = supplier.fiscal_id
        line_match.supplier_name = supplier.name
        line_match.supplier_id = supplier.supplier_id
        return line_match

    except Exception as e:
        logger.error(
            "get_or_create_line_match_failed",
            tenant_id=str(tenant_id),
            invoice_id=invoice.invoice_id,
            line_number=line.line_number,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DatabaseError(f"Failed to get or create line projection: {e}") from e


async def list_line_matches(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    status: MatchingStatus,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[InvoiceLineMatch], int]:
    """Page through line projections with the given status.

    Returns:
        Tuple of (rows ordered by invoice date and line number, total count)
    """
    base = (
        select(InvoiceLineMatch)
        .where(InvoiceLineMatch.tenant_id == tenant_id)
        .where(InvoiceLineMatch.matching_status == status)
    )
    total = await session.scalar(select(func.count()).select_from(base.subquery()))
    result = await session.execute(
        base.order_by(
            InvoiceLineMatch.invoice_date.desc(),
            InvoiceLineMatch.invoice_id,
            InvoiceLineMatch.line_number,
        )
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def count_line_matches_by_status(
    session: AsyncSession,
    tenant_id: uuid.UUID,
) -> Dict[MatchingStatus, int]:
    """Count line projections of the tenant grouped by matching status."""
    result = await session.execute(
        select(InvoiceLineMatch.matching_status, func.count())
        .where(InvoiceLineMatch.tenant_id == tenant_id)
        .group_by(InvoiceLineMatch.matching_status)
    )
    return {status: count for status, count in result.all()}


async def average_match_confidence(
    session: AsyncSession,
    tenant_id: uuid.UUID,
) -> Optional[float]:
    """Average confidence over lines that carry one."""
    value = await session.scalar(
        select(func.avg(InvoiceLineMatch.match_confidence))
        .where(InvoiceLineMatch.tenant_id == tenant_id)
        .where(InvoiceLineMatch.match_confidence.is_not(None))
    )
    return float(value) if value is not None else None
