"""Duplicate catalog entries sharing a normalized description.

Merging or deleting duplicates is an administrative action outside the
matching engine; this module only surfaces groups and lets an operator
silence one.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from dataclasses import dataclass, field
from typing import Any, Dict, List
import uuid
import structlog

from catalog_matching.db.models.catalog_entry import CatalogEntry
from catalog_matching.errors.exceptions import DatabaseError

logger = structlog.get_logger(__name__)


@dataclass
class DuplicateGroup:
    """Catalog entries of one tenant sharing a normalized description."""
    normalized_description: str
    entries: List[CatalogEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/response."""
        return {
            "normalized_description": self.normalized_description,
            "entries": [
                {
                    "id": str(e.id),
                    "internal_code": e.internal_code,
                    "description": e.description,
                    "approval_status": e.approval_status.value,
                }
                for e in self.entries
            ],
        }


async def find_duplicate_groups(
    session: AsyncSession,
    tenant_id: uuid.UUID,
) -> List[DuplicateGroup]:
    """Group non-ignored entries of a tenant by normalized description.

    Only groups with at least two entries are returned, ordered by
    normalized description; entries inside a group keep catalog order.

    Raises:
        DatabaseError: If the query fails
    """
    try:
        duplicated = (
            select(CatalogEntry.normalized_description)
            .where(CatalogEntry.tenant_id == tenant_id)
            .where(CatalogEntry.duplicate_ignored.is_(False))
            .group_by(CatalogEntry.normalized_description)
            .having(func.count(CatalogEntry.id) > 1)
        )
        result = await session.execute(
            select(CatalogEntry)
            .where(CatalogEntry.tenant_id == tenant_id)
            .where(CatalogEntry.duplicate_ignored.is_(False))
            .where(CatalogEntry.normalized_description.in_(duplicated))
            .order_by(
                CatalogEntry.normalized_description,
                CatalogEntry.created_at,
                CatalogEntry.id,
            )
        )
    except Exception as e:
        logger.error(
            "find_duplicate_groups_failed",
            tenant_id=str(tenant_id),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DatabaseError(f"Failed to load duplicate groups: {e}") from e

    groups: Dict[str, DuplicateGroup] = {}
    for entry in result.scalars().all():
        group = groups.setdefault(
            entry.normalized_description,
            DuplicateGroup(normalized_description=entry.normalized_description),
        )
        group.entries.append(entry)

    logger.debug("duplicate_groups_found", tenant_id=str(tenant_id), groups=len(groups))
    return list(groups.values())


async def ignore_duplicate_group(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    normalized_description: str,
) -> int:
    """Exclude every entry of a group from future duplicate detection.

    The caller commits the session.

    Returns:
        Number of entries flagged
    """
    result = await session.execute(
        select(CatalogEntry)
        .where(CatalogEntry.tenant_id == tenant_id)
        .where(CatalogEntry.normalized_description == normalized_description)
    )
    entries = result.scalars().all()
    for entry in entries:
        entry.duplicate_ignored = True
    await session.flush()

    logger.info(
        "duplicate_group_ignored",
        tenant_id=str(tenant_id),
        normalized_description=normalized_description,
        entries=len(entries),
    )
    return len(entries)
