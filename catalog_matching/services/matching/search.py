"""Catalog similarity search for one tenant."""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid
import structlog

from catalog_matching.config import matching_settings
from catalog_matching.db.operations import list_matchable_entries
from catalog_matching.services.matching.matcher import (
    MatcherStrategy,
    SimilarityCandidate,
    create_matcher,
)

logger = structlog.get_logger(__name__)


async def find_similar_products(
    session: AsyncSession,
    tenant_id: uuid.UUID,
    description: str,
    limit: Optional[int] = None,
    threshold: Optional[float] = None,
    matcher: Optional[MatcherStrategy] = None,
) -> List[SimilarityCandidate]:
    """Find the catalog entries of a tenant most similar to a description.

    The whole tenant catalog is scanned; callers keep `limit` small.

    Args:
        session: Async database session
        tenant_id: Tenant whose catalog is searched
        description: Raw line description
        limit: Maximum candidates (default: MATCH_SEARCH_LIMIT)
        threshold: Minimum confidence (default: MATCH_SEARCH_THRESHOLD)
        matcher: Ranking strategy (default: RapidFuzz)

    Returns:
        Candidates sorted best first, exact matches on top

    Raises:
        DatabaseError: If the catalog cannot be loaded
    """
    limit = limit if limit is not None else matching_settings.search_limit
    threshold = threshold if threshold is not None else matching_settings.search_threshold
    matcher = matcher or create_matcher()

    entries = await list_matchable_entries(session, tenant_id)
    candidates = matcher.rank(description, entries, limit=limit, threshold=threshold)

    logger.debug(
        "find_similar_products_completed",
        tenant_id=str(tenant_id),
        strategy=matcher.get_strategy_name(),
        catalog_size=len(entries),
        candidates=[c.to_dict() for c in candidates[:3]],
    )
    return candidates
