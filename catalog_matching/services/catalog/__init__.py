"""Catalog mutation services: price ledger, alternative descriptions, entries, duplicates."""
from catalog_matching.services.catalog.ledger import (
    PriceConsolidationLedger,
    append_price_entry,
    recompute_ledger_statistics,
)
from catalog_matching.services.catalog.registry import (
    AlternativeDescriptionRegistry,
    upsert_alternative_description,
)
from catalog_matching.services.catalog.entries import (
    CatalogEntryFactory,
    generate_internal_code,
)
from catalog_matching.services.catalog.duplicates import (
    DuplicateGroup,
    find_duplicate_groups,
    ignore_duplicate_group,
)

__all__ = [
    "PriceConsolidationLedger",
    "append_price_entry",
    "recompute_ledger_statistics",
    "AlternativeDescriptionRegistry",
    "upsert_alternative_description",
    "CatalogEntryFactory",
    "generate_internal_code",
    "DuplicateGroup",
    "find_duplicate_groups",
    "ignore_duplicate_group",
]
