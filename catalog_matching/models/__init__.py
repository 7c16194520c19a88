"""Pydantic models for the catalog matching engine."""
from catalog_matching.models.line_item import (
    SupplierIdentity,
    InvoiceReference,
    PriceObservation,
    InvoiceLineItem,
    InvoiceImport,
    normalize_fiscal_id,
)
from catalog_matching.models.matching import (
    MatchingStatus,
    SETTLED_STATUSES,
    MatchingMethod,
    MatchType,
    DecisionReason,
    ImportAction,
    MatchDecision,
    SuggestedEntry,
    LineMatchingUpdate,
    LineOutcome,
    ImportSummary,
)
from catalog_matching.models.tenant_config import (
    Phase1Config,
    Phase2Config,
    Phase3Config,
    TenantMatchingConfig,
)

__all__ = [
    # Invoice input
    "SupplierIdentity",
    "InvoiceReference",
    "PriceObservation",
    "InvoiceLineItem",
    "InvoiceImport",
    "normalize_fiscal_id",
    # Matching workflow
    "MatchingStatus",
    "SETTLED_STATUSES",
    "MatchingMethod",
    "MatchType",
    "DecisionReason",
    "ImportAction",
    "MatchDecision",
    "SuggestedEntry",
    "LineMatchingUpdate",
    "LineOutcome",
    "ImportSummary",
    # Tenant policy
    "Phase1Config",
    "Phase2Config",
    "Phase3Config",
    "TenantMatchingConfig",
]
