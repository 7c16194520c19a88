"""Pydantic models and enums for the product matching workflow.

This module defines the data transfer objects exchanged between the
matching components and the invoice-update collaborator.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from uuid import UUID
from enum import Enum


class MatchingStatus(str, Enum):
    """Matching status of an invoice line.

    State Transitions:
        - pending → matched (system: consolidated into an existing entry)
        - pending → unmatched (system: new entry auto-created)
        - pending → pending_review (system: low confidence or approval required)
        - pending → skipped (system: not a product line)
        - pending_review → approved (reviewer: match or new entry approved)
        - pending_review → rejected (reviewer: suggestion rejected)
        - rejected → approved (reviewer: match approved on re-review)

    Every status but pending and pending_review is settled: importing the
    same invoice again leaves settled lines untouched.
    """
    PENDING = "pending"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


SETTLED_STATUSES = frozenset({
    MatchingStatus.MATCHED,
    MatchingStatus.UNMATCHED,
    MatchingStatus.APPROVED,
    MatchingStatus.REJECTED,
    MatchingStatus.SKIPPED,
})


class MatchingMethod(str, Enum):
    """How a line got linked to its catalog entry."""
    EXACT = "exact"
    HIGH_FUZZY = "high_fuzzy"
    MEDIUM_FUZZY = "medium_fuzzy"
    LOW_FUZZY = "low_fuzzy"
    VERY_LOW_FUZZY = "very_low_fuzzy"
    MANUAL = "manual"


class MatchType(str, Enum):
    """Which text of a catalog entry produced a similarity candidate."""
    EXACT = "exact"
    MAIN = "main"
    ALTERNATIVE = "alternative"


class DecisionReason(str, Enum):
    """Why the Phase Decision Engine chose a status."""
    LEGACY_MODE = "legacy_mode"
    HIGH_CONFIDENCE_AUTO_APPROVE = "high_confidence_auto_approve"
    LOW_CONFIDENCE_REQUIRES_REVIEW = "low_confidence_requires_review"
    MANUAL_REVIEW_REQUIRED = "manual_review_required"
    MEDIUM_CONFIDENCE_AUTO_APPROVE = "medium_confidence_auto_approve"
    PHASE1_DISABLED_AUTO_APPROVE = "phase1_disabled_auto_approve"
    NEW_PRODUCT_REQUIRES_APPROVAL = "new_product_requires_approval"
    NEW_PRODUCT_AUTO_CREATE = "new_product_auto_create"
    PHASE2_DISABLED_AUTO_CREATE = "phase2_disabled_auto_create"


class ImportAction(str, Enum):
    """What the line processor did with an invoice line."""
    PRICE_ADDED = "price_added"
    PENDING_REVIEW = "pending_review"
    CREATED = "created"
    PENDING_NEW_ENTRY = "pending_new_entry"
    SKIPPED = "skipped"
    ERROR = "error"
    ALREADY_PROCESSED = "already_processed"


class MatchDecision(BaseModel):
    """Outcome of the Phase Decision Engine for one line."""

    status: MatchingStatus
    requires_review: bool = False
    auto_approved: bool = False
    reason: DecisionReason

    model_config = {"frozen": True}


class SuggestedEntry(BaseModel):
    """Candidate shown to a human reviewer for a pending_review line."""

    id: UUID
    description: str
    internal_code: str
    confidence: float = Field(..., ge=0, le=1)


class LineMatchingUpdate(BaseModel):
    """Matching projection pushed back onto an invoice line."""

    matching_status: MatchingStatus
    match_confidence: Optional[float] = Field(default=None, ge=0, le=1)
    matched_catalog_entry_id: Optional[UUID] = None
    matching_method: Optional[MatchingMethod] = None
    matched_internal_code: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "matching_status": "matched",
                "match_confidence": 0.98,
                "matched_catalog_entry_id": "550e8400-e29b-41d4-a716-446655440000",
                "matching_method": "exact",
                "matched_internal_code": "PROD-1732623600000-A3F5Q1",
            }
        }
    }


class LineOutcome(BaseModel):
    """Result of processing a single invoice line."""

    line_number: int
    description: Optional[str] = None
    action: ImportAction
    update: LineMatchingUpdate
    reason: Optional[str] = None
    suggested_entry: Optional[SuggestedEntry] = None
    is_new_entry_candidate: bool = False
    error: Optional[str] = None


class ImportSummary(BaseModel):
    """All line outcomes of one invoice import, in line order."""

    tenant_id: UUID
    invoice_id: str
    outcomes: List[LineOutcome] = Field(default_factory=list)

    def count(self, action: ImportAction) -> int:
        return sum(1 for o in self.outcomes if o.action == action)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/response."""
        return {
            "tenant_id": str(self.tenant_id),
            "invoice_id": self.invoice_id,
            "lines_total": len(self.outcomes),
            **{action.value: self.count(action) for action in ImportAction},
        }
