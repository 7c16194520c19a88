"""Phase Decision Engine.

Maps the best similarity candidate of a line (or its absence) and the
tenant matching configuration to a matching outcome. Pure and total: no
I/O, and every input combination yields exactly one decision.
"""
from typing import Optional

from catalog_matching.models.matching import DecisionReason, MatchDecision, MatchingStatus
from catalog_matching.models.tenant_config import TenantMatchingConfig
from catalog_matching.services.matching.matcher import SimilarityCandidate


def _auto(status: MatchingStatus, reason: DecisionReason) -> MatchDecision:
    return MatchDecision(status=status, requires_review=False, auto_approved=True, reason=reason)


def _review(reason: DecisionReason) -> MatchDecision:
    return MatchDecision(
        status=MatchingStatus.PENDING_REVIEW,
        requires_review=True,
        auto_approved=False,
        reason=reason,
    )


def determine_matching_status(
    best_match: Optional[SimilarityCandidate],
    config: Optional[TenantMatchingConfig],
) -> MatchDecision:
    """Decide what happens to a line given its best candidate.

    Rules, in order:
        - No configuration (legacy mode): matched if a candidate exists,
          else unmatched; always auto-approved
        - Candidate, phase 1 enabled:
            confidence ≥ auto_approve_above → matched
            confidence < confidence_threshold → pending_review
            in between → pending_review if require_manual_review else matched
        - Candidate, phase 1 disabled → matched
        - No candidate, phase 2 enabled → pending_review if
          require_approval_for_new else unmatched (auto-create)
        - No candidate, phase 2 disabled → unmatched (auto-create)

    Args:
        best_match: Top similarity candidate, or None
        config: Tenant matching configuration snapshot, or None

    Returns:
        MatchDecision
    """
    if config is None:
        if best_match is not None:
            return _auto(MatchingStatus.MATCHED, DecisionReason.LEGACY_MODE)
        return _auto(MatchingStatus.UNMATCHED, DecisionReason.LEGACY_MODE)

    if best_match is not None:
        phase1 = config.phase1
        if not phase1.enabled:
            return _auto(MatchingStatus.MATCHED, DecisionReason.PHASE1_DISABLED_AUTO_APPROVE)

        confidence = best_match.confidence
        if confidence >= phase1.auto_approve_above:
            return _auto(MatchingStatus.MATCHED, DecisionReason.HIGH_CONFIDENCE_AUTO_APPROVE)
        if confidence < phase1.confidence_threshold:
            return _review(DecisionReason.LOW_CONFIDENCE_REQUIRES_REVIEW)
        if phase1.require_manual_review:
            return _review(DecisionReason.MANUAL_REVIEW_REQUIRED)
        return _auto(MatchingStatus.MATCHED, DecisionReason.MEDIUM_CONFIDENCE_AUTO_APPROVE)

    phase2 = config.phase2
    if not phase2.enabled:
        return _auto(MatchingStatus.UNMATCHED, DecisionReason.PHASE2_DISABLED_AUTO_CREATE)
    if phase2.require_approval_for_new:
        return _review(DecisionReason.NEW_PRODUCT_REQUIRES_APPROVAL)
    return _auto(MatchingStatus.UNMATCHED, DecisionReason.NEW_PRODUCT_AUTO_CREATE)
