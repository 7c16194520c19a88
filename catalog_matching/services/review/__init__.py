"""Manual review of invoice lines."""
from catalog_matching.services.review.manual_review import (
    ManualReviewService,
    PendingReviewPage,
    ReviewStats,
)

__all__ = [
    "ManualReviewService",
    "PendingReviewPage",
    "ReviewStats",
]
