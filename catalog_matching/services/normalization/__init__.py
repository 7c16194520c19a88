"""Description normalization."""
from catalog_matching.services.normalization.normalizer import (
    NOISE_PATTERNS,
    normalize_description,
)

__all__ = [
    "NOISE_PATTERNS",
    "normalize_description",
]
