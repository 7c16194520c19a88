"""Catalog matching services.

Key Components:
    - MatcherStrategy: Abstract base class for ranking algorithms
    - RapidFuzzMatcher: Default implementation using RapidFuzz WRatio
    - SimilarityCandidate: Ranked candidate with a [0, 1] confidence
    - find_similar_products: Tenant-scoped catalog search
    - determine_matching_status: Phase Decision Engine
"""
from catalog_matching.services.matching.matcher import (
    MatcherStrategy,
    RapidFuzzMatcher,
    SimilarityCandidate,
    create_matcher,
    get_matching_method,
)
from catalog_matching.services.matching.search import find_similar_products
from catalog_matching.services.matching.decision import determine_matching_status

__all__ = [
    "MatcherStrategy",
    "RapidFuzzMatcher",
    "SimilarityCandidate",
    "create_matcher",
    "get_matching_method",
    "find_similar_products",
    "determine_matching_status",
]
