"""Similarity matching of invoice line descriptions against a tenant catalog.

This module implements the Strategy pattern for catalog matching, with a
RapidFuzz WRatio implementation as the default strategy.

Key Components:
    - MatcherStrategy: Abstract base class for ranking algorithms
    - RapidFuzzMatcher: Default implementation using RapidFuzz WRatio
    - SimilarityCandidate: Ranked candidate with a [0, 1] confidence
    - get_matching_method(): Confidence tier classification

No code outside this module sees a raw fuzzy score; everything downstream
works with confidence values in [0, 1].
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID
import structlog

from rapidfuzz import fuzz, process

from catalog_matching.config import matching_settings
from catalog_matching.models.matching import MatchingMethod, MatchType
from catalog_matching.services.normalization import normalize_description

logger = structlog.get_logger(__name__)


class AlternativeTextData(Protocol):
    """Protocol for alternative descriptions used in matching."""
    text: str
    normalized_text: str


class CatalogEntryData(Protocol):
    """Protocol for catalog entries used in matching.

    Satisfied by the CatalogEntry ORM model as well as plain data classes
    in tests.
    """
    id: UUID
    description: str
    normalized_description: str
    internal_code: str
    alternative_descriptions: Sequence[AlternativeTextData]
    created_at: datetime


@dataclass
class SimilarityCandidate:
    """A catalog entry ranked against a query description.

    Attributes:
        entry: Candidate catalog entry
        confidence: Match confidence in [0, 1]
        matched_text: Entry text that produced the confidence
        match_type: exact, main (canonical description) or alternative
    """
    entry: Any
    confidence: float
    matched_text: str
    match_type: MatchType

    @property
    def is_exact(self) -> bool:
        return self.match_type == MatchType.EXACT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/response."""
        return {
            "entry_id": str(self.entry.id),
            "internal_code": self.entry.internal_code,
            "description": self.entry.description,
            "confidence": round(self.confidence, 4),
            "matched_text": self.matched_text,
            "match_type": self.match_type.value,
        }


def get_matching_method(confidence: float) -> MatchingMethod:
    """Classify a confidence value into a matching method tier.

    Args:
        confidence: Match confidence in [0, 1]

    Returns:
        exact (≥0.95), high_fuzzy (≥0.8), medium_fuzzy (≥0.6),
        low_fuzzy (≥0.4) or very_low_fuzzy
    """
    if confidence >= 0.95:
        return MatchingMethod.EXACT
    if confidence >= 0.8:
        return MatchingMethod.HIGH_FUZZY
    if confidence >= 0.6:
        return MatchingMethod.MEDIUM_FUZZY
    if confidence >= 0.4:
        return MatchingMethod.LOW_FUZZY
    return MatchingMethod.VERY_LOW_FUZZY


class MatcherStrategy(ABC):
    """Abstract base class for catalog ranking strategies.

    All implementations must honor the contract:
        - rank() returns at most `limit` candidates
        - confidences are in [0, 1] and ≥ threshold
        - exact normalized matches come first with the exact confidence
        - ties keep catalog order, so rankings are reproducible
    """

    @abstractmethod
    def rank(
        self,
        description: str,
        entries: Sequence[CatalogEntryData],
        limit: int = 10,
        threshold: float = 0.3,
    ) -> List[SimilarityCandidate]:
        """Rank catalog entries by similarity to a description.

        Args:
            description: Raw query description (normalized internally)
            entries: Tenant catalog in catalog order (created_at, id)
            limit: Maximum number of candidates to return
            threshold: Minimum confidence to keep a candidate

        Returns:
            Candidates sorted best first
        """
        pass

    @abstractmethod
    def get_strategy_name(self) -> str:
        """Get the name of this matching strategy."""
        pass


class RapidFuzzMatcher(MatcherStrategy):
    """Catalog matcher using RapidFuzz WRatio.

    Every entry contributes its normalized description and the normalized
    text of each alternative description. An entry whose texts contain the
    normalized query verbatim is an exact match and is not fuzzy-scored.
    Other entries take their best WRatio score over all their texts.

    Raw scores (0-100) below score_cutoff are dropped by RapidFuzz before
    they are rescaled to a confidence (score / 100).

    Attributes:
        exact_confidence: Confidence reported for exact matches
        score_cutoff: Minimum raw WRatio score considered at all
    """

    def __init__(
        self,
        exact_confidence: Optional[float] = None,
        score_cutoff: Optional[float] = None,
    ):
        self.exact_confidence = (
            exact_confidence if exact_confidence is not None else matching_settings.exact_confidence
        )
        self.score_cutoff = (
            score_cutoff if score_cutoff is not None else matching_settings.score_cutoff
        )
        self._log = logger.bind(matcher="RapidFuzzMatcher")

    def get_strategy_name(self) -> str:
        """Get the name of this matching strategy."""
        return "rapidfuzz_wratio"

    def rank(
        self,
        description: str,
        entries: Sequence[CatalogEntryData],
        limit: int = 10,
        threshold: float = 0.3,
    ) -> List[SimilarityCandidate]:
        """Rank catalog entries using exact lookup then RapidFuzz WRatio."""
        query = normalize_description(description)
        if not query or not entries or limit <= 0:
            return []

        ranked: List[Tuple[int, SimilarityCandidate]] = []
        fuzzy_texts: List[str] = []
        fuzzy_owners: List[Tuple[int, MatchType, str]] = []

        for position, entry in enumerate(entries):
            exact_text = self._exact_text(query, entry)
            if exact_text is not None:
                ranked.append((
                    position,
                    SimilarityCandidate(
                        entry=entry,
                        confidence=self.exact_confidence,
                        matched_text=exact_text,
                        match_type=MatchType.EXACT,
                    ),
                ))
                continue

            fuzzy_texts.append(entry.normalized_description)
            fuzzy_owners.append((position, MatchType.MAIN, entry.description))
            for alternative in entry.alternative_descriptions:
                fuzzy_texts.append(alternative.normalized_text)
                fuzzy_owners.append((position, MatchType.ALTERNATIVE, alternative.text))

        # Returns list of tuples: (choice, score, index)
        matches = process.extract(
            query,
            fuzzy_texts,
            scorer=fuzz.WRatio,
            processor=None,
            score_cutoff=self.score_cutoff,
            limit=None,
        )

        best_by_entry: Dict[int, Tuple[float, MatchType, str]] = {}
        for _, score, index in matches:
            position, match_type, text = fuzzy_owners[index]
            current = best_by_entry.get(position)
            # Canonical text is listed first, so it wins ties with alternatives
            if (
                current is None
                or score > current[0]
                or (score == current[0] and match_type == MatchType.MAIN)
            ):
                best_by_entry[position] = (score, match_type, text)

        for position, (score, match_type, text) in best_by_entry.items():
            confidence = min(max(score / 100.0, 0.0), 1.0)
            ranked.append((
                position,
                SimilarityCandidate(
                    entry=entries[position],
                    confidence=confidence,
                    matched_text=text,
                    match_type=match_type,
                ),
            ))

        kept = [(p, c) for p, c in ranked if c.confidence >= threshold]
        kept.sort(key=lambda pc: (not pc[1].is_exact, -pc[1].confidence, pc[0]))
        candidates = [c for _, c in kept[:limit]]

        self._log.debug(
            "rank_completed",
            query=query,
            entries_count=len(entries),
            candidates_count=len(candidates),
            best_confidence=round(candidates[0].confidence, 4) if candidates else None,
        )
        return candidates

    @staticmethod
    def _exact_text(query: str, entry: CatalogEntryData) -> Optional[str]:
        if entry.normalized_description == query:
            return entry.description
        for alternative in entry.alternative_descriptions:
            if alternative.normalized_text == query:
                return alternative.text
        return None


def create_matcher(
    strategy: str = "rapidfuzz",
    **kwargs
) -> MatcherStrategy:
    """Factory function to create a matcher strategy.

    Args:
        strategy: Strategy name ("rapidfuzz" for now)
        **kwargs: Additional arguments passed to the matcher

    Returns:
        MatcherStrategy instance

    Raises:
        ValueError: If unknown strategy name
    """
    strategies = {
        "rapidfuzz": RapidFuzzMatcher,
    }

    if strategy not in strategies:
        raise ValueError(f"Unknown matching strategy: {strategy}. Available: {list(strategies.keys())}")

    return strategies[strategy](**kwargs)
