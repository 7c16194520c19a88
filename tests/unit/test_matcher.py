"""Unit tests for RapidFuzzMatcher and confidence tiers.

Tests cover:
    - SimilarityCandidate dataclass
    - Exact matches on canonical and alternative descriptions
    - Fuzzy matches and their match type
    - Threshold, limit and score cutoff handling
    - Deterministic ordering
    - get_matching_method tiers
"""
import pytest
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List
from uuid import uuid4

from catalog_matching.models import MatchingMethod, MatchType
from catalog_matching.services.matching import (
    RapidFuzzMatcher,
    SimilarityCandidate,
    create_matcher,
    get_matching_method,
)
from catalog_matching.services.normalization import normalize_description

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass
class MockAlternative:
    """Mock alternative description for testing matcher."""
    text: str
    normalized_text: str = ""

    def __post_init__(self):
        self.normalized_text = normalize_description(self.text)


@dataclass
class MockEntry:
    """Mock catalog entry for testing matcher."""
    description: str
    internal_code: str = "PROD-TEST"
    alternative_descriptions: List[MockAlternative] = field(default_factory=list)
    id: object = field(default_factory=uuid4)
    created_at: datetime = _BASE_TIME
    normalized_description: str = ""

    def __post_init__(self):
        self.normalized_description = normalize_description(self.description)


def catalog(*descriptions: str) -> List[MockEntry]:
    """Build entries in catalog order."""
    return [
        MockEntry(description=d, internal_code=f"PROD-{i}", created_at=_BASE_TIME + timedelta(minutes=i))
        for i, d in enumerate(descriptions)
    ]


class TestSimilarityCandidate:
    """Tests for SimilarityCandidate dataclass."""

    def test_to_dict(self):
        """Test to_dict conversion."""
        entry = MockEntry(description="Widget Pro 500", internal_code="PROD-1")
        candidate = SimilarityCandidate(
            entry=entry,
            confidence=0.876543,
            matched_text="Widget Pro 500",
            match_type=MatchType.MAIN,
        )

        result = candidate.to_dict()

        assert result["entry_id"] == str(entry.id)
        assert result["internal_code"] == "PROD-1"
        assert result["confidence"] == 0.8765
        assert result["match_type"] == "main"
        assert candidate.is_exact is False


class TestRapidFuzzMatcher:
    """Tests for RapidFuzzMatcher implementation."""

    @pytest.fixture
    def matcher(self):
        """Create a matcher instance with default settings."""
        return RapidFuzzMatcher()

    def test_get_strategy_name(self, matcher):
        """Test strategy name."""
        assert matcher.get_strategy_name() == "rapidfuzz_wratio"

    def test_exact_match_confidence(self, matcher):
        """Test that an exact normalized match yields 0.98 and type exact."""
        entries = catalog("Widget Pro 500")

        candidates = matcher.rank("WIDGET, pro-500!", entries)

        assert len(candidates) == 1
        assert candidates[0].confidence == 0.98
        assert candidates[0].match_type == MatchType.EXACT
        assert candidates[0].matched_text == "Widget Pro 500"

    def test_exact_match_outranks_fuzzy(self, matcher):
        """Test that exact matches always come before fuzzy candidates."""
        entries = catalog("Widget Pro 500 XL", "Widget Pro 5000", "Widget Pro 500")

        candidates = matcher.rank("Widget Pro 500", entries, threshold=0.0)

        assert candidates[0].entry is entries[2]
        assert candidates[0].is_exact
        assert all(not c.is_exact for c in candidates[1:])

    def test_exact_match_on_alternative_description(self, matcher):
        """Test that an alternative phrasing also matches exactly."""
        entry = MockEntry(
            description="Vite acciaio M6",
            alternative_descriptions=[MockAlternative("VITE M6X20 INOX")],
        )

        candidates = matcher.rank("vite m6x20 inox", [entry])

        assert candidates[0].match_type == MatchType.EXACT
        assert candidates[0].matched_text == "VITE M6X20 INOX"
        assert candidates[0].confidence == 0.98

    def test_fuzzy_match_on_alternative_description(self, matcher):
        """Test that the best scoring text of an entry decides its match type."""
        entry = MockEntry(
            description="Carta A4 80g risma",
            alternative_descriptions=[MockAlternative("Risma carta fotocopie A4 500 fogli")],
        )

        candidates = matcher.rank("Risma carta fotocopie A4 500 fogli bianca", [entry], threshold=0.0)

        assert len(candidates) == 1
        assert candidates[0].match_type == MatchType.ALTERNATIVE
        assert candidates[0].matched_text == "Risma carta fotocopie A4 500 fogli"
        assert 0.0 < candidates[0].confidence < 0.98

    def test_fuzzy_match_on_main_description(self, matcher):
        """Test a close but not exact match on the canonical description."""
        entries = catalog("Widget Pro 500")

        candidates = matcher.rank("Widget Pro 500 blu", entries, threshold=0.0)

        assert len(candidates) == 1
        assert candidates[0].match_type == MatchType.MAIN
        assert 0.8 <= candidates[0].confidence < 1.0

    def test_threshold_filters_unrelated(self, matcher):
        """Test that unrelated entries fall below the threshold."""
        entries = catalog("Olio motore 5W30 sintetico")

        assert matcher.rank("Vite acciaio inox", entries, threshold=0.7) == []

    def test_score_cutoff_discards_low_scores(self):
        """Test that raw scores below the cutoff are never rescaled."""
        matcher = RapidFuzzMatcher(score_cutoff=99)
        entries = catalog("Widget Pro 500 blu")

        assert matcher.rank("Widget Pro 500 rosso", entries, threshold=0.0) == []

    def test_limit_truncates(self, matcher):
        """Test that at most `limit` candidates are returned."""
        entries = catalog("Widget Pro 500 A", "Widget Pro 500 B", "Widget Pro 500 C")

        candidates = matcher.rank("Widget Pro 500", entries, limit=2, threshold=0.0)

        assert len(candidates) == 2

    def test_ties_keep_catalog_order(self, matcher):
        """Test that equal confidences keep catalog order."""
        entries = catalog("Widget Pro 500", "widget pro 500", "WIDGET PRO 500")

        candidates = matcher.rank("Widget Pro 500", entries)

        assert [c.entry for c in candidates] == entries

    def test_ranking_is_reproducible(self, matcher):
        """Test that the same query on the same catalog ranks identically."""
        entries = catalog("Widget Pro 500 A", "Widget Pro 400", "Gadget Pro 500", "Widget 500")

        first = matcher.rank("Widget Pro 500", entries, threshold=0.0)
        second = matcher.rank("Widget Pro 500", entries, threshold=0.0)

        assert [c.entry.id for c in first] == [c.entry.id for c in second]
        assert [c.confidence for c in first] == sorted((c.confidence for c in first), reverse=True)

    def test_confidences_in_unit_interval(self, matcher):
        """Test that every confidence is within [0, 1]."""
        entries = catalog("Widget Pro 500", "Widget", "Pro", "500 Widget Pro extra long name")

        for candidate in matcher.rank("Widget Pro 500", entries, threshold=0.0):
            assert 0.0 <= candidate.confidence <= 1.0

    @pytest.mark.parametrize("query", ["", "   ", "!!!"])
    def test_empty_query(self, matcher, query):
        """Test that an empty query matches nothing."""
        assert matcher.rank(query, catalog("Widget Pro 500")) == []

    def test_empty_catalog(self, matcher):
        """Test that an empty catalog matches nothing."""
        assert matcher.rank("Widget Pro 500", []) == []


class TestGetMatchingMethod:
    """Tests for get_matching_method."""

    @pytest.mark.parametrize("confidence, expected", [
        (1.0, MatchingMethod.EXACT),
        (0.98, MatchingMethod.EXACT),
        (0.95, MatchingMethod.EXACT),
        (0.94, MatchingMethod.HIGH_FUZZY),
        (0.8, MatchingMethod.HIGH_FUZZY),
        (0.79, MatchingMethod.MEDIUM_FUZZY),
        (0.6, MatchingMethod.MEDIUM_FUZZY),
        (0.59, MatchingMethod.LOW_FUZZY),
        (0.4, MatchingMethod.LOW_FUZZY),
        (0.39, MatchingMethod.VERY_LOW_FUZZY),
        (0.0, MatchingMethod.VERY_LOW_FUZZY),
    ])
    def test_tiers(self, confidence, expected):
        """Test confidence tier boundaries."""
        assert get_matching_method(confidence) == expected


class TestCreateMatcher:
    """Tests for create_matcher factory."""

    def test_default_strategy(self):
        """Test that the default strategy is RapidFuzz."""
        assert isinstance(create_matcher(), RapidFuzzMatcher)

    def test_kwargs_forwarded(self):
        """Test that keyword arguments reach the matcher."""
        matcher = create_matcher("rapidfuzz", score_cutoff=50)

        assert matcher.score_cutoff == 50

    def test_unknown_strategy(self):
        """Test that unknown strategies are rejected."""
        with pytest.raises(ValueError, match="Unknown matching strategy"):
            create_matcher("embeddings")
