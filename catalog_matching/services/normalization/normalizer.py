"""Description normalization shared by matching, storage and deduplication.

Every comparison in the engine (exact match, fuzzy scoring, alternative
description upserts, duplicate groups) goes through normalize_description(),
so two descriptions are "the same product text" exactly when their
normalized forms are equal.
"""
import re
from typing import List, Optional, Pattern, Tuple

# Recurring-billing boilerplate that would otherwise make the same monthly
# line compare as a different product every month.
NOISE_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"//.*$"), " "),
    (re.compile(r"\bmese\s+[^\W\d_]+\s+\d{4}\b"), "mese"),
    (re.compile(r"\bpagamento\s+mensile\b"), " "),
    (re.compile(r"\bcanone\s+mensile\b"), "canone"),
]

_NON_WORD = re.compile(r"[\W_]+")
_WHITESPACE = re.compile(r"\s+")


def _strip_noise(text: str) -> str:
    for pattern, replacement in NOISE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _collapse(text: str) -> str:
    text = _NON_WORD.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize_description(description: Optional[str]) -> str:
    """Canonicalize a free-text line description.

    Lowercases, removes billing noise, replaces punctuation with spaces and
    collapses whitespace. Noise removal can expose new noise once
    punctuation is gone ("pagamento-mensile"), so both steps repeat until
    the text stops changing. After the first pass every rewrite shortens
    the text, which bounds the loop and makes the function idempotent.

    Args:
        description: Raw description (None is treated as empty)

    Returns:
        Normalized description, possibly empty
    """
    if not description:
        return ""

    text = description.lower()
    while True:
        normalized = _collapse(_strip_noise(text))
        if normalized == text:
            return normalized
        text = normalized
