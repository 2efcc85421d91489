"""Text normalisation, similarity and fingerprint helpers used across deduplication."""

from __future__ import annotations

import hashlib
import logging
import re
from typing import List, Set

logger = logging.getLogger(__name__)

PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")
MIN_OVERLAP_TOKEN_LENGTH = 3


def normalise_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim the string."""

    return re.sub(r"\s+", " ", text).strip()


def strip_punctuation(text: str) -> str:
    """Lower-case ``text`` and drop everything that is not a word character or whitespace."""

    return normalise_whitespace(PUNCTUATION_PATTERN.sub("", text.lower()))


def tokenise(text: str) -> List[str]:
    """Split ``text`` on whitespace."""

    return [tok for tok in text.split() if tok]


def long_tokens(text: str, min_length: int = MIN_OVERLAP_TOKEN_LENGTH) -> Set[str]:
    """Return the set of whitespace tokens strictly longer than ``min_length``."""

    return {tok for tok in tokenise(text) if len(tok) > min_length}


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit insertion, deletion and substitution costs."""

    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Levenshtein ratio in ``[0, 1]``: 1.0 for identical strings, 0.0 if either is empty."""

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    return 1.0 - levenshtein_distance(longer, shorter) / len(longer)


def token_overlap(a: str, b: str) -> float:
    """Shared long tokens divided by the size of the larger token set."""

    tokens_a = long_tokens(a)
    tokens_b = long_tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    shared = len(tokens_a & tokens_b)
    return shared / max(len(tokens_a), len(tokens_b))


def fingerprint(title: str, body: str) -> str:
    """Deterministic digest of a post's normalised title and body."""

    normalised = normalise_whitespace(f"{strip_punctuation(title)} {strip_punctuation(body)}")
    return hashlib.sha256(normalised.encode("utf-8")).hexdigest()


def truncate(text: str, limit: int) -> str:
    """Return at most ``limit`` characters of ``text``."""

    return text if len(text) <= limit else text[:limit]


__all__ = [
    "fingerprint",
    "levenshtein_distance",
    "long_tokens",
    "normalise_whitespace",
    "similarity",
    "strip_punctuation",
    "token_overlap",
    "tokenise",
    "truncate",
]
