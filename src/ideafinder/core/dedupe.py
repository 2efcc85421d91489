"""Duplicate detection against persisted posts plus the in-run fingerprint set."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Set, Tuple

from ideafinder.core.config import DedupeConfig, Strictness
from ideafinder.core.models import CandidatePost, DuplicateVerdict, NOT_DUPLICATE
from ideafinder.core.storage import RecordStore
from ideafinder.utils.text import fingerprint, similarity, strip_punctuation, token_overlap

logger = logging.getLogger(__name__)

# Placeholder authors PRAW reports for removed or anonymous accounts.
ANONYMOUS_AUTHORS = {"", "[deleted]", "none", "automoderator"}


class RunFingerprints:
    """Append-only set of content fingerprints seen during one run."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, digest: object) -> bool:
        return digest in self._seen

    def check_and_add(self, post: CandidatePost) -> bool:
        """Record ``post`` and return ``True`` if its content was already seen."""

        digest = fingerprint(post.title, post.body)
        if digest in self._seen:
            return True
        self._seen.add(digest)
        return False


Strategy = Callable[[CandidatePost], Optional[DuplicateVerdict]]


class DuplicateDetector:
    """Ordered duplicate strategies over a :class:`RecordStore`; first match wins.

    ``Strictness.BASIC`` only checks the post id, ``STANDARD`` adds exact title
    collisions and ``AUTHOR_SIMILARITY`` also compares the author's recent
    posts. Store failures are logged and the candidate is treated as new.
    """

    def __init__(self, store: RecordStore, config: Optional[DedupeConfig] = None) -> None:
        self._store = store
        self._config = config or DedupeConfig()

    def _strategies(self) -> List[Tuple[str, Strategy]]:
        strategies: List[Tuple[str, Strategy]] = [("external_id", self._by_external_id)]
        strictness = Strictness(self._config.strictness)
        if strictness in (Strictness.STANDARD, Strictness.AUTHOR_SIMILARITY):
            strategies.append(("title", self._by_title))
        if strictness is Strictness.AUTHOR_SIMILARITY:
            strategies.append(("author", self._by_author_history))
        return strategies

    def detect(self, candidate: CandidatePost) -> DuplicateVerdict:
        for name, strategy in self._strategies():
            try:
                verdict = strategy(candidate)
            except Exception:
                logger.exception("Duplicate check '%s' failed for %s; treating as new", name, candidate.external_id)
                return NOT_DUPLICATE
            if verdict is not None:
                logger.debug("Duplicate %s: %s", candidate.external_id, verdict.reason)
                return verdict
        return NOT_DUPLICATE

    def _by_external_id(self, candidate: CandidatePost) -> Optional[DuplicateVerdict]:
        existing = self._store.query_by_external_id(candidate.external_id)
        if existing is None:
            return None
        # A candidate pointing at its own parent asks to append records; only a
        # parent that already has records makes it a repeat.
        if candidate.internal_id is not None and candidate.internal_id == existing.id:
            if self._store.count_derived(existing.id) == 0:
                return None
        return DuplicateVerdict(
            is_duplicate=True,
            reason=f"same post id ({candidate.external_id})",
            matched_id=existing.id,
        )

    def _by_title(self, candidate: CandidatePost) -> Optional[DuplicateVerdict]:
        existing = self._store.query_by_title(candidate.title)
        if existing is None:
            return None
        if candidate.internal_id is not None and candidate.internal_id == existing.id:
            return None
        return DuplicateVerdict(
            is_duplicate=True,
            reason=f"exact title collision with r/{existing.community}",
            matched_id=existing.id,
        )

    def _by_author_history(self, candidate: CandidatePost) -> Optional[DuplicateVerdict]:
        if candidate.author.strip().lower() in ANONYMOUS_AUTHORS:
            return None
        history = self._store.query_by_author(candidate.author, self._config.author_history_limit)
        candidate_body = strip_punctuation(candidate.body)
        for previous in history:
            if candidate.internal_id is not None and candidate.internal_id == previous.id:
                continue
            overlap = token_overlap(candidate_body, strip_punctuation(previous.body))
            if overlap > self._config.author_similarity_threshold:
                return DuplicateVerdict(
                    is_duplicate=True,
                    reason=(
                        f"same author content overlap {overlap:.0%} with r/{previous.community} "
                        f"post {previous.external_id}"
                    ),
                    matched_id=previous.id,
                )
            title_ratio = similarity(candidate.title.lower(), previous.title.lower())
            if title_ratio >= self._config.title_similarity_threshold:
                return DuplicateVerdict(
                    is_duplicate=True,
                    reason=(
                        f"same author title similarity {title_ratio:.0%} with r/{previous.community} "
                        f"post {previous.external_id}"
                    ),
                    matched_id=previous.id,
                )
        return None


__all__ = ["ANONYMOUS_AUTHORS", "DuplicateDetector", "RunFingerprints"]
