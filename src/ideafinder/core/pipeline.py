"""Batch orchestration: filter, deduplicate, extract, parse, validate and persist posts."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ideafinder.classification.rules import KeywordConfig, KeywordPreFilter
from ideafinder.core.config import BatchConfig, DedupeConfig, ValidationConfig
from ideafinder.core.dedupe import DuplicateDetector, RunFingerprints
from ideafinder.core.fetch import PostSource
from ideafinder.core.models import CandidatePost, ExtractedRecord, RunStats
from ideafinder.core.storage import ConstraintError, RecordStore, StorageError
from ideafinder.extraction.llm_interface import GenerativeExtractionClient
from ideafinder.extraction.parser import build_record, parse
from ideafinder.extraction.templates import ExtractionTemplate
from ideafinder.extraction.validation import validate_record
from ideafinder.utils.logging import structured_log

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunResult:
    records: List[ExtractedRecord] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)


def partition(posts: Sequence[CandidatePost], batch_size: int) -> List[List[CandidatePost]]:
    """Split ``posts`` into consecutive batches of at most ``batch_size``."""

    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(posts[start : start + batch_size]) for start in range(0, len(posts), batch_size)]


class BatchOrchestrator:
    """Runs posts through the extraction pipeline one batch at a time.

    Batches execute strictly in order; a failure inside one batch is logged,
    every post of that batch is recorded as skipped, and the next batch runs.
    Each ``run`` gets a fresh fingerprint set, the only state shared between
    its batches.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        extractor: GenerativeExtractionClient,
        template: ExtractionTemplate,
        batch_cfg: Optional[BatchConfig] = None,
        dedupe_cfg: Optional[DedupeConfig] = None,
        validation_cfg: Optional[ValidationConfig] = None,
        keyword_cfg: Optional[KeywordConfig] = None,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._template = template
        self._batch_cfg = batch_cfg or BatchConfig()
        self._dedupe_cfg = dedupe_cfg or DedupeConfig()
        self._validation_cfg = validation_cfg or ValidationConfig()
        self._keyword_filter = KeywordPreFilter(keyword_cfg or KeywordConfig())
        self._detector = DuplicateDetector(store, self._dedupe_cfg)

    def _select(
        self,
        posts: Sequence[CandidatePost],
        stats: RunStats,
        fingerprints: RunFingerprints,
    ) -> List[CandidatePost]:
        """Keyword filter, daily cap and pre-batch deduplication."""

        kept, dropped = self._keyword_filter.filter(posts)
        for post, reason in dropped:
            stats.skip(post.external_id, "keyword_filter", reason)
        stats.filtered = len(kept)

        capped = kept[: self._batch_cfg.max_daily]
        for post in kept[self._batch_cfg.max_daily :]:
            stats.skip(post.external_id, "daily_cap", f"over daily cap of {self._batch_cfg.max_daily}")
        stats.capped = len(capped)

        unique: List[CandidatePost] = []
        for post in capped:
            if fingerprints.check_and_add(post):
                stats.skip(post.external_id, "fingerprint", "content already seen in this run")
                continue
            if self._dedupe_cfg.precheck_store:
                verdict = self._detector.detect(post)
                if verdict.is_duplicate:
                    stats.skip(post.external_id, "duplicate", verdict.reason)
                    continue
            unique.append(post)
        stats.deduplicated = len(unique)
        return unique

    def _persist(
        self,
        post: CandidatePost,
        records: List[ExtractedRecord],
        stats: RunStats,
    ) -> List[ExtractedRecord]:
        """Write the parent (unless appending) and its records.

        Store failures are recorded per post so the returned records always
        match what was committed.
        """

        parent_id = post.internal_id
        if parent_id is None:
            try:
                parent_id = self._store.insert_parent(post)
            except ConstraintError as exc:
                logger.warning("Skipping %s: parent rejected by %s constraint", post.external_id, exc.kind)
                stats.skip(post.external_id, f"constraint_{exc.kind}", str(exc))
                return []
            except StorageError as exc:
                logger.error("Skipping %s: parent insert failed: %s", post.external_id, exc)
                stats.skip(post.external_id, "storage", str(exc))
                return []
        persisted: List[ExtractedRecord] = []
        for record in records:
            linked = record.with_parent(parent_id)
            try:
                self._store.insert_derived(linked)
            except ConstraintError as exc:
                logger.warning(
                    "Skipping %s record '%s' for %s: %s constraint", linked.kind, linked.name, post.external_id, exc.kind
                )
                stats.skip(post.external_id, f"constraint_{exc.kind}", str(exc))
                continue
            except StorageError as exc:
                logger.error("Skipping %s record '%s' for %s: %s", linked.kind, linked.name, post.external_id, exc)
                stats.skip(post.external_id, "storage", str(exc))
                continue
            persisted.append(linked)
        stats.persisted += len(persisted)
        return persisted

    def _process_batch(self, batch: List[CandidatePost], stats: RunStats) -> List[ExtractedRecord]:
        survivors: List[CandidatePost] = []
        for post in batch:
            verdict = self._detector.detect(post)
            if verdict.is_duplicate:
                stats.skip(post.external_id, "duplicate", verdict.reason)
                continue
            if self._batch_cfg.model_prefilter and not self._extractor.pre_filter(post.text, self._template):
                stats.skip(post.external_id, "model_prefilter", "model judged post irrelevant")
                continue
            survivors.append(post)
        if not survivors:
            return []

        outputs = self._extractor.extract(survivors, self._template)
        stats.extracted += len(outputs)

        by_post: Dict[int, List[ExtractedRecord]] = {}
        for output in outputs:
            post = survivors[output.post_index]
            record = build_record(
                parse(output.text, self._template),
                self._template,
                full_analysis=output.text,
                source_external_id=post.external_id,
            )
            stats.parsed += 1
            outcome = validate_record(record, self._validation_cfg)
            if not outcome.accepted:
                stats.rejected += 1
                stats.skip(post.external_id, "validation", outcome.reason or "rejected")
                continue
            by_post.setdefault(output.post_index, []).append(outcome.record)

        results: List[ExtractedRecord] = []
        for index, post in enumerate(survivors):
            if index not in by_post:
                if not any(output.post_index == index for output in outputs):
                    stats.skip(post.external_id, "extraction", "no ideas returned for post")
                continue
            results.extend(self._persist(post, by_post[index], stats))
        return results

    def run_batch(
        self,
        posts: Sequence[CandidatePost],
        batch_size: Optional[int] = None,
        stats: Optional[RunStats] = None,
    ) -> List[ExtractedRecord]:
        """Process already-selected ``posts`` in sequential batches and return persisted records."""

        stats = stats if stats is not None else RunStats()
        size = batch_size or self._batch_cfg.batch_size
        records: List[ExtractedRecord] = []
        for number, batch in enumerate(partition(posts, size), start=1):
            stats.batches += 1
            started = time.time()
            try:
                batch_records = self._process_batch(batch, stats)
            except Exception as exc:
                stats.failed_batches += 1
                logger.exception("Batch %d failed", number)
                for post in batch:
                    stats.skip(post.external_id, "batch_failed", str(exc))
                structured_log(logging.WARNING, event="batch_failed", batch=number, size=len(batch), error=str(exc))
                continue
            records.extend(batch_records)
            structured_log(
                logging.INFO,
                event="batch_complete",
                batch=number,
                size=len(batch),
                records=len(batch_records),
                seconds=round(time.time() - started, 3),
            )
        return records

    def run(self, posts: Sequence[CandidatePost]) -> RunResult:
        stats = RunStats(fetched=len(posts))
        selected = self._select(posts, stats, RunFingerprints())
        structured_log(
            logging.INFO,
            event="batches_planned",
            kind=self._template.kind,
            posts=len(selected),
            batch_size=self._batch_cfg.batch_size,
        )
        records = self.run_batch(selected, self._batch_cfg.batch_size, stats)
        structured_log(logging.INFO, event="run_complete", kind=self._template.kind, **stats.as_dict())
        return RunResult(records=records, stats=stats)


def run_ingestion(
    source: PostSource,
    communities: Sequence[str],
    limit_per_community: int,
    orchestrator: BatchOrchestrator,
) -> RunResult:
    """Fetch candidates and run them through ``orchestrator``. Fetch errors propagate."""

    structured_log(
        logging.INFO,
        event="ingestion_start",
        communities=list(communities),
        limit_per_community=limit_per_community,
    )
    posts = source.fetch_candidates(communities, limit_per_community)
    return orchestrator.run(posts)


__all__ = ["BatchOrchestrator", "RunResult", "partition", "run_ingestion"]
