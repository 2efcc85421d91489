"""Tests for batch orchestration."""

from collections import Counter

import pytest

from ideafinder.core.config import BatchConfig, ModelConfig
from ideafinder.core.models import RawModelOutput, RunStats
from ideafinder.core.pipeline import BatchOrchestrator, partition, run_ingestion
from ideafinder.core.storage import StorageError
from ideafinder.extraction.llm_interface import ExtractionError, GenerativeExtractionClient
from ideafinder.extraction.templates import BUSINESS_TEMPLATE


class ScriptedExtractor:
    """Returns one valid idea per post and fails on the listed call numbers."""

    def __init__(self, idea_text, fail_on=(), keep=True):
        self.idea_text = idea_text
        self.fail_on = set(fail_on)
        self.keep = keep
        self.calls = []

    def pre_filter(self, text, template):
        return self.keep

    def extract(self, posts, template):
        self.calls.append([post.external_id for post in posts])
        if len(self.calls) in self.fail_on:
            raise ExtractionError("model unavailable")
        return [
            RawModelOutput(post_index=index, idea_index=1, text=self.idea_text(f"Idea for {post.external_id}"))
            for index, post in enumerate(posts)
        ]


def _orchestrator(store, extractor, **batch_overrides):
    batch_values = {"batch_size": 5, "max_daily": 50, "model_prefilter": False}
    batch_values.update(batch_overrides)
    return BatchOrchestrator(
        store=store,
        extractor=extractor,
        template=BUSINESS_TEMPLATE,
        batch_cfg=BatchConfig(**batch_values),
    )


def test_partition_sizes():
    assert [len(batch) for batch in partition(list(range(23)), 10)] == [10, 10, 3]
    assert partition([], 5) == []
    with pytest.raises(ValueError):
        partition([1], 0)


def test_failed_batch_is_skipped_and_run_continues(store, make_post, make_idea_text):
    posts = [make_post(f"p{index:02d}") for index in range(1, 24)]
    extractor = ScriptedExtractor(make_idea_text, fail_on={2})
    orchestrator = _orchestrator(store, extractor)

    stats = RunStats()
    records = orchestrator.run_batch(posts, 10, stats)

    assert [len(call) for call in extractor.calls] == [10, 10, 3]
    assert len(records) == 13
    assert stats.batches == 3
    assert stats.failed_batches == 1
    failed_ids = [skip.external_id for skip in stats.skipped if skip.stage == "batch_failed"]
    assert failed_ids == [f"p{index:02d}" for index in range(11, 21)]
    assert store.query_by_external_id("p15") is None
    assert store.query_by_external_id("p21") is not None


def test_end_to_end_filter_duplicate_and_validation(store, make_post, make_idea_text, fake_openai):
    posts = [
        make_post("p1", title="Onboarding emails take forever", body="Our startup loses customers during onboarding."),
        make_post("p2", title="Best meme of the week", body="Just a meme about startup life."),
        make_post("p3", title="Pricing page question", body="How should a startup price a small product?"),
        make_post("p4", title="Client portal for agencies", body="Agencies need a client portal for approvals."),
        make_post("p5", title="Tiny idea thread", body="Any business idea for weekend makers?"),
    ]
    store.insert_parent(posts[2])
    replies = [
        "=== Post 1 - Idea 1 ===\n" + make_idea_text("Onboarding Autopilot"),
        make_idea_text("Agency Approval Portal"),
        "Business Idea: Tiny\nProblem Story: Short.",
    ]
    openai_client, completions = fake_openai(replies)
    extractor = GenerativeExtractionClient(client=openai_client, model_cfg=ModelConfig(rate_limit=0))
    orchestrator = _orchestrator(store, extractor, batch_size=1)

    result = orchestrator.run(posts)

    assert [record.name for record in result.records] == ["Onboarding Autopilot", "Agency Approval Portal"]
    assert all(record.parent_id is not None for record in result.records)
    assert Counter(skip.stage for skip in result.stats.skipped) == {
        "keyword_filter": 1,
        "duplicate": 1,
        "validation": 1,
    }
    assert result.stats.fetched == 5
    assert result.stats.filtered == 4
    assert result.stats.deduplicated == 3
    assert result.stats.rejected == 1
    assert result.stats.persisted == 2
    assert len(completions.calls) == 3
    assert len(store.fetch_ideas("business")) == 2
    # The rejected post never gets a parent row.
    assert store.query_by_external_id("p5") is None


def test_unique_violation_is_skipped(store, make_post, make_idea_text, fake_openai):
    reply = (
        "=== Post 1 - Idea 1 ===\n" + make_idea_text("Onboarding Autopilot") + "---\n"
        "=== Post 1 - Idea 2 ===\n" + make_idea_text("Onboarding Autopilot")
    )
    openai_client, _ = fake_openai([reply])
    extractor = GenerativeExtractionClient(client=openai_client, model_cfg=ModelConfig(rate_limit=0))

    result = _orchestrator(store, extractor).run([make_post("p1")])

    assert len(result.records) == 1
    assert [skip.stage for skip in result.stats.skipped] == ["constraint_unique"]


def test_extraction_error_marks_whole_batch(store, make_post, fake_openai):
    openai_client, _ = fake_openai([RuntimeError("rate limited")])
    extractor = GenerativeExtractionClient(client=openai_client, model_cfg=ModelConfig(rate_limit=0))

    result = _orchestrator(store, extractor).run([make_post("p1"), make_post("p2")])

    assert result.records == []
    assert result.stats.failed_batches == 1
    assert [skip.stage for skip in result.stats.skipped] == ["batch_failed", "batch_failed"]


def test_daily_cap_and_fingerprint_repeats(store, make_post, make_idea_text):
    posts = [
        make_post("p1"),
        make_post("p1-repost", title="Startup question number p1", body="Our startup p1 keeps losing customers to slow onboarding!"),
        make_post("p2"),
        make_post("p3"),
    ]
    extractor = ScriptedExtractor(make_idea_text)

    result = _orchestrator(store, extractor, max_daily=3).run(posts)

    stages = Counter(skip.stage for skip in result.stats.skipped)
    assert stages == {"daily_cap": 1, "fingerprint": 1}
    assert [record.source_external_id for record in result.records] == ["p1", "p2"]


def test_model_prefilter_rejection(store, make_post, make_idea_text):
    extractor = ScriptedExtractor(make_idea_text, keep=False)

    result = _orchestrator(store, extractor, model_prefilter=True).run([make_post("p1")])

    assert result.records == []
    assert extractor.calls == []
    assert [skip.stage for skip in result.stats.skipped] == ["model_prefilter"]


def test_internal_id_appends_to_existing_parent(store, make_post, make_idea_text):
    parent_id = store.insert_parent(make_post("p1"))
    extractor = ScriptedExtractor(make_idea_text)

    result = _orchestrator(store, extractor).run([make_post("p1", internal_id=parent_id)])

    assert len(result.records) == 1
    assert result.records[0].parent_id == parent_id
    assert store.count_derived(parent_id) == 1


class _FailingSource:
    def fetch_candidates(self, communities, limit_per_community):
        raise RuntimeError("reddit down")


def test_fetch_failure_propagates(store, make_idea_text):
    orchestrator = _orchestrator(store, ScriptedExtractor(make_idea_text))
    with pytest.raises(RuntimeError, match="reddit down"):
        run_ingestion(_FailingSource(), ["startups"], 10, orchestrator)


def test_end_to_end_known_posts_and_extraction_failure(store, make_post, make_idea_text, fake_openai):
    posts = [make_post(f"p{index}") for index in range(1, 6)]
    store.insert_parent(posts[1])
    store.insert_parent(posts[3])
    replies = [
        make_idea_text("Onboarding Autopilot"),
        RuntimeError("model overloaded"),
        make_idea_text("Churn Radar"),
    ]
    openai_client, completions = fake_openai(replies)
    extractor = GenerativeExtractionClient(client=openai_client, model_cfg=ModelConfig(rate_limit=0))

    result = _orchestrator(store, extractor, batch_size=1).run(posts)

    assert [record.name for record in result.records] == ["Onboarding Autopilot", "Churn Radar"]
    assert [record.source_external_id for record in result.records] == ["p1", "p5"]
    assert Counter(skip.stage for skip in result.stats.skipped) == {"duplicate": 2, "batch_failed": 1}
    assert [skip.external_id for skip in result.stats.skipped if skip.stage == "duplicate"] == ["p2", "p4"]
    assert result.stats.failed_batches == 1
    assert len(completions.calls) == 3
    assert store.query_by_external_id("p3") is None
    assert len(store.fetch_ideas("business")) == 2


class _SequencedPreFilter(ScriptedExtractor):
    def __init__(self, idea_text, answers):
        super().__init__(idea_text)
        self.answers = list(answers)

    def pre_filter(self, text, template):
        return self.answers.pop(0)


def test_fingerprints_reset_between_runs(store, make_post, make_idea_text):
    extractor = _SequencedPreFilter(make_idea_text, [False, True])
    orchestrator = _orchestrator(store, extractor, model_prefilter=True)

    first = orchestrator.run([make_post("p1")])
    second = orchestrator.run([make_post("p1")])

    assert [skip.stage for skip in first.stats.skipped] == ["model_prefilter"]
    assert second.stats.skipped == []
    assert [record.source_external_id for record in second.records] == ["p1"]


class _BrokenSecondInsertStore:
    """Delegates to a real store but fails the second record insert."""

    def __init__(self, store):
        self._store = store
        self.derived_calls = 0

    def __getattr__(self, name):
        return getattr(self._store, name)

    def insert_derived(self, record):
        self.derived_calls += 1
        if self.derived_calls == 2:
            raise StorageError("disk I/O error")
        return self._store.insert_derived(record)


def test_storage_error_is_skipped_per_post(store, make_post, make_idea_text):
    broken = _BrokenSecondInsertStore(store)
    orchestrator = _orchestrator(broken, ScriptedExtractor(make_idea_text))

    result = orchestrator.run([make_post("p1"), make_post("p2")])

    assert [record.source_external_id for record in result.records] == ["p1"]
    assert result.stats.persisted == 1
    assert result.stats.failed_batches == 0
    assert [(skip.external_id, skip.stage) for skip in result.stats.skipped] == [("p2", "storage")]
    assert len(store.fetch_ideas("business")) == 1
