import json
from pathlib import Path

from ideafinder.core.cache import CacheConfig, CacheKey, ResponseCache


def _key(posts, **overrides):
    values = {"stage": "extract", "kind": "business", "model": "gpt-4o-mini", "prompt_version": "v1", "posts": posts}
    values.update(overrides)
    return CacheKey.for_posts(**values)


def test_answer_is_reused_across_cache_instances(tmp_path: Path, make_post):
    config = CacheConfig(enabled=True, path=tmp_path / "cache.json", ttl_hours=1)
    cache = ResponseCache(config)
    calls = {"count": 0}

    def _ask():
        calls["count"] += 1
        return "Business Idea: Invoice Autopilot"

    posts = [make_post("p1"), make_post("p2")]
    first = cache.answer(_key(posts), _ask)
    second = cache.answer(_key(posts), _ask)

    assert first == second
    assert calls["count"] == 1
    assert cache.stats() == {"enabled": True, "hits": 1, "misses": 1, "expired": 0, "entries": 1}

    reloaded = ResponseCache(config)
    assert reloaded.lookup(_key(posts)) == "Business Idea: Invoice Autopilot"


def test_key_tracks_post_content_and_template_kind(make_post):
    original = [make_post("p1")]
    edited = [make_post("p1", body="Completely rewritten body about invoices.")]

    assert _key(original).digest == _key([make_post("p1")]).digest
    assert _key(original).digest != _key(edited).digest
    assert _key(original).digest != _key(original, kind="marketing").digest
    assert _key(original).digest != _key(original, stage="prefilter").digest


def test_expired_entries_are_dropped_on_load(tmp_path: Path, make_post):
    path = tmp_path / "cache.json"
    key = _key([make_post("p1")])
    path.write_text(
        json.dumps({"format": 1, "entries": {key.digest: {"stored_at": 0, "answer": "stale"}}}),
        encoding="utf-8",
    )

    cache = ResponseCache(CacheConfig(enabled=True, path=path, ttl_hours=1))

    assert cache.lookup(key) is None
    assert cache.stats()["expired"] == 1


def test_empty_answers_are_not_cached(tmp_path: Path, make_post):
    cache = ResponseCache(CacheConfig(enabled=True, path=tmp_path / "cache.json"))
    key = _key([make_post("p1")])

    cache.answer(key, lambda: "  ")

    assert cache.lookup(key) is None
    assert not (tmp_path / "cache.json").exists()


def test_disabled_cache_always_asks(tmp_path: Path, make_post):
    cache = ResponseCache(CacheConfig(enabled=False, path=tmp_path / "cache.json"))
    calls = {"count": 0}

    def _ask():
        calls["count"] += 1
        return "x"

    for _ in range(2):
        cache.answer(_key([make_post("p1")]), _ask)

    assert calls["count"] == 2
    assert not (tmp_path / "cache.json").exists()
