from pathlib import Path

import pytest

from ideafinder.core.cache import CacheConfig, ResponseCache
from ideafinder.core.config import ModelConfig
from ideafinder.extraction.llm_interface import (
    ExtractionError,
    GenerativeExtractionClient,
    is_negative_answer,
    split_response,
)
from ideafinder.extraction.templates import BUSINESS_TEMPLATE


def _client(fake_openai, replies, **kwargs):
    openai_client, completions = fake_openai(replies)
    return GenerativeExtractionClient(client=openai_client, model_cfg=ModelConfig(), **kwargs), completions


@pytest.mark.parametrize(
    "answer,negative",
    [("NO", True), ("No.", True), ("YES", False), ("no... actually yes", False), ("maybe", False), ("", False)],
)
def test_negative_answer_detection(answer, negative):
    assert is_negative_answer(answer) is negative


def test_pre_filter_truncates_input_and_uses_small_token_budget(fake_openai):
    client, completions = _client(fake_openai, ["NO"])

    keep = client.pre_filter("x" * 500, BUSINESS_TEMPLATE)

    assert keep is False
    call = completions.calls[0]
    user_content = call["messages"][1]["content"]
    assert "x" * 200 in user_content
    assert "x" * 201 not in user_content
    assert call["max_tokens"] == ModelConfig().prefilter_max_tokens


def test_pre_filter_fails_open(fake_openai):
    client, _ = _client(fake_openai, [RuntimeError("timeout")])
    assert client.pre_filter("Any post", BUSINESS_TEMPLATE) is True


def test_extract_splits_by_post_headers(fake_openai, make_post):
    response = (
        "=== Post 1 - Idea 1 ===\nBusiness Idea: First\n---\n"
        "=== Post 2 - Idea 1 ===\nBusiness Idea: Second\n---\n"
        "=== Post 2 - Idea 2 ===\nBusiness Idea: Third\n---\n"
        "=== Post 7 - Idea 1 ===\nBusiness Idea: Stray\n"
    )
    client, completions = _client(fake_openai, [response])
    posts = [make_post("p1"), make_post("p2")]

    outputs = client.extract(posts, BUSINESS_TEMPLATE)

    assert [(o.post_index, o.idea_index) for o in outputs] == [(0, 1), (1, 1), (1, 2)]
    assert outputs[1].text == "Business Idea: Second"
    assert len(completions.calls) == 1
    prompt = completions.calls[0]["messages"][1]["content"]
    assert "Reddit Post 1:" in prompt and "Reddit Post 2:" in prompt


def test_split_without_headers_single_post_takes_every_chunk():
    outputs = split_response("Business Idea: One\n---\nBusiness Idea: Two\n", 1)
    assert [(o.post_index, o.text) for o in outputs] == [(0, "Business Idea: One"), (0, "Business Idea: Two")]


def test_split_without_headers_positional_when_counts_match():
    outputs = split_response("Business Idea: One\n---\nBusiness Idea: Two", 2)
    assert [o.post_index for o in outputs] == [0, 1]


def test_split_without_headers_ambiguous_is_unattributed():
    assert split_response("Business Idea: One\n---\nBusiness Idea: Two\n---\nBusiness Idea: Three", 2) == []


def test_extract_failure_raises(fake_openai, make_post):
    client, _ = _client(fake_openai, [RuntimeError("rate limited")])
    with pytest.raises(ExtractionError):
        client.extract([make_post("p1")], BUSINESS_TEMPLATE)


def test_extract_uses_response_cache(fake_openai, make_post, tmp_path: Path):
    cache = ResponseCache(CacheConfig(enabled=True, path=tmp_path / "cache.json", ttl_hours=1))
    client, completions = _client(fake_openai, ["Business Idea: Cached"], cache=cache)
    posts = [make_post("p1")]

    first = client.extract(posts, BUSINESS_TEMPLATE)
    second = client.extract(posts, BUSINESS_TEMPLATE)

    assert first == second
    assert len(completions.calls) == 1
    assert client.cache_stats["hits"] == 1
    assert client.cache_stats["misses"] == 1
