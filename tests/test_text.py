import pytest

from ideafinder.utils.text import (
    fingerprint,
    levenshtein_distance,
    similarity,
    strip_punctuation,
    token_overlap,
)


def test_similarity_identity_and_empty_inputs():
    assert similarity("launch checklist", "launch checklist") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("", "anything") == 0.0
    assert similarity("anything", "") == 0.0


@pytest.mark.parametrize(
    "a,b",
    [
        ("kitten", "sitting"),
        ("invoice tool", "invoicing tools"),
        ("abc", "xyz"),
    ],
)
def test_similarity_is_symmetric_and_bounded(a, b):
    forward = similarity(a, b)
    assert forward == similarity(b, a)
    assert 0.0 <= forward <= 1.0
    assert levenshtein_distance(a, b) <= max(len(a), len(b))


def test_levenshtein_known_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_token_overlap_ignores_short_tokens_and_is_symmetric():
    a = "the best crm for tiny agencies"
    b = "tiny agencies need a crm too"
    # long tokens: {best, tiny, agencies} vs {tiny, agencies, need}
    assert token_overlap(a, b) == pytest.approx(2 / 3)
    assert token_overlap(a, b) == token_overlap(b, a)
    assert token_overlap("a an the", "the an a") == 0.0


def test_fingerprint_ignores_case_punctuation_and_spacing():
    first = fingerprint("Need an App!", "Looking for   a tool, please.")
    second = fingerprint("need an app", "looking for a tool please")
    assert first == second
    assert first != fingerprint("need an app", "looking for a different tool")


def test_strip_punctuation_lowercases_and_collapses():
    assert strip_punctuation("  Hello,   WORLD!! ") == "hello world"
