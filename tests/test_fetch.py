from pathlib import Path
from types import SimpleNamespace

import pandas as pd
import pytest

from ideafinder.core.config import FetchConfig
from ideafinder.core.fetch import CsvPostSource, RedditPostSource


def _submission(post_id, title, author="maker_jane"):
    return SimpleNamespace(
        id=post_id,
        title=title,
        selftext="Body text",
        subreddit=SimpleNamespace(display_name="startups"),
        author=author,
        score=3,
        num_comments=1,
        url=f"https://reddit.com/{post_id}",
        permalink=f"/r/startups/comments/{post_id}",
        created_utc=1_700_000_000,
    )


class _FakeSubreddit:
    def __init__(self, listings):
        self.listings = listings
        self.requests = []

    def top(self, time_filter, limit):
        self.requests.append(("top", time_filter, limit))
        return self.listings["top"]

    def hot(self, limit):
        self.requests.append(("hot", limit))
        return self.listings["hot"]

    def new(self, limit):
        self.requests.append(("new", limit))
        return self.listings["new"]


def test_reddit_source_merges_sorts_and_skips_short_titles():
    subreddit = _FakeSubreddit(
        {
            "top": [_submission("a", "A long enough title"), _submission("b", "Too short")],
            "hot": [_submission("a", "A long enough title"), _submission("c", "Another proper title", author=None)],
            "new": [_submission("d", "Yet another proper title")],
        }
    )
    reddit = SimpleNamespace(subreddit=lambda name: subreddit)

    posts = RedditPostSource(FetchConfig(), reddit=reddit).fetch_candidates(["startups"], 15)

    assert [post.external_id for post in posts] == ["a", "c", "d"]
    assert posts[1].author == "[deleted]"
    assert posts[0].permalink == "https://reddit.com/r/startups/comments/a"
    assert ("top", "month", 15) in subreddit.requests


def test_csv_source_filters_communities_and_limits(tmp_path: Path):
    path = tmp_path / "posts.csv"
    pd.DataFrame(
        [
            {"id": "p1", "title": "First", "selftext": "one", "subreddit": "SaaS", "author": "a", "score": 5},
            {"id": "p2", "title": "Second", "selftext": "two", "subreddit": "SaaS", "author": "b", "score": ""},
            {"id": "p3", "title": "Third", "selftext": "three", "subreddit": "startups", "author": "c", "score": 1},
            {"id": "p4", "title": "Fourth", "selftext": "four", "subreddit": "gaming", "author": "d", "score": 1},
        ]
    ).to_csv(path, index=False)

    posts = CsvPostSource(path).fetch_candidates(["saas", "startups"], 1)

    assert [post.external_id for post in posts] == ["p1", "p3"]
    assert posts[0].body == "one"
    assert posts[0].score == 5


def test_csv_source_requires_id_column(tmp_path: Path):
    path = tmp_path / "posts.csv"
    pd.DataFrame([{"title": "No id"}]).to_csv(path, index=False)
    with pytest.raises(ValueError):
        CsvPostSource(path).fetch_candidates([], 0)


def test_csv_source_keeps_ids_as_text(tmp_path: Path):
    path = tmp_path / "posts.csv"
    path.write_text("ID,Title,Score\n1e5,Scientific looking id,7\n0123,Leading zero id,\n", encoding="utf-8")

    posts = CsvPostSource(path).fetch_candidates([], 0)

    assert [post.external_id for post in posts] == ["1e5", "0123"]
    assert [post.score for post in posts] == [7, 0]
