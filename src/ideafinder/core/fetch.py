"""Post sources: live Reddit via PRAW, or a CSV export via pandas."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set

import pandas as pd
import praw

from ideafinder.core.config import FetchConfig
from ideafinder.core.models import CandidatePost
from ideafinder.settings import reddit_credentials
from ideafinder.utils.io import load_dataframe

logger = logging.getLogger(__name__)


class PostSource(Protocol):
    def fetch_candidates(self, communities: Sequence[str], limit_per_community: int) -> List[CandidatePost]: ...


def get_reddit_instance() -> praw.Reddit:
    """Return a configured Reddit API client."""

    return praw.Reddit(**reddit_credentials())


def submission_to_candidate(submission: Any) -> CandidatePost:
    author = submission.author
    return CandidatePost(
        external_id=str(submission.id),
        title=submission.title or "",
        body=submission.selftext or "",
        community=submission.subreddit.display_name,
        author=str(author) if author is not None else "[deleted]",
        score=int(submission.score or 0),
        num_comments=int(submission.num_comments or 0),
        url=submission.url or "",
        permalink=f"https://reddit.com{submission.permalink}",
        created_utc=float(submission.created_utc or 0.0),
    )


class RedditPostSource:
    """Reads each community's listing for every configured sort order."""

    def __init__(self, config: Optional[FetchConfig] = None, reddit: Optional[praw.Reddit] = None) -> None:
        self._config = config or FetchConfig()
        self._reddit = reddit

    @property
    def reddit(self) -> praw.Reddit:
        if self._reddit is None:
            self._reddit = get_reddit_instance()
        return self._reddit

    def _listing(self, subreddit: Any, sort: str, limit: int):
        if sort == "top":
            return subreddit.top(time_filter=self._config.time_filter, limit=limit)
        if sort == "hot":
            return subreddit.hot(limit=limit)
        if sort == "new":
            return subreddit.new(limit=limit)
        raise ValueError(f"Unsupported sort order: {sort}")

    def fetch_candidates(self, communities: Sequence[str], limit_per_community: int) -> List[CandidatePost]:
        seen: Set[str] = set()
        results: List[CandidatePost] = []
        for community in communities:
            subreddit = self.reddit.subreddit(community)
            fetched = 0
            for sort in self._config.sorts:
                for submission in self._listing(subreddit, sort, limit_per_community):
                    if submission.id in seen:
                        continue
                    if len((submission.title or "").strip()) < self._config.min_title_length:
                        continue
                    seen.add(submission.id)
                    results.append(submission_to_candidate(submission))
                    fetched += 1
            logger.info("Fetched %d posts from r/%s", fetched, community)
        return results


COLUMN_ALIASES: Dict[str, Sequence[str]] = {
    "external_id": ("external_id", "id", "post_id"),
    "title": ("title",),
    "body": ("body", "selftext", "content"),
    "community": ("community", "subreddit"),
    "author": ("author",),
    "score": ("score", "upvotes"),
    "num_comments": ("num_comments",),
    "url": ("url",),
    "permalink": ("permalink",),
    "created_utc": ("created_utc",),
}


def _resolve_column(df: pd.DataFrame, field: str) -> Optional[str]:
    for alias in COLUMN_ALIASES[field]:
        if alias in df.columns:
            return alias
    return None


def dataframe_to_candidates(df: pd.DataFrame) -> List[CandidatePost]:
    """Convert a dataframe of posts into candidates, tolerating the usual column names."""

    columns = {field: _resolve_column(df, field) for field in COLUMN_ALIASES}
    for required in ("external_id", "title"):
        if columns[required] is None:
            raise ValueError(f"Input is missing a '{required}' column")

    def _value(row: pd.Series, field: str, default: Any) -> Any:
        column = columns[field]
        if column is None:
            return default
        value = row[column]
        return default if value == "" else value

    candidates: List[CandidatePost] = []
    for _, row in df.iterrows():
        candidates.append(
            CandidatePost(
                external_id=str(_value(row, "external_id", "")),
                title=str(_value(row, "title", "")),
                body=str(_value(row, "body", "")),
                community=str(_value(row, "community", "")),
                author=str(_value(row, "author", "")),
                score=int(float(_value(row, "score", 0))),
                num_comments=int(float(_value(row, "num_comments", 0))),
                url=str(_value(row, "url", "")),
                permalink=str(_value(row, "permalink", "")),
                created_utc=float(_value(row, "created_utc", 0.0)),
            )
        )
    return candidates


class CsvPostSource:
    """Offline source reading a CSV of previously fetched posts."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def fetch_candidates(self, communities: Sequence[str], limit_per_community: int) -> List[CandidatePost]:
        candidates = dataframe_to_candidates(load_dataframe(self._path))
        wanted = {community.lower() for community in communities}
        counts: Dict[str, int] = {}
        results: List[CandidatePost] = []
        for candidate in candidates:
            key = candidate.community.lower()
            if wanted and key not in wanted:
                continue
            if limit_per_community > 0 and counts.get(key, 0) >= limit_per_community:
                continue
            counts[key] = counts.get(key, 0) + 1
            results.append(candidate)
        logger.info("Loaded %d of %d posts from %s", len(results), len(candidates), self._path)
        return results


__all__ = [
    "CsvPostSource",
    "PostSource",
    "RedditPostSource",
    "dataframe_to_candidates",
    "get_reddit_instance",
    "submission_to_candidate",
]
