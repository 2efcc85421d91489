"""Keyword rules that decide whether a post is worth sending to the model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from ideafinder.core.models import CandidatePost

BUSINESS_KEYWORDS = [
    "business",
    "startup",
    "entrepreneur",
    "saas",
    "app",
    "product",
    "service",
    "company",
    "market",
    "revenue",
    "profit",
    "customer",
    "client",
    "user",
    "idea",
    "opportunity",
    "venture",
    "investment",
    "funding",
    "launch",
    "indie",
    "side hustle",
    "passive income",
    "freelance",
    "consulting",
    "problem",
    "struggle",
    "challenge",
    "growth",
    "scale",
    "expensive",
    "cost",
]

MARKETING_KEYWORDS = [
    "marketing",
    "growth",
    "audience",
    "campaign",
    "seo",
    "content",
    "social media",
    "ads",
    "advertising",
    "brand",
    "newsletter",
    "email",
    "launch",
    "traffic",
    "conversion",
    "funnel",
    "engagement",
    "followers",
    "customers",
    "outreach",
]

EXCLUDE_KEYWORDS = ["meme", "joke", "funny", "politics", "nsfw", "rant", "storytime", "random"]


@dataclass(slots=True)
class KeywordConfig:
    """Include/exclude keyword sets. Matching is a lower-case substring test."""

    enabled: bool = True
    include: List[str] = field(default_factory=lambda: list(BUSINESS_KEYWORDS))
    exclude: List[str] = field(default_factory=lambda: list(EXCLUDE_KEYWORDS))


def default_keywords(kind: str) -> List[str]:
    return list(MARKETING_KEYWORDS if kind == "marketing" else BUSINESS_KEYWORDS)


class KeywordPreFilter:
    """Keeps posts mentioning at least one include keyword and no exclude keyword."""

    def __init__(self, config: KeywordConfig) -> None:
        self._config = config
        self._include = tuple(keyword.lower() for keyword in config.include)
        self._exclude = tuple(keyword.lower() for keyword in config.exclude)

    def matches(self, post: CandidatePost) -> Tuple[bool, str]:
        """Return whether ``post`` passes and, if not, why."""

        if not self._config.enabled:
            return True, ""
        combined = f"{post.title} {post.body}".lower()
        for keyword in self._exclude:
            if keyword in combined:
                return False, f"exclude keyword '{keyword}'"
        if self._include and not any(keyword in combined for keyword in self._include):
            return False, "no include keyword"
        return True, ""

    def filter(self, posts: Iterable[CandidatePost]) -> Tuple[List[CandidatePost], List[Tuple[CandidatePost, str]]]:
        kept: List[CandidatePost] = []
        dropped: List[Tuple[CandidatePost, str]] = []
        for post in posts:
            passed, reason = self.matches(post)
            if passed:
                kept.append(post)
            else:
                dropped.append((post, reason))
        return kept, dropped


__all__ = [
    "BUSINESS_KEYWORDS",
    "EXCLUDE_KEYWORDS",
    "KeywordConfig",
    "KeywordPreFilter",
    "MARKETING_KEYWORDS",
    "default_keywords",
]
