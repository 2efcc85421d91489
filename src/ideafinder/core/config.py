"""Configuration dataclasses for the IdeaFinder pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from ideafinder.classification.rules import KeywordConfig
    from ideafinder.core.cache import CacheConfig
    from ideafinder.reporting.config import ReportConfig


BUSINESS_SUBREDDITS = [
    "Entrepreneur",
    "indiehackers",
    "sidehustle",
    "SideProject",
    "startups",
    "smallbusiness",
    "SaaS",
    "microsaas",
    "Software",
    "Productivity",
    "LinkedIn",
    "FinTech",
    "Photography",
    "GameDev",
    "Accounting",
    "CyberSecurity",
    "SEO",
]

MARKETING_SUBREDDITS = [
    "marketing",
    "digital_marketing",
    "GrowthHacking",
    "marketinghacks",
    "ContentMarketing",
    "socialmedia",
    "advertising",
    "Entrepreneur",
    "startups",
]


class Strictness(str, enum.Enum):
    """How many duplicate-detection strategies run against the store."""

    BASIC = "basic"
    STANDARD = "standard"
    AUTHOR_SIMILARITY = "author_similarity"


@dataclass(slots=True)
class DedupeConfig:
    """Configuration parameters for the duplicate detection stage."""

    strictness: Strictness = Strictness.AUTHOR_SIMILARITY
    author_similarity_threshold: float = 0.30
    author_history_limit: int = 5
    title_similarity_threshold: float = 0.9
    precheck_store: bool = True


@dataclass(slots=True)
class ValidationConfig:
    """Minimum lengths a parsed record must reach before it is persisted."""

    min_name_length: int = 5
    min_analysis_length: int = 50


@dataclass(slots=True)
class BatchConfig:
    """Runtime controls for sequential batch execution."""

    batch_size: int = 5
    max_daily: int = 50
    model_prefilter: bool = True


@dataclass(slots=True)
class ModelConfig:
    """Model selection parameters for the OpenAI client."""

    name: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 4000
    prefilter_max_tokens: int = 5
    rate_limit: int = 40


@dataclass(slots=True)
class FetchConfig:
    """Which communities to read and how many posts per sort order."""

    communities: List[str] = field(default_factory=lambda: list(BUSINESS_SUBREDDITS))
    limit_per_community: int = 15
    sorts: List[str] = field(default_factory=lambda: ["top", "hot", "new"])
    time_filter: str = "month"
    min_title_length: int = 10


@dataclass(slots=True)
class StorageConfig:
    path: Path = Path("data/ideafinder.db")


@dataclass(slots=True)
class RunConfig:
    """Aggregate configuration for an ingestion run."""

    kind: str
    model: "ModelConfig"
    keywords: "KeywordConfig"
    cache: "CacheConfig"
    batch: "BatchConfig"
    dedupe: "DedupeConfig"
    validation: "ValidationConfig"
    fetch: "FetchConfig"
    storage: "StorageConfig"
    report: "ReportConfig"
