"""Typed records flowing through the ingestion pipeline."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional


@dataclass(slots=True, frozen=True)
class CandidatePost:
    """A Reddit post eligible for idea extraction.

    ``internal_id`` is set when the post already has a persisted parent row;
    derived records are then appended to it instead of inserting a new parent.
    """

    external_id: str
    title: str
    body: str
    community: str
    author: str = ""
    score: int = 0
    num_comments: int = 0
    url: str = ""
    permalink: str = ""
    created_utc: float = 0.0
    internal_id: Optional[int] = None

    @property
    def text(self) -> str:
        return f"Title: {self.title}\nContent: {self.body}".strip()


@dataclass(slots=True, frozen=True)
class StoredPost:
    """A persisted parent row as returned by store queries."""

    id: int
    external_id: str
    title: str
    body: str
    community: str
    author: str
    created_utc: float = 0.0


class RecordStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class ExtractedRecord:
    """Fields shared by every record derived from a post."""

    KIND: ClassVar[str] = ""

    name: str = ""
    full_analysis: str = ""
    status: RecordStatus = RecordStatus.COMPLETED
    source_external_id: str = ""
    parent_id: Optional[int] = None

    @property
    def kind(self) -> str:
        return self.KIND

    def payload(self) -> Dict[str, Any]:
        """Variant-specific fields, as stored alongside the common columns."""

        common = {f.name for f in dataclasses.fields(ExtractedRecord)}
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if f.name not in common
        }

    def with_status(self, status: RecordStatus) -> "ExtractedRecord":
        return dataclasses.replace(self, status=status)

    def with_parent(self, parent_id: int) -> "ExtractedRecord":
        return dataclasses.replace(self, parent_id=parent_id)


@dataclass(slots=True, frozen=True)
class BusinessIdea(ExtractedRecord):
    KIND: ClassVar[str] = "business"

    problem_story: str = ""
    solution_vision: str = ""
    opportunity_points: List[str] = field(default_factory=list)
    problems_solved: List[str] = field(default_factory=list)
    target_customers: List[str] = field(default_factory=list)
    revenue_model: List[str] = field(default_factory=list)
    market_size: List[str] = field(default_factory=list)
    niche: str = ""
    category: str = ""
    competitive_advantage: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)
    marketing_strategy: List[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class MarketingIdea(ExtractedRecord):
    KIND: ClassVar[str] = "marketing"

    idea_description: str = ""
    channel: List[str] = field(default_factory=list)
    target_audience: List[str] = field(default_factory=list)
    potential_impact: str = ""
    implementation_tips: List[str] = field(default_factory=list)
    success_metrics: List[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class DuplicateVerdict:
    is_duplicate: bool
    reason: str = ""
    matched_id: Optional[int] = None


NOT_DUPLICATE = DuplicateVerdict(is_duplicate=False)


@dataclass(slots=True, frozen=True)
class RawModelOutput:
    """One idea-sized chunk of model text attributed to a post of the batch."""

    post_index: int
    idea_index: int
    text: str


@dataclass(slots=True, frozen=True)
class SkipRecord:
    external_id: str
    stage: str
    reason: str


@dataclass(slots=True)
class RunStats:
    """Aggregate counters reported for a run."""

    fetched: int = 0
    filtered: int = 0
    capped: int = 0
    deduplicated: int = 0
    batches: int = 0
    failed_batches: int = 0
    extracted: int = 0
    parsed: int = 0
    rejected: int = 0
    persisted: int = 0
    skipped: List[SkipRecord] = field(default_factory=list)

    def skip(self, external_id: str, stage: str, reason: str) -> None:
        self.skipped.append(SkipRecord(external_id=external_id, stage=stage, reason=reason))

    def as_dict(self) -> Dict[str, Any]:
        payload = dataclasses.asdict(self)
        payload["skipped"] = len(self.skipped)
        return payload


__all__ = [
    "BusinessIdea",
    "CandidatePost",
    "DuplicateVerdict",
    "ExtractedRecord",
    "MarketingIdea",
    "NOT_DUPLICATE",
    "RawModelOutput",
    "RecordStatus",
    "RunStats",
    "SkipRecord",
    "StoredPost",
]
