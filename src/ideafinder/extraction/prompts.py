"""Prompt wording for the extraction and pre-filter calls."""

from __future__ import annotations

from typing import Sequence

from ideafinder.core.models import CandidatePost
from ideafinder.extraction.templates import ExtractionTemplate, FieldKind

PROMPT_VERSION = "ideafinder-v1"

PREFILTER_SYSTEM_PROMPT = (
    "You screen Reddit posts. Answer with exactly one word, YES or NO, and nothing else."
)

BUSINESS_GUIDANCE = """You are a startup strategist and business consultant.
Analyze the following Reddit posts and generate structured founder-pack style business ideas.

Rules:
1. If a post is irrelevant (meme, rant, joke, politics, NSFW), skip it.
2. For useful posts extract the main pain point and generate 1-3 distinct ideas that solve it.
3. Every idea must include ALL of the fields below."""

MARKETING_GUIDANCE = """You are a growth marketer.
Analyze the following Reddit posts and generate practical, testable marketing ideas.

Rules:
1. If a post is irrelevant (meme, rant, joke, politics, NSFW), skip it.
2. For useful posts generate 1-3 distinct marketing ideas inspired by it.
3. Every idea must include ALL of the fields below.
4. Potential Impact must be exactly one of High, Medium or Low."""

CLOSING_RULES = """Important:
- Start every idea with a header line "=== Post N - Idea M ===" where N is the number of the Reddit post it came from.
- Separate ideas with a line containing only "---".
- Do NOT output JSON.
- Do NOT add explanations outside this structure."""


def _field_layout(template: ExtractionTemplate) -> str:
    lines = []
    for spec in template.fields:
        if spec.kind is FieldKind.LIST:
            lines.append(f"{spec.label}:\n- [bullet points]")
        else:
            lines.append(f"{spec.label}:\n[one line]")
    return "\n\n".join(lines)


def build_system_prompt(template: ExtractionTemplate) -> str:
    guidance = BUSINESS_GUIDANCE if template.kind == "business" else MARKETING_GUIDANCE
    return f"{guidance}\n\nOutput format for each idea:\n\n{_field_layout(template)}\n\n{CLOSING_RULES}"


def build_batch_prompt(posts: Sequence[CandidatePost]) -> str:
    """Number the posts of a batch so the model can attribute each idea."""

    return "\n\n".join(
        f"Reddit Post {index}:\nTitle: {post.title}\nContent: {post.body}"
        for index, post in enumerate(posts, start=1)
    )


def build_prefilter_prompt(text: str, template: ExtractionTemplate) -> str:
    return (
        f"Could the following Reddit post inspire a useful {template.subject}? "
        f"Answer YES or NO.\n\n{text}"
    )


__all__ = [
    "PREFILTER_SYSTEM_PROMPT",
    "PROMPT_VERSION",
    "build_batch_prompt",
    "build_prefilter_prompt",
    "build_system_prompt",
]
