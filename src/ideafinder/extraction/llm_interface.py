"""Thin wrapper around the OpenAI chat completion API for idea extraction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI

from ideafinder.core.cache import CacheConfig, CacheKey, ResponseCache
from ideafinder.core.config import ModelConfig
from ideafinder.core.models import CandidatePost, RawModelOutput
from ideafinder.extraction.parser import HEADER_PATTERN
from ideafinder.extraction.prompts import (
    PREFILTER_SYSTEM_PROMPT,
    PROMPT_VERSION,
    build_batch_prompt,
    build_prefilter_prompt,
    build_system_prompt,
)
from ideafinder.extraction.templates import ExtractionTemplate
from ideafinder.utils.rate_limit import RateLimiter
from ideafinder.utils.text import truncate

logger = logging.getLogger(__name__)

PREFILTER_INPUT_LIMIT = 200
SEPARATOR_PATTERN = re.compile(r"^[ \t]*-{3,}[ \t]*$", re.MULTILINE)


class ExtractionError(RuntimeError):
    """Raised when the extraction call itself fails. No output is fabricated."""


def is_negative_answer(answer: str) -> bool:
    """True only when the answer says "no" and never says "yes"."""

    lowered = answer.lower()
    has_no = re.search(r"\bno\b", lowered) is not None
    has_yes = re.search(r"\byes\b", lowered) is not None
    return has_no and not has_yes


def split_response(content: str, post_count: int) -> List[RawModelOutput]:
    """Attribute idea-sized chunks of ``content`` to the posts of a batch.

    ``=== Post N - Idea M ===`` headers are authoritative. Without headers the
    text is split on ``---`` lines: a single-post batch takes every chunk, a
    batch whose chunk count equals its post count is matched positionally, and
    anything else is left unattributed.
    """

    headers = list(HEADER_PATTERN.finditer(content))
    outputs: List[RawModelOutput] = []
    if headers:
        for position, match in enumerate(headers):
            end = headers[position + 1].start() if position + 1 < len(headers) else len(content)
            chunk = SEPARATOR_PATTERN.sub("", content[match.end() : end]).strip()
            post_number = int(match.group(1))
            if not 1 <= post_number <= post_count:
                logger.warning("Dropping idea for out-of-range post number %d (batch of %d)", post_number, post_count)
                continue
            if not chunk:
                continue
            outputs.append(RawModelOutput(post_index=post_number - 1, idea_index=int(match.group(2)), text=chunk))
        return outputs

    chunks = [chunk.strip() for chunk in SEPARATOR_PATTERN.split(content) if chunk.strip()]
    if not chunks:
        return outputs
    if post_count == 1:
        return [RawModelOutput(post_index=0, idea_index=i, text=chunk) for i, chunk in enumerate(chunks, start=1)]
    if len(chunks) == post_count:
        return [RawModelOutput(post_index=i, idea_index=1, text=chunk) for i, chunk in enumerate(chunks)]
    logger.warning(
        "Model output has no post headers and %d chunks for %d posts; leaving it unattributed",
        len(chunks),
        post_count,
    )
    return outputs


class GenerativeExtractionClient:
    """Runs the yes/no pre-filter and the batched extraction call."""

    def __init__(
        self,
        *,
        client: OpenAI,
        model_cfg: ModelConfig,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[ResponseCache] = None,
    ) -> None:
        self._client = client
        self._model_cfg = model_cfg
        self._rate_limiter = rate_limiter or RateLimiter(0)
        self._cache = cache or ResponseCache(CacheConfig())

    @property
    def cache_stats(self) -> Dict[str, Any]:
        return self._cache.stats()

    def _complete(self, *, key: CacheKey, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        def _ask() -> str:
            with self._rate_limiter.slot():
                response = self._client.chat.completions.create(
                    model=self._model_cfg.name,
                    temperature=self._model_cfg.temperature,
                    max_tokens=max_tokens,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                )
            if not response.choices:
                return ""
            return response.choices[0].message.content or ""

        return self._cache.answer(key, _ask)

    def pre_filter(self, text: str, template: ExtractionTemplate) -> bool:
        """Cheap relevance check. Any failure lets the post through."""

        snippet = truncate(text, PREFILTER_INPUT_LIMIT)
        key = CacheKey.for_text(
            stage="prefilter",
            kind=template.kind,
            model=self._model_cfg.name,
            prompt_version=PROMPT_VERSION,
            text=snippet,
        )
        try:
            answer = self._complete(
                key=key,
                system_prompt=PREFILTER_SYSTEM_PROMPT,
                user_prompt=build_prefilter_prompt(snippet, template),
                max_tokens=self._model_cfg.prefilter_max_tokens,
            )
        except Exception:
            logger.exception("Pre-filter call failed; keeping post")
            return True
        keep = not is_negative_answer(answer)
        logger.debug("Pre-filter answer %r -> keep=%s", answer.strip(), keep)
        return keep

    def extract(self, posts: Sequence[CandidatePost], template: ExtractionTemplate) -> List[RawModelOutput]:
        """Make one extraction call for the whole batch and split the answer per post."""

        if not posts:
            return []
        key = CacheKey.for_posts(
            stage="extract",
            kind=template.kind,
            model=self._model_cfg.name,
            prompt_version=PROMPT_VERSION,
            posts=posts,
        )
        try:
            content = self._complete(
                key=key,
                system_prompt=build_system_prompt(template),
                user_prompt=build_batch_prompt(posts),
                max_tokens=self._model_cfg.max_tokens,
            )
        except Exception as exc:
            raise ExtractionError(f"Extraction call failed for batch of {len(posts)} posts: {exc}") from exc
        outputs = split_response(content, len(posts))
        logger.info("Extraction returned %d idea chunks for %d posts", len(outputs), len(posts))
        return outputs


__all__ = ["ExtractionError", "GenerativeExtractionClient", "is_negative_answer", "split_response"]
