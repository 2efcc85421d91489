"""On-disk cache of model answers, keyed by the posts and template a call was about.

Re-running a day's ingestion over the same posts should not pay for the same
pre-filter and extraction calls twice. An entry is addressed by the call stage,
the template kind, the model, the prompt version and the ``id:fingerprint`` of
every post in the call, so an edited post or a new prompt asks the model again.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from ideafinder.core.models import CandidatePost
from ideafinder.utils.text import fingerprint

logger = logging.getLogger(__name__)

CACHE_FORMAT = 1


@dataclasses.dataclass(slots=True)
class CacheConfig:
    enabled: bool = False
    path: Path = Path("data/.cache/responses.json")
    ttl_hours: int = 24

    @property
    def ttl_seconds(self) -> int:
        return int(self.ttl_hours * 3600)


@dataclasses.dataclass(frozen=True, slots=True)
class CacheKey:
    """Identity of one model call."""

    stage: str
    kind: str
    model: str
    prompt_version: str
    posts: Tuple[str, ...]

    @classmethod
    def for_posts(
        cls,
        *,
        stage: str,
        kind: str,
        model: str,
        prompt_version: str,
        posts: Sequence[CandidatePost],
    ) -> "CacheKey":
        refs = tuple(f"{post.external_id}:{fingerprint(post.title, post.body)}" for post in posts)
        return cls(stage=stage, kind=kind, model=model, prompt_version=prompt_version, posts=refs)

    @classmethod
    def for_text(cls, *, stage: str, kind: str, model: str, prompt_version: str, text: str) -> "CacheKey":
        return cls(stage=stage, kind=kind, model=model, prompt_version=prompt_version, posts=(fingerprint(text, ""),))

    @property
    def digest(self) -> str:
        raw = "|".join((self.stage, self.kind, self.model, self.prompt_version, *self.posts))
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ResponseCache:
    """JSON-file cache of answer strings. A disabled cache never hits and never writes."""

    def __init__(self, config: CacheConfig) -> None:
        self._config = config
        self._lock = threading.RLock()
        self._entries: Dict[str, Dict[str, Any]] = {}
        self.hits = 0
        self.misses = 0
        self.expired = 0
        if config.enabled:
            self._load()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def _fresh(self, entry: Dict[str, Any], now: float) -> bool:
        ttl = self._config.ttl_seconds
        return ttl <= 0 or now - float(entry.get("stored_at", 0)) < ttl

    def _load(self) -> None:
        path = self._config.path
        if not path.exists():
            return
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError):
            logger.exception("Ignoring unreadable response cache at %s", path)
            return
        if not isinstance(payload, dict) or payload.get("format") != CACHE_FORMAT:
            logger.warning("Ignoring response cache at %s written in another format", path)
            return
        now = time.time()
        entries = payload.get("entries", {})
        self._entries = {digest: entry for digest, entry in entries.items() if self._fresh(entry, now)}
        self.expired += len(entries) - len(self._entries)
        logger.info("Loaded %d cached model answers from %s", len(self._entries), path)

    def _write(self) -> None:
        path = self._config.path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump({"format": CACHE_FORMAT, "entries": self._entries}, handle, ensure_ascii=False, indent=2)
        tmp_path.replace(path)

    def lookup(self, key: CacheKey) -> Optional[str]:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key.digest)
            if entry is None:
                return None
            if not self._fresh(entry, time.time()):
                del self._entries[key.digest]
                self.expired += 1
                return None
            return str(entry["answer"])

    def store(self, key: CacheKey, answer: str) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key.digest] = {
                "stored_at": time.time(),
                "stage": key.stage,
                "kind": key.kind,
                "posts": len(key.posts),
                "answer": answer,
            }
            self._write()

    def answer(self, key: CacheKey, ask: Callable[[], str]) -> str:
        """Return the cached answer for ``key`` or call ``ask`` and remember a non-empty result."""

        cached = self.lookup(key)
        if cached is not None:
            self.hits += 1
            logger.debug("Cached %s answer for %d post(s)", key.stage, len(key.posts))
            return cached
        self.misses += 1
        answer = ask()
        if answer.strip():
            self.store(key, answer)
        return answer

    def stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "entries": len(self._entries),
        }


__all__ = ["CacheConfig", "CacheKey", "ResponseCache"]
