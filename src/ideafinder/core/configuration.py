"""Configuration loading utilities for ingestion runs."""

from __future__ import annotations

import argparse
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ideafinder.classification.rules import EXCLUDE_KEYWORDS, KeywordConfig, default_keywords
from ideafinder.core.cache import CacheConfig
from ideafinder.core.config import (
    BUSINESS_SUBREDDITS,
    MARKETING_SUBREDDITS,
    BatchConfig,
    DedupeConfig,
    FetchConfig,
    ModelConfig,
    RunConfig,
    StorageConfig,
    Strictness,
    ValidationConfig,
)
from ideafinder.reporting.config import ReportConfig

KINDS = ("business", "marketing")


def _load_yaml_config(path: Optional[Path]) -> Dict[str, Any]:
    """
    - Opens and safely parses a YAML file into a Python dictionary.
    - Returns an empty dict if the file is missing.
    - Raises ``ValueError`` when the document is not a mapping.
    """
    if path and path.exists():
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        if not isinstance(payload, dict):
            raise ValueError(f"Invalid YAML config structure at {path}")
        return payload
    return {}


def _section(payload: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = payload.get(name, {})
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def _parse_strictness(value: Any) -> Strictness:
    try:
        return Strictness(str(value))
    except ValueError as exc:
        choices = ", ".join(level.value for level in Strictness)
        raise ValueError(f"Unknown strictness '{value}' (expected one of: {choices})") from exc


def build_run_config(args: argparse.Namespace) -> RunConfig:
    # Load the YAML configuration and overlay CLI overrides.
    config_path = Path(args.config) if getattr(args, "config", None) else None
    yaml_payload = _load_yaml_config(config_path)

    kind = str(getattr(args, "kind", None) or yaml_payload.get("kind", "business"))
    if kind not in KINDS:
        raise ValueError(f"Unknown record kind '{kind}'")

    # Model Configuration
    model_section = _section(yaml_payload, "model")
    model_cfg = ModelConfig(
        name=str(model_section.get("name", "gpt-4o-mini")),
        temperature=float(model_section.get("temperature", 0.2)),
        max_tokens=int(model_section.get("max_tokens", 4000)),
        prefilter_max_tokens=int(model_section.get("prefilter_max_tokens", 5)),
        rate_limit=int(model_section.get("rate_limit", 40)),
    )
    if getattr(args, "model", None):
        model_cfg.name = str(args.model)
    if getattr(args, "temperature", None) is not None:
        model_cfg.temperature = float(args.temperature)
    if getattr(args, "rate_limit", None) is not None:
        model_cfg.rate_limit = max(0, int(args.rate_limit))

    # Keyword Configuration
    keyword_section = _section(yaml_payload, "keywords")
    keyword_cfg = KeywordConfig(
        enabled=bool(keyword_section.get("enabled", True)),
        include=list(keyword_section.get(f"{kind}_include") or default_keywords(kind)),
        exclude=list(keyword_section.get("exclude") or EXCLUDE_KEYWORDS),
    )

    # Cache Configuration
    cache_section = _section(yaml_payload, "cache")
    cache_cfg = CacheConfig(
        enabled=bool(cache_section.get("enabled", False)),
        path=Path(cache_section.get("path", "data/.cache/responses.json")),
        ttl_hours=int(cache_section.get("ttl_hours", 24)),
    )
    if getattr(args, "cache", None) is not None:
        cache_cfg.enabled = args.cache == "on"

    # Batch Configuration
    batch_section = _section(yaml_payload, "batch")
    batch_cfg = BatchConfig(
        batch_size=int(batch_section.get("batch_size", 5)),
        max_daily=int(batch_section.get("max_daily", 50)),
        model_prefilter=bool(batch_section.get("model_prefilter", True)),
    )
    if getattr(args, "batch_size", None) is not None:
        batch_cfg.batch_size = int(args.batch_size)
    if getattr(args, "max_daily", None) is not None:
        batch_cfg.max_daily = int(args.max_daily)
    if getattr(args, "no_prefilter", False):
        batch_cfg.model_prefilter = False
    if batch_cfg.batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    if batch_cfg.max_daily < 0:
        raise ValueError("max_daily must not be negative")

    # Deduplication Configuration
    dedupe_section = _section(yaml_payload, "dedupe")
    dedupe_cfg = DedupeConfig(
        strictness=_parse_strictness(dedupe_section.get("strictness", Strictness.AUTHOR_SIMILARITY.value)),
        author_similarity_threshold=float(dedupe_section.get("author_similarity_threshold", 0.30)),
        author_history_limit=int(dedupe_section.get("author_history_limit", 5)),
        title_similarity_threshold=float(dedupe_section.get("title_similarity_threshold", 0.9)),
        precheck_store=bool(dedupe_section.get("precheck_store", True)),
    )
    if getattr(args, "strictness", None):
        dedupe_cfg.strictness = _parse_strictness(args.strictness)

    # Validation Configuration
    validation_section = _section(yaml_payload, "validation")
    validation_cfg = ValidationConfig(
        min_name_length=int(validation_section.get("min_name_length", 5)),
        min_analysis_length=int(validation_section.get("min_analysis_length", 50)),
    )

    # Fetch Configuration
    fetch_section = _section(yaml_payload, "fetch")
    default_communities = MARKETING_SUBREDDITS if kind == "marketing" else BUSINESS_SUBREDDITS
    fetch_cfg = FetchConfig(
        communities=list(fetch_section.get(f"{kind}_communities") or default_communities),
        limit_per_community=int(fetch_section.get("limit_per_community", 15)),
        sorts=list(fetch_section.get("sorts") or ["top", "hot", "new"]),
        time_filter=str(fetch_section.get("time_filter", "month")),
        min_title_length=int(fetch_section.get("min_title_length", 10)),
    )
    if getattr(args, "communities", None):
        fetch_cfg.communities = [name.strip() for name in args.communities.split(",") if name.strip()]
    if getattr(args, "limit_per_community", None) is not None:
        fetch_cfg.limit_per_community = int(args.limit_per_community)

    # Storage Configuration
    storage_section = _section(yaml_payload, "storage")
    storage_cfg = StorageConfig(path=Path(storage_section.get("path", "data/ideafinder.db")))
    if getattr(args, "db_path", None):
        storage_cfg.path = Path(args.db_path)

    # Reporting Configuration
    report_section = _section(yaml_payload, "report")
    report_cfg = ReportConfig(
        path=Path(report_section.get("path")) if report_section.get("path") else None,
        records_path=Path(report_section.get("records_path")) if report_section.get("records_path") else None,
    )
    if getattr(args, "report_path", None):
        report_cfg.path = Path(args.report_path)
    if getattr(args, "output", None):
        report_cfg.records_path = Path(args.output)

    # Aggregate all configurations into a single RunConfig object.
    return RunConfig(
        kind=kind,
        model=model_cfg,
        keywords=keyword_cfg,
        cache=cache_cfg,
        batch=batch_cfg,
        dedupe=dedupe_cfg,
        validation=validation_cfg,
        fetch=fetch_cfg,
        storage=storage_cfg,
        report=report_cfg,
    )


def config_payload(run_config: RunConfig) -> Dict[str, Any]:
    """JSON-friendly snapshot of ``run_config`` for reports."""

    def _normalise(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _normalise(item) for key, item in value.items()}
        if isinstance(value, list):
            return [_normalise(item) for item in value]
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, Strictness):
            return value.value
        return value

    return _normalise(asdict(run_config))


__all__ = ["build_run_config", "config_payload"]
