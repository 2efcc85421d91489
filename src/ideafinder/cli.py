"""
1. Parses the command line arguments with `argparse`.
2. Builds a unified `RunConfig` via `build_run_config`, merging CLI overrides with `config.yaml`.
3. Initializes the runtime environment:
   - Logging configuration and verbosity level.
   - The `ResponseCache` for caching model responses.
   - A `RateLimiter` to keep OpenAI calls under the per-minute cap.
   - The `OpenAI` client and the SQLite record store.
4. Picks the post source: a CSV export when `--input` is given, live Reddit otherwise.
5. Runs the batch pipeline (keyword filter, daily cap, deduplication, extraction, parsing,
   validation, persistence).
6. Writes the summary report JSON and the accepted-record CSV when paths are configured.
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from openai import OpenAI

from ideafinder.core.cache import ResponseCache
from ideafinder.core.config import Strictness
from ideafinder.core.configuration import build_run_config, config_payload
from ideafinder.core.fetch import CsvPostSource, PostSource, RedditPostSource
from ideafinder.core.pipeline import BatchOrchestrator, run_ingestion
from ideafinder.core.storage import SqliteRecordStore
from ideafinder.extraction.llm_interface import GenerativeExtractionClient
from ideafinder.extraction.templates import get_template
from ideafinder.reporting.summary import generate_summary_report
from ideafinder.settings import load_environment, openai_api_key
from ideafinder.utils.logging import structured_log
from ideafinder.utils.rate_limit import RateLimiter


def parse_args(args: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract business or marketing ideas from Reddit posts")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to configuration YAML")
    parser.add_argument("--kind", choices=["business", "marketing"], default=None, help="Record variant to extract")
    parser.add_argument("--input", type=Path, default=None, help="Read posts from this CSV instead of Reddit")
    parser.add_argument("--communities", default=None, help="Comma separated subreddit names")
    parser.add_argument("--limit-per-community", type=int, default=None, help="Posts per subreddit and sort order")
    parser.add_argument("--batch-size", type=int, default=None, help="Posts per extraction call")
    parser.add_argument("--max-daily", type=int, default=None, help="Maximum posts processed per run")
    parser.add_argument(
        "--strictness",
        choices=[level.value for level in Strictness],
        default=None,
        help="Duplicate detection strictness",
    )
    parser.add_argument("--db-path", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--output", type=Path, default=None, help="CSV export of accepted records")
    parser.add_argument("--report-path", type=Path, default=None, help="Path to summary report JSON")
    parser.add_argument("--model", default=None, help="OpenAI model name")
    parser.add_argument("--temperature", type=float, default=None, help="Override model temperature")
    parser.add_argument("--rate-limit", type=int, default=None, help="Rate limit in requests per minute")
    parser.add_argument("--cache", choices=["on", "off"], default=None, help="Enable or disable response cache")
    parser.add_argument("--no-prefilter", action="store_true", help="Skip the model yes/no relevance check")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    return parser.parse_args(args)


def build_source(args: argparse.Namespace, run_config) -> PostSource:
    if args.input:
        return CsvPostSource(args.input)
    return RedditPostSource(run_config.fetch)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    load_environment()

    run_config = build_run_config(args)
    template = get_template(run_config.kind)

    cache = ResponseCache(run_config.cache)
    rate_limiter = RateLimiter(run_config.model.rate_limit)
    extractor = GenerativeExtractionClient(
        client=OpenAI(api_key=openai_api_key()),
        model_cfg=run_config.model,
        rate_limiter=rate_limiter,
        cache=cache,
    )
    store = SqliteRecordStore(run_config.storage.path)
    orchestrator = BatchOrchestrator(
        store=store,
        extractor=extractor,
        template=template,
        batch_cfg=run_config.batch,
        dedupe_cfg=run_config.dedupe,
        validation_cfg=run_config.validation,
        keyword_cfg=run_config.keywords,
    )

    result = run_ingestion(
        build_source(args, run_config),
        run_config.fetch.communities,
        run_config.fetch.limit_per_community,
        orchestrator,
    )

    generate_summary_report(
        stats=result.stats,
        records=result.records,
        cache_stats=cache.stats(),
        config_payload=config_payload(run_config),
        report_config=run_config.report,
        pacing_stats=rate_limiter.stats(),
    )

    structured_log(
        logging.INFO,
        event="ingestion_complete",
        kind=run_config.kind,
        records=len(result.records),
        skipped=len(result.stats.skipped),
        database=str(run_config.storage.path),
        report=str(run_config.report.path) if run_config.report.path else None,
    )


if __name__ == "__main__":  # pragma: no cover
    main()
