"""Summary report generation utilities."""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any, Dict, Mapping, Optional, Sequence

import pandas as pd

from ideafinder.core.models import ExtractedRecord, RunStats
from ideafinder.reporting.config import ReportConfig
from ideafinder.utils.io import save_dataframe

logger = logging.getLogger(__name__)


def records_to_dataframe(records: Sequence[ExtractedRecord]) -> pd.DataFrame:
    """Flatten records into one row each; list fields are joined with ``"; "``."""

    rows = []
    for record in records:
        row: Dict[str, Any] = {
            "kind": record.kind,
            "name": record.name,
            "status": record.status.value,
            "source_external_id": record.source_external_id,
            "parent_id": record.parent_id,
        }
        for key, value in record.payload().items():
            row[key] = "; ".join(value) if isinstance(value, list) else value
        rows.append(row)
    return pd.DataFrame(rows)


def _skip_breakdown(stats: RunStats) -> Dict[str, int]:
    return dict(Counter(skip.stage for skip in stats.skipped))


def generate_summary_report(
    *,
    stats: RunStats,
    records: Sequence[ExtractedRecord],
    cache_stats: Mapping[str, Any],
    config_payload: Mapping[str, Any],
    report_config: ReportConfig,
    pacing_stats: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Generate an in-memory summary report and optionally persist it."""

    df = records_to_dataframe(records)
    classification_column = "category" if "category" in df.columns else "potential_impact"
    distribution: Dict[str, int] = {}
    if not df.empty and classification_column in df.columns:
        distribution = {str(k): int(v) for k, v in df[classification_column].value_counts().to_dict().items()}

    summary: Dict[str, Any] = {
        "counts": stats.as_dict(),
        "skips_by_stage": _skip_breakdown(stats),
        "records": {
            "total": len(df),
            "distribution_field": classification_column,
            "distribution": distribution,
        },
        "cache": dict(cache_stats),
        "pacing": dict(pacing_stats or {}),
        "config": dict(config_payload),
    }

    if report_config.path:
        report_config.path.parent.mkdir(parents=True, exist_ok=True)
        with report_config.path.open("w", encoding="utf-8") as handle:
            json.dump(summary, handle, ensure_ascii=False, indent=2)
        logger.info("Summary report written to %s", report_config.path)

    if report_config.records_path:
        save_dataframe(df, report_config.records_path)
        logger.info("Exported %d records to %s", len(df), report_config.records_path)

    return summary


__all__ = ["generate_summary_report", "records_to_dataframe"]
