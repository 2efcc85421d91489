"""Reporting configuration models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(slots=True)
class ReportConfig:
    """Where the run summary JSON and the accepted-record CSV are written."""

    path: Optional[Path] = None
    records_path: Optional[Path] = None
