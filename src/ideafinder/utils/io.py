"""CSV helpers for offline post exports and record exports."""

from __future__ import annotations

from pathlib import Path

import pandas as pd


def load_dataframe(path: Path) -> pd.DataFrame:
    """Load a CSV with every cell as text.

    Reddit ids such as ``1e5`` or ``0123`` would otherwise be coerced to numbers,
    so numeric fields are converted later by the caller. Missing cells become ``""``
    and column names are lower-cased.
    """

    if not path.exists():
        raise FileNotFoundError(path)
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
    df.columns = [str(column).strip().lower() for column in df.columns]
    return df.reset_index(drop=True)


def save_dataframe(df: pd.DataFrame, path: Path) -> None:
    """Write ``df`` to ``path`` as UTF-8 CSV, creating parent directories."""

    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
