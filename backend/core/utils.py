"""
Shared utility helpers.

Pure functions: no I/O, no side effects.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Sequence

import numpy as np
import pandas as pd


# ---------------------------------------------------------------------------
# DataFrame safety
# ---------------------------------------------------------------------------

def df_json_safe(df: pd.DataFrame) -> pd.DataFrame:
    """Replace +/-inf -> NaN, then NaN -> None so JSON serialization works."""
    if df.empty:
        return df
    tmp = df.replace([np.inf, -np.inf], np.nan)
    tmp = tmp.astype(object)
    return tmp.where(pd.notna(tmp), None)


def df_to_records_safe(df: pd.DataFrame) -> list[dict]:
    """Convert DataFrame to list of dicts with JSON-safe values."""
    return df_json_safe(df).to_dict(orient="records")


def records_frame(records: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    """Build an object-dtype frame so record values keep their Python types."""
    return pd.DataFrame(list(records), dtype=object)


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Math.round semantics), not to even."""
    return int(math.floor(value + 0.5))


def pct(n: int, d: int) -> int:
    """Whole-number percentage; zero-safe."""
    return 0 if d <= 0 else round_half_up(100.0 * n / d)


def is_missing(value: Any) -> bool:
    """True for None, NaN and pandas NA/NaT."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # list-like values are never "missing"
        return False

