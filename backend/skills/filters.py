"""
Record preparation skill: narrows the record set before aggregation.

Only sections unlocked by the configuration's disclosure level are applied:
active filters and the time range both require level 2 or higher. The time
range is applied to the dataset's first temporal dimension. A record that
lacks the filtered field never matches.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from core.catalog import FieldCatalog
from core.models import ActiveFilter, ChartConfiguration, Dataset, DimensionKind, FilterKind, TimeRange
from core.utils import is_missing, records_frame
from skills.configure import RELATIVE_RANGES, active_sections, parse_absolute_range, range_bounds

logger = logging.getLogger("uvicorn.error")


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _to_datetimes(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series, errors="coerce", utc=True, format="mixed")


def _utc(value: Any) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


# ---------------------------------------------------------------------------
# Masks
# ---------------------------------------------------------------------------

def _date_mask(
    series: pd.Series,
    operator: str,
    value: Any,
    now: datetime,
) -> pd.Series:
    dates = _to_datetimes(series)
    if operator == "relative":
        days = RELATIVE_RANGES.get(str(value))
        if days is None:
            return pd.Series(False, index=series.index)
        end = _utc(now)
        start = end - timedelta(days=days)
        return (dates >= start) & (dates <= end)

    lo, hi = range_bounds(value)
    mask = dates.notna()
    if lo is not None:
        mask &= dates >= _utc(lo)
    if hi is not None:
        # date-only upper bounds include the whole day
        upper = _utc(hi)
        if isinstance(hi, str) and len(hi.strip()) == 10:
            mask &= dates < upper + timedelta(days=1)
        else:
            mask &= dates <= upper
    return mask


def _numeric_mask(series: pd.Series, operator: str, value: Any) -> pd.Series:
    nums = pd.to_numeric(series, errors="coerce")
    if operator == "between":
        lo, hi = range_bounds(value)
        mask = nums.notna()
        if lo is not None:
            mask &= nums >= float(lo)
        if hi is not None:
            mask &= nums <= float(hi)
        return mask
    target = float(value)
    if operator == "eq":
        return nums == target
    if operator == "gt":
        return nums > target
    if operator == "gte":
        return nums >= target
    if operator == "lt":
        return nums < target
    if operator == "lte":
        return nums <= target
    raise ValueError(f"Unsupported numeric operator '{operator}'")


def filter_mask(
    series: pd.Series,
    kind: FilterKind,
    operator: str,
    value: Any,
    now: datetime,
) -> pd.Series:
    """Boolean mask of records matching one filter."""
    present = series.map(lambda v: not is_missing(v)).astype(bool)
    text = series.map(lambda v: "" if is_missing(v) else str(v))

    if kind == FilterKind.numeric:
        return present & _numeric_mask(series, operator, value)
    if kind == FilterKind.daterange:
        return present & _date_mask(series, operator, value, now)

    if kind == FilterKind.multiselect:
        wanted = {str(v) for v in _as_list(value)}
        hit = text.isin(wanted)
        return present & (hit if operator == "in" else ~hit)

    if operator == "contains":
        needle = str(value or "").lower()
        return present & text.str.lower().str.contains(needle, regex=False)
    if operator == "neq":
        return present & (text != str(value))
    return present & (text == str(value))


def _time_range_filter(time_range: TimeRange) -> ActiveFilter:
    if time_range.type == "absolute":
        return ActiveFilter(filter_id="__time_range__", operator="between", value=time_range.value)
    return ActiveFilter(filter_id="__time_range__", operator="relative", value=time_range.value)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def apply_filters(
    records: Sequence[Dict[str, Any]],
    config: ChartConfiguration,
    dataset: Dataset,
    catalog: FieldCatalog,
    now: Optional[datetime] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Return (records that pass the active sections, original record count).

    Stale filter ids raise NotFound through the catalog.
    """
    original_count = len(records)
    sections = active_sections(config.disclosure_level)
    if not records or not (sections["filters"] or sections["time_range"]):
        return list(records), original_count

    now = now or datetime.now(timezone.utc)
    df = records_frame(records)
    mask = pd.Series(True, index=df.index)

    if sections["filters"]:
        for active in config.active_filters:
            field = catalog.find_filter(dataset, active.filter_id)
            if field.technical_name not in df.columns:
                mask &= False
                continue
            mask &= filter_mask(df[field.technical_name], field.kind, active.operator, active.value, now)

    temporal = next((d for d in dataset.dimensions if d.kind == DimensionKind.temporal), None)
    if sections["time_range"] and temporal is not None:
        if temporal.technical_name not in df.columns:
            logger.debug("Time range skipped: no '%s' column in records", temporal.technical_name)
        elif config.time_range.type == "absolute" and parse_absolute_range(config.time_range.value) is None:
            logger.warning("Ignoring malformed absolute time range %r", config.time_range.value)
        else:
            tr = _time_range_filter(config.time_range)
            mask &= filter_mask(df[temporal.technical_name], FilterKind.daterange, tr.operator, tr.value, now)

    kept = [rec for rec, keep in zip(records, mask.tolist()) if keep]
    logger.debug("Filters kept %d of %d records", len(kept), original_count)
    return kept, original_count
