"""
Aggregation skill.

Turns flat records plus a chart configuration into one `AggregatedPoint`
per composite dimension label, with every selected metric computed over
that group's records only. Synchronous, no I/O.

Grouping contract:
- each assigned dimension resolves its `technical_name` on the record, or
  "Unknown <Dimension name>" when the value is absent, null or empty;
- the per-dimension strings are joined with " - ";
- points are returned sorted by label (ascending, case-sensitive, stable).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from core.catalog import FieldCatalog, get_catalog
from core.errors import UnknownMetric
from core.models import (
    AggregatedPoint,
    AggregationMetadata,
    AggregationResult,
    ChartConfiguration,
    Dimension,
    Metric,
)
from core.utils import is_missing, pct, records_frame, round_half_up

logger = logging.getLogger("uvicorn.error")

LABEL_SEPARATOR = " - "


# ---------------------------------------------------------------------------
# Metric computations (one group frame in, one number out)
# ---------------------------------------------------------------------------

def _column(group: pd.DataFrame, name: str) -> pd.Series:
    if name in group.columns:
        return group[name]
    return pd.Series([None] * len(group), index=group.index, dtype=object)


def _pass_rate(group: pd.DataFrame) -> int:
    passed = int((_column(group, "status") == "PASSED").sum())
    return pct(passed, len(group))


def _failure_rate(group: pd.DataFrame) -> int:
    failed = int(_column(group, "status").isin(["FAILED", "ERROR"]).sum())
    return pct(failed, len(group))


def _avg_duration(group: pd.DataFrame) -> int:
    durations = pd.to_numeric(_column(group, "duration_seconds"), errors="coerce").fillna(0)
    return round_half_up(float(durations.sum()) / len(group))


def _total_executions(group: pd.DataFrame) -> int:
    return int(len(group))


def _automation_coverage(group: pd.DataFrame) -> int:
    automated = int((_column(group, "test_type") == "automated").sum())
    return pct(automated, len(group))


METRIC_COMPUTATIONS: Dict[str, Callable[[pd.DataFrame], int]] = {
    "pass_rate": _pass_rate,
    "failure_rate": _failure_rate,
    "avg_duration": _avg_duration,
    "total_executions": _total_executions,
    "automation_coverage": _automation_coverage,
}


def ensure_computable(metrics: Sequence[Metric]) -> None:
    """Raise UnknownMetric for the first metric without a computation."""
    for m in metrics:
        if m.id not in METRIC_COMPUTATIONS:
            raise UnknownMetric(m.id, m.name)


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def _dimension_labels(df: pd.DataFrame, dim: Dimension) -> pd.Series:
    fallback = f"Unknown {dim.name}"

    def resolve(value: Any) -> str:
        if is_missing(value) or (isinstance(value, str) and value == ""):
            return fallback
        return str(value)

    return _column(df, dim.technical_name).map(resolve).astype(object)


def group_labels(df: pd.DataFrame, dimensions: Sequence[Dimension]) -> pd.Series:
    """Composite label per record, in record order."""
    labels: Optional[pd.Series] = None
    for dim in dimensions:
        part = _dimension_labels(df, dim)
        labels = part if labels is None else labels + LABEL_SEPARATOR + part
    return labels


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def aggregate(
    records: Sequence[Dict[str, Any]],
    config: ChartConfiguration,
    catalog: Optional[FieldCatalog] = None,
) -> AggregationResult:
    """
    Group `records` by the configured dimensions and compute each metric.

    An incomplete configuration yields no points. Stale field references
    raise NotFound; metrics without a computation raise UnknownMetric.
    """
    input_count = len(records)
    if not config.is_complete:
        return AggregationResult(metadata=AggregationMetadata(input_count=input_count))

    catalog = catalog or get_catalog()
    dataset = catalog.get_dataset(config.dataset_id)
    metrics = [catalog.find_metric(dataset, f.field_id) for f in config.assigned_metrics]
    dimensions = [catalog.find_dimension(dataset, f.field_id) for f in config.assigned_dimensions]
    ensure_computable(metrics)

    if not records:
        return AggregationResult(metadata=AggregationMetadata(input_count=0))

    df = records_frame(records)
    labels = group_labels(df, dimensions)

    points: List[AggregatedPoint] = []
    for label, group in df.groupby(labels, sort=False):
        values = {m.id: METRIC_COMPUTATIONS[m.id](group) for m in metrics}
        points.append(AggregatedPoint(group_label=str(label), values=values))

    # first-appearance order above; final order is by label
    points.sort(key=lambda p: p.group_label)

    logger.debug(
        "Aggregated %d records into %d groups on %s",
        input_count, len(points), [d.id for d in dimensions],
    )
    return AggregationResult(
        points=points,
        metadata=AggregationMetadata(input_count=input_count, output_count=len(points)),
    )
