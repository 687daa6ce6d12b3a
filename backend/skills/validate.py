"""
Validation skill for chart configurations and preview results.

Catches common issues (stale field references, chart types that cannot show
the selection, empty or oversized previews) before they reach the frontend.
"""

from __future__ import annotations

from typing import List, Tuple

from core.catalog import FieldCatalog
from core.errors import NotFound
from core.models import (
    ChartConfiguration,
    ChartType,
    DimensionKind,
    PreviewResult,
)
from core.utils import is_missing


# ---------------------------------------------------------------------------
# Configuration validation
# ---------------------------------------------------------------------------

def validate_configuration(
    config: ChartConfiguration,
    catalog: FieldCatalog,
) -> Tuple[bool, List[str]]:
    """
    Check that the configuration references live catalog fields and that the
    chart type can render the selection.

    Returns (is_valid, warnings).
    """
    warnings: List[str] = []
    if not config.dataset_id:
        return False, ["No dataset selected."]

    try:
        dataset = catalog.get_dataset(config.dataset_id)
    except NotFound as e:
        return False, [e.message]

    metric_ids = {m.id for m in dataset.metrics}
    dimension_ids = {d.id for d in dataset.dimensions}
    filter_ids = {f.id for f in dataset.filters}

    for f in config.assigned_metrics:
        if f.field_id not in metric_ids:
            warnings.append(f"Metric '{f.field_id}' not found in dataset '{dataset.id}'.")
    for f in config.assigned_dimensions:
        if f.field_id not in dimension_ids:
            warnings.append(f"Dimension '{f.field_id}' not found in dataset '{dataset.id}'.")
    for f in config.active_filters:
        if f.filter_id not in filter_ids:
            warnings.append(f"Filter '{f.filter_id}' not found in dataset '{dataset.id}'.")

    n_metrics = len(config.assigned_metrics)
    has_temporal = any(d.kind == DimensionKind.temporal for d in config.assigned_dimensions)

    if config.chart_type == ChartType.pie:
        if n_metrics > 1:
            warnings.append(f"Pie charts show one metric; {n_metrics - 1} more will be ignored.")
        if len(config.assigned_dimensions) > 1:
            warnings.append("Pie charts read best with a single dimension.")
    if config.chart_type in (ChartType.line, ChartType.area) and config.assigned_dimensions and not has_temporal:
        warnings.append(f"{config.chart_type.value.title()} charts read best over a temporal dimension.")

    is_valid = not any("not found" in w for w in warnings)
    return is_valid, warnings


# ---------------------------------------------------------------------------
# Result validation
# ---------------------------------------------------------------------------

def validate_result(result: PreviewResult, max_points: int) -> Tuple[bool, List[str]]:
    """
    Check the computed preview: empty data, missing values, oversized output.

    Returns (is_valid, warnings).
    """
    warnings: List[str] = []

    if not result.points:
        if result.metadata.original_count and not result.metadata.input_count:
            warnings.append("All records were excluded by the active filters.")
        else:
            warnings.append("Preview produced no data.")
        return False, warnings

    n = len(result.points)
    if max_points and n > max_points:
        warnings.append(f"Very large preview ({n} groups); showing the first {max_points}.")

    unknown = [p.group_label for p in result.points if "Unknown " in p.group_label]
    if unknown:
        warnings.append(f"{len(unknown)} group(s) collect records with missing dimension values.")

    first = result.points[0]
    if first.values and all(is_missing(v) for v in first.values.values()):
        warnings.append("All metrics in the first group are empty.")

    return True, warnings
