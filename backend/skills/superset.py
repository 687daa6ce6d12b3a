"""
Business-to-Superset translation.

Maps a chart configuration onto the payload a Superset chart would need:
SQL metric expressions, group-by columns, adhoc WHERE filters and a time
range string. Nothing here queries anything.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.catalog import FieldCatalog
from core.models import (
    ActiveFilter,
    ChartConfiguration,
    ChartType,
    FilterField,
    SupersetConfig,
    SupersetFilter,
    SupersetMetric,
    TimeRange,
)
from skills.configure import active_sections, parse_absolute_range, range_bounds
from skills.infer import infer_chart_type

VIZ_TYPES: Dict[ChartType, str] = {
    ChartType.line: "echarts_timeseries_line",
    ChartType.bar: "echarts_timeseries_bar",
    ChartType.area: "echarts_area",
    ChartType.pie: "pie",
    ChartType.table: "table",
    ChartType.mixed: "mixed_timeseries",
}

_OPERATORS: Dict[str, str] = {
    "eq": "==",
    "neq": "!=",
    "in": "IN",
    "not_in": "NOT IN",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "contains": "ILIKE",
}

_RELATIVE_RANGE_LABELS: Dict[str, str] = {
    "last_7_days": "Last week",
    "last_30_days": "Last month",
    "last_3_months": "Last quarter",
}


def time_range_label(time_range: TimeRange) -> Optional[str]:
    if time_range.type == "relative":
        return _RELATIVE_RANGE_LABELS.get(time_range.value)
    parsed = parse_absolute_range(time_range.value)
    if parsed is None:
        return None
    start, end = parsed
    return f"{start.isoformat()} : {end.isoformat()}"


def _adhoc_filters(field: FilterField, active: ActiveFilter) -> List[SupersetFilter]:
    if active.operator == "between":
        lo, hi = range_bounds(active.value)
        out: List[SupersetFilter] = []
        if lo is not None:
            out.append(SupersetFilter(subject=field.technical_name, operator=">=", comparator=lo))
        if hi is not None:
            out.append(SupersetFilter(subject=field.technical_name, operator="<=", comparator=hi))
        return out

    if active.operator == "relative":
        # relative date filters travel through time_range instead
        return []

    comparator: Any = active.value
    if active.operator == "contains":
        comparator = f"%{active.value}%"
    elif active.operator in ("in", "not_in") and not isinstance(comparator, list):
        comparator = [comparator]
    return [SupersetFilter(
        subject=field.technical_name,
        operator=_OPERATORS[active.operator],
        comparator=comparator,
    )]


def to_superset_config(
    config: ChartConfiguration,
    catalog: FieldCatalog,
    row_limit: Optional[int] = None,
) -> SupersetConfig:
    """Translate the configuration; stale ids raise NotFound through the catalog."""
    dataset = catalog.get_dataset(config.dataset_id or "")
    sections = active_sections(config.disclosure_level)

    metrics = []
    for assigned in config.assigned_metrics:
        m = catalog.find_metric(dataset, assigned.field_id)
        metrics.append(SupersetMetric(sqlExpression=m.expression, label=m.name))

    groupby = [
        catalog.find_dimension(dataset, d.field_id).technical_name
        for d in config.assigned_dimensions
    ]

    adhoc: List[SupersetFilter] = []
    time_range: Optional[str] = None
    if sections["filters"]:
        for active in config.active_filters:
            field = catalog.find_filter(dataset, active.filter_id)
            adhoc.extend(_adhoc_filters(field, active))
    if sections["time_range"]:
        time_range = time_range_label(config.time_range)

    chart_type = config.chart_type or infer_chart_type(config)
    return SupersetConfig(
        dataset=dataset.id,
        chart_type=VIZ_TYPES[chart_type],
        metrics=metrics,
        groupby=groupby,
        adhoc_filters=adhoc,
        time_range=time_range,
        row_limit=row_limit,
        order_desc=True,
    )
