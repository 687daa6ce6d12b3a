"""
Deterministic chart-type inference from the assigned fields.

The first matching rule wins:
1. an empty metrics or dimensions slot -> table
2. any temporal dimension              -> mixed for >1 metric, else line
3. categorical dimensions              -> bar for 1 metric x 1 categorical,
                                          mixed for >1 metric
4. otherwise                           -> bar
"""

from __future__ import annotations

from core.models import ChartConfiguration, ChartType, DimensionKind


def infer_chart_type(config: ChartConfiguration) -> ChartType:
    metrics = config.assigned_metrics
    dimensions = config.assigned_dimensions

    if not metrics or not dimensions:
        return ChartType.table

    if any(d.kind == DimensionKind.temporal for d in dimensions):
        return ChartType.mixed if len(metrics) > 1 else ChartType.line

    categorical = [d for d in dimensions if d.kind == DimensionKind.categorical]
    if categorical:
        if len(metrics) == 1 and len(categorical) == 1:
            return ChartType.bar
        if len(metrics) > 1:
            return ChartType.mixed

    return ChartType.bar
