"""
Tests for deterministic chart-type inference.
"""

import pytest

from core.models import AssignedField, ChartConfiguration, ChartType, DimensionKind, FieldRole, Slot
from skills.infer import infer_chart_type


def _metric(i: int) -> AssignedField:
    return AssignedField(field_id=f"m{i}", dataset_id="ds", role=FieldRole.metric, slot=Slot.metrics)


def _dim(i: int, kind: DimensionKind) -> AssignedField:
    return AssignedField(
        field_id=f"d{i}", dataset_id="ds", role=FieldRole.dimension, slot=Slot.dimensions, kind=kind,
    )


CAT, TEMP, ORD = DimensionKind.categorical, DimensionKind.temporal, DimensionKind.ordinal


def _config(n_metrics: int, kinds) -> ChartConfiguration:
    return ChartConfiguration(
        dataset_id="ds",
        assigned_metrics=[_metric(i) for i in range(n_metrics)],
        assigned_dimensions=[_dim(i, k) for i, k in enumerate(kinds)],
    )


class TestInferChartType:
    """Rule-by-rule inference."""

    @pytest.mark.parametrize("n_metrics,kinds,expected", [
        (0, [], ChartType.table),
        (1, [], ChartType.table),
        (0, [CAT], ChartType.table),
        (1, [TEMP], ChartType.line),
        (2, [TEMP], ChartType.mixed),
        (1, [CAT, TEMP], ChartType.line),          # temporal beats categorical
        (3, [ORD, TEMP], ChartType.mixed),
        (1, [CAT], ChartType.bar),
        (2, [CAT], ChartType.mixed),
        (1, [CAT, CAT], ChartType.bar),            # fallback
        (2, [CAT, CAT], ChartType.mixed),
        (1, [ORD], ChartType.bar),
        (2, [ORD], ChartType.bar),                 # ordinal-only falls through
    ])
    def test_rules(self, n_metrics, kinds, expected):
        assert infer_chart_type(_config(n_metrics, kinds)) == expected

    @pytest.mark.parametrize("n_metrics,kinds", [
        (0, []), (1, [TEMP]), (2, [TEMP]), (1, [CAT]), (2, [CAT]), (2, [ORD, CAT]),
    ])
    def test_idempotent(self, n_metrics, kinds):
        config = _config(n_metrics, kinds)
        first = infer_chart_type(config)
        again = infer_chart_type(config.model_copy(update={"chart_type": first}))
        assert again == first

    def test_ignores_explicit_chart_type(self):
        config = _config(1, [CAT]).model_copy(update={"chart_type": ChartType.pie})
        assert infer_chart_type(config) == ChartType.bar
