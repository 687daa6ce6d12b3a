"""
Tests for business-to-Superset translation.
"""

import pytest

from core.errors import NotFound
from core.models import ChartType, FieldRole, Slot, TimeRange
from skills import configure
from skills.superset import VIZ_TYPES, time_range_label, to_superset_config


@pytest.fixture
def config(catalog, qa_config):
    cfg = configure.assign_field(qa_config, catalog, "pass_rate", FieldRole.metric, Slot.metrics)
    cfg = configure.assign_field(cfg, catalog, "executor", FieldRole.dimension, Slot.dimensions)
    return cfg


class TestToSupersetConfig:
    """Tests for the translated chart payload."""

    def test_metrics_and_groupby(self, catalog, config):
        out = to_superset_config(config, catalog)
        assert out.dataset == "test_execution"
        assert out.chart_type == VIZ_TYPES[ChartType.bar]
        assert [m.label for m in out.metrics] == ["Pass Rate %"]
        assert out.metrics[0].expressionType == "SQL"
        assert out.metrics[0].sqlExpression.startswith("SUM(CASE WHEN status = 'PASSED'")
        # technical name, not the dimension id
        assert out.groupby == ["executor_name"]
        assert out.order_desc is True

    def test_level_one_has_no_filters_or_range(self, catalog, config):
        cfg = configure.add_filter(config, catalog, "status_filter", "in", ["PASSED"])
        out = to_superset_config(cfg, catalog)
        assert out.adhoc_filters == []
        assert out.time_range is None

    def test_filters_at_level_two(self, catalog, config):
        cfg = configure.set_disclosure_level(config, 2)
        cfg = configure.add_filter(cfg, catalog, "status_filter", "in", "FAILED")
        cfg = configure.add_filter(cfg, catalog, "duration_filter", "between", {"min": 5, "max": 60})
        cfg = configure.add_filter(cfg, catalog, "date_range", "relative", "last_7_days")

        out = to_superset_config(cfg, catalog, row_limit=100)
        filters = [(f.subject, f.operator, f.comparator) for f in out.adhoc_filters]
        assert filters == [
            ("status", "IN", ["FAILED"]),
            ("duration_seconds", ">=", 5),
            ("duration_seconds", "<=", 60),
        ]
        assert all(f.clause == "WHERE" and f.expressionType == "SIMPLE" for f in out.adhoc_filters)
        assert out.time_range == "Last month"
        assert out.row_limit == 100

    def test_explicit_chart_type_is_used(self, catalog, config):
        cfg = configure.set_chart_type(config, "pie")
        assert to_superset_config(cfg, catalog).chart_type == "pie"

    def test_stale_reference_raises(self, catalog, config):
        with pytest.raises(NotFound):
            to_superset_config(config.model_copy(update={"dataset_id": "requirement_coverage"}), catalog)


class TestTimeRangeLabel:
    @pytest.mark.parametrize("range_type,value,expected", [
        ("relative", "last_7_days", "Last week"),
        ("relative", "last_30_days", "Last month"),
        ("relative", "last_3_months", "Last quarter"),
        ("absolute", "2024-01-01/2024-03-31", "2024-01-01 : 2024-03-31"),
        ("absolute", "garbage", None),
    ])
    def test_labels(self, range_type, value, expected):
        assert time_range_label(TimeRange(type=range_type, value=value)) == expected
