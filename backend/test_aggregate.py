"""
Tests for the aggregation pipeline: grouping, labels, metric formulas and
error surfaces.
"""

import random

import pytest

from core.errors import NotFound, UnknownMetric
from core.models import FieldRole, Slot
from core.utils import round_half_up
from skills import configure
from skills.aggregate import aggregate


def build(catalog, qa_config, metrics, dimensions):
    config = qa_config
    for m in metrics:
        config = configure.assign_field(config, catalog, m, FieldRole.metric, Slot.metrics)
    for d in dimensions:
        config = configure.assign_field(config, catalog, d, FieldRole.dimension, Slot.dimensions)
    return config


def by_label(result):
    return {p.group_label: p.values for p in result.points}


class TestGrouping:
    """Tests for composite labels and ordering."""

    def test_environment_pass_rate_scenario(self, catalog, qa_config):
        config = build(catalog, qa_config, ["pass_rate"], ["environment"])
        records = [
            {"status": "PASSED", "environment": "QA"},
            {"status": "FAILED", "environment": "QA"},
            {"status": "PASSED", "environment": "Staging"},
        ]
        result = aggregate(records, config, catalog)

        assert [p.group_label for p in result.points] == ["QA", "Staging"]
        assert by_label(result) == {"QA": {"pass_rate": 50}, "Staging": {"pass_rate": 100}}
        assert result.metadata.input_count == 3
        assert result.metadata.output_count == 2

    def test_sorted_regardless_of_input_order(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["total_executions"], ["environment"])
        shuffled = list(qa_records)
        random.Random(7).shuffle(shuffled)

        labels = [p.group_label for p in aggregate(shuffled, config, catalog).points]
        assert labels == sorted(labels)
        assert len(set(labels)) == len(labels)

    def test_sort_is_case_sensitive(self, catalog, qa_config):
        config = build(catalog, qa_config, ["total_executions"], ["environment"])
        records = [{"environment": "qa"}, {"environment": "Staging"}, {"environment": "QA"}]
        labels = [p.group_label for p in aggregate(records, config, catalog).points]
        assert labels == ["QA", "Staging", "qa"]

    def test_total_executions_sums_to_record_count(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["total_executions"], ["sprint_name"])
        result = aggregate(qa_records, config, catalog)
        assert sum(p.values["total_executions"] for p in result.points) == len(qa_records)

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_dimension_value_uses_unknown_label(self, catalog, qa_config, value):
        config = build(catalog, qa_config, ["total_executions"], ["environment"])
        records = [{"environment": value}, {"environment": "QA"}]
        assert by_label(aggregate(records, config, catalog)) == {
            "QA": {"total_executions": 1},
            "Unknown Test Environment": {"total_executions": 1},
        }

    def test_absent_column_uses_unknown_label(self, catalog, qa_config):
        config = build(catalog, qa_config, ["total_executions"], ["project"])
        result = aggregate([{"status": "PASSED"}, {"status": "FAILED"}], config, catalog)
        assert by_label(result) == {"Unknown Project": {"total_executions": 2}}

    def test_composite_label_joins_dimensions(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["total_executions"], ["sprint_name", "environment"])
        labels = by_label(aggregate(qa_records, config, catalog))
        assert labels["Sprint 1 - QA"] == {"total_executions": 2}
        assert labels["Sprint 2 - Unknown Test Environment"] == {"total_executions": 1}

    def test_non_string_values_are_stringified(self, catalog, qa_config):
        config = build(catalog, qa_config, ["total_executions"], ["sprint_name"])
        result = aggregate([{"sprint_name": 7}, {"sprint_name": 7}], config, catalog)
        assert by_label(result) == {"7": {"total_executions": 2}}


class TestMetrics:
    """Tests for the per-group metric formulas."""

    def test_all_known_metrics(self, catalog, qa_config, qa_records):
        config = build(
            catalog, qa_config,
            ["pass_rate", "failure_rate", "avg_duration", "total_executions", "automation_coverage"],
            ["sprint_name"],
        )
        values = by_label(aggregate(qa_records, config, catalog))

        # Sprint 1: PASSED/automated/10s, FAILED/manual/21s
        assert values["Sprint 1"] == {
            "pass_rate": 50,
            "failure_rate": 50,
            "avg_duration": 16,          # 15.5 rounds half up
            "total_executions": 2,
            "automation_coverage": 50,
        }
        # Sprint 2: PASSED/automated/30s, ERROR/automated/5s, SKIPPED/manual/None
        assert values["Sprint 2"] == {
            "pass_rate": 33,
            "failure_rate": 33,
            "avg_duration": 12,          # (30 + 5 + 0) / 3
            "total_executions": 3,
            "automation_coverage": 67,
        }

    def test_values_keyed_by_metric_id_in_assignment_order(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["total_executions", "pass_rate"], ["environment"])
        point = aggregate(qa_records, config, catalog).points[0]
        assert list(point.values) == ["total_executions", "pass_rate"]

    def test_pass_and_failure_rate_need_not_sum_to_100(self, catalog, qa_config):
        config = build(catalog, qa_config, ["pass_rate", "failure_rate"], ["environment"])
        records = [
            {"status": "SKIPPED", "environment": "QA"},
            {"status": "ERROR", "environment": "QA"},
            {"status": "PASSED", "environment": "QA"},
        ]
        values = by_label(aggregate(records, config, catalog))["QA"]
        assert values == {"pass_rate": 33, "failure_rate": 33}
        # SKIPPED counts toward neither; the shortfall is expected
        assert values["pass_rate"] + values["failure_rate"] < 100

    def test_automation_coverage_is_exact_match(self, catalog, qa_config):
        config = build(catalog, qa_config, ["automation_coverage"], ["environment"])
        records = [{"test_type": "Automated", "environment": "QA"}, {"test_type": "automated", "environment": "QA"}]
        assert by_label(aggregate(records, config, catalog))["QA"] == {"automation_coverage": 50}

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (0, 0)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestEdgeCases:
    """Incomplete configurations and error surfaces."""

    def test_empty_dimensions_returns_no_points(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["pass_rate"], [])
        result = aggregate(qa_records, config, catalog)
        assert result.points == []
        assert result.metadata.input_count == len(qa_records)
        assert result.metadata.output_count == 0

    def test_empty_metrics_returns_no_points(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, [], ["environment"])
        assert aggregate(qa_records, config, catalog).points == []

    def test_no_records(self, catalog, qa_config):
        config = build(catalog, qa_config, ["pass_rate"], ["environment"])
        result = aggregate([], config, catalog)
        assert result.points == []
        assert result.metadata.input_count == 0

    def test_unknown_metric_raises(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["pass_rate", "tests_per_hour"], ["environment"])
        with pytest.raises(UnknownMetric) as exc:
            aggregate(qa_records, config, catalog)
        assert exc.value.metric_id == "tests_per_hour"
        assert "Test Throughput (per hour)" in exc.value.message

    def test_stale_reference_raises_not_found(self, catalog, qa_config, qa_records):
        config = build(catalog, qa_config, ["pass_rate"], ["environment"])
        stale = config.model_copy(update={"dataset_id": "defect_tracking"})
        with pytest.raises(NotFound):
            aggregate(qa_records, stale, catalog)
