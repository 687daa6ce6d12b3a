"""
Tests for record preparation: active filters and time ranges gated by the
disclosure level.
"""

from datetime import datetime, timezone

import pytest

from core.models import ChartConfiguration
from skills import configure
from skills.filters import apply_filters

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def qa_dataset(catalog):
    return catalog.get_dataset("test_execution")


def run(records, config, dataset, catalog):
    kept, original = apply_filters(records, config, dataset, catalog, now=NOW)
    assert original == len(records)
    return kept


class TestDisclosureGating:
    """Filters and time range apply only once their section is unlocked."""

    def test_level_one_ignores_filters(self, catalog, qa_config, qa_dataset, qa_records):
        config = configure.add_filter(qa_config, catalog, "status_filter", "in", ["PASSED"])
        config = configure.set_time_range(config, "relative", "last_7_days")
        assert run(qa_records, config, qa_dataset, catalog) == qa_records

    def test_level_two_applies_filters(self, catalog, qa_config, qa_dataset, qa_records):
        config = configure.add_filter(qa_config, catalog, "status_filter", "in", ["PASSED"])
        config = configure.set_disclosure_level(config, 2)
        kept = run(qa_records, config, qa_dataset, catalog)
        assert [r["status"] for r in kept] == ["PASSED", "PASSED"]

    def test_filtering_keeps_record_order_and_identity(self, catalog, qa_config, qa_dataset, qa_records):
        config = configure.set_disclosure_level(qa_config, 2)
        kept = run(qa_records, config, qa_dataset, catalog)
        assert kept == qa_records
        assert all(a is b for a, b in zip(kept, qa_records))


class TestFilterKinds:
    """Operator semantics per filter kind (level 2, default 30-day range)."""

    @pytest.fixture
    def level2(self, qa_config):
        return configure.set_disclosure_level(qa_config, 2)

    @pytest.mark.parametrize("filter_id,operator,value,expected", [
        ("status_filter", "in", ["PASSED", "ERROR"], 3),
        ("status_filter", "not_in", ["PASSED"], 3),
        ("status_filter", "in", "FAILED", 1),
        ("duration_filter", "gt", 10, 2),
        ("duration_filter", "gte", 10, 3),
        ("duration_filter", "lt", 10, 1),
        ("duration_filter", "eq", "21", 1),
        ("duration_filter", "between", {"min": 5, "max": 21}, 3),
        ("duration_filter", "between", [20, None], 2),
        ("date_range", "between", {"start": "2024-03-01", "end": "2024-03-02"}, 3),
        ("date_range", "relative", "last_7_days", 4),
    ])
    def test_operator(self, catalog, level2, qa_dataset, qa_records, filter_id, operator, value, expected):
        config = configure.add_filter(level2, catalog, filter_id, operator, value)
        assert len(run(qa_records, config, qa_dataset, catalog)) == expected

    def test_filters_combine_with_and(self, catalog, level2, qa_dataset, qa_records):
        config = configure.add_filter(level2, catalog, "status_filter", "in", ["PASSED"])
        config = configure.add_filter(config, catalog, "duration_filter", "gt", 15)
        kept = run(qa_records, config, qa_dataset, catalog)
        assert [r["duration_seconds"] for r in kept] == [30]

    def test_record_without_field_never_matches(self, catalog, level2, qa_dataset):
        records = [{"status": "PASSED", "execution_date": "2024-03-01"}]
        config = configure.add_filter(level2, catalog, "duration_filter", "gte", 0)
        assert run(records, config, qa_dataset, catalog) == []


class TestTimeRange:
    """Time range on the dataset's first temporal dimension."""

    @pytest.mark.parametrize("range_type,value,expected", [
        ("relative", "last_7_days", 4),
        ("relative", "last_30_days", 5),
        ("absolute", "2024-03-01/2024-03-02", 3),
        ("absolute", "2024-02-01/2024-02-29", 1),
    ])
    def test_ranges(self, catalog, qa_config, qa_dataset, qa_records, range_type, value, expected):
        config = configure.set_disclosure_level(qa_config, 2)
        config = configure.set_time_range(config, range_type, value)
        assert len(run(qa_records, config, qa_dataset, catalog)) == expected

    def test_unparseable_dates_excluded(self, catalog, qa_config, qa_dataset):
        config = configure.set_disclosure_level(qa_config, 2)
        records = [{"execution_date": "2024-03-05"}, {"execution_date": "not a date"}, {}]
        kept = run(records, config, qa_dataset, catalog)
        assert kept == [{"execution_date": "2024-03-05"}]

    def test_dataset_without_temporal_dimension(self, catalog):
        config = configure.select_dataset(ChartConfiguration(), catalog, "defect_tracking")
        config = configure.set_disclosure_level(config, 2)
        dataset = catalog.get_dataset("defect_tracking")
        records = [{"severity": "High"}, {"severity": "Low"}]
        assert run(records, config, dataset, catalog) == records


class TestRangeBounds:
    @pytest.mark.parametrize("value,expected", [
        ({"min": 1, "max": 5}, (1, 5)),
        ({"start": "a", "end": "b"}, ("a", "b")),
        ("2024-01-01/2024-02-01", ("2024-01-01", "2024-02-01")),
        ([3, 4], (3, 4)),
        (7, (None, None)),
    ])
    def test_range_bounds(self, value, expected):
        assert configure.range_bounds(value) == expected
