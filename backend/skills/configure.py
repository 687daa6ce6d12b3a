"""
Configuration skill: the operations a user performs while building a chart.

The module-level functions are pure: they take a configuration and return a
new one, raising `ChartBuilderError` subclasses on bad input.
`ConfigurationState` owns one session's configuration and wraps those
functions so user-facing calls never raise; a rejected operation leaves the
prior configuration in place and reports the error in the result.

Every metric/dimension mutation re-infers the chart type before returning,
which also discards any explicit chart-type override.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional, Set, Tuple

import pandas as pd

from core.catalog import FieldCatalog
from core.errors import ChartBuilderError, InvalidAssignment, NotFound
from core.models import (
    MAX_DISCLOSURE_LEVEL,
    MIN_DISCLOSURE_LEVEL,
    ActiveFilter,
    AssignedField,
    ChartConfiguration,
    ChartType,
    Dataset,
    FieldRole,
    FilterKind,
    OperationResult,
    Slot,
    TimeRange,
)
from skills.infer import infer_chart_type

logger = logging.getLogger("uvicorn.error")

# Operators accepted per filter kind
FILTER_OPERATORS: Dict[FilterKind, Set[str]] = {
    FilterKind.select: {"eq", "neq"},
    FilterKind.multiselect: {"in", "not_in"},
    FilterKind.text: {"eq", "contains"},
    FilterKind.numeric: {"eq", "gt", "gte", "lt", "lte", "between"},
    FilterKind.daterange: {"between", "relative"},
}

RELATIVE_RANGES: Dict[str, int] = {
    "last_7_days": 7,
    "last_30_days": 30,
    "last_3_months": 90,
}

_SLOT_ROLE = {Slot.metrics: FieldRole.metric, Slot.dimensions: FieldRole.dimension}


# ---------------------------------------------------------------------------
# Disclosure sections
# ---------------------------------------------------------------------------

def active_sections(level: int) -> Dict[str, bool]:
    """Optional configuration sections exposed at a disclosure level."""
    return {
        "filters": level >= 2,
        "time_range": level >= 2,
        "advanced": level >= 3,
    }


def clamp_level(level: int) -> int:
    return max(MIN_DISCLOSURE_LEVEL, min(MAX_DISCLOSURE_LEVEL, int(level)))


# ---------------------------------------------------------------------------
# Filter values
# ---------------------------------------------------------------------------

def range_bounds(value: Any) -> Tuple[Any, Any]:
    """Accept {"min", "max"} / {"start", "end"} dicts, "a/b" strings or 2-item sequences."""
    if isinstance(value, dict):
        lo = value.get("min", value.get("start"))
        hi = value.get("max", value.get("end"))
        return lo, hi
    if isinstance(value, str) and "/" in value:
        lo, hi = value.split("/", 1)
        return lo.strip() or None, hi.strip() or None
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return value[0], value[1]
    return None, None


def check_filter_value(filter_id: str, kind: FilterKind, operator: str, value: Any) -> None:
    """Reject values the record filters could not evaluate."""
    if kind == FilterKind.daterange and operator == "relative":
        if not isinstance(value, str) or value not in RELATIVE_RANGES:
            raise InvalidAssignment(
                f"Unknown relative range {value!r} for filter '{filter_id}'. "
                f"Expected one of: {', '.join(RELATIVE_RANGES)}."
            )
        return

    if kind == FilterKind.numeric:
        parse, expected = float, "a number"
    elif kind == FilterKind.daterange:
        parse, expected = pd.Timestamp, "a date"
    else:
        return

    if operator == "between":
        bounds = [b for b in range_bounds(value) if b is not None]
        if not bounds:
            raise InvalidAssignment(
                f"Range filter '{filter_id}' needs a lower or upper bound, got {value!r}."
            )
    else:
        bounds = [value]

    for bound in bounds:
        try:
            parse(bound)
        except (TypeError, ValueError):
            raise InvalidAssignment(
                f"Filter '{filter_id}' needs {expected}, got {bound!r}."
            )


# ---------------------------------------------------------------------------
# Pure operations
# ---------------------------------------------------------------------------

def _active_dataset(config: ChartConfiguration, catalog: FieldCatalog) -> Dataset:
    if not config.dataset_id:
        raise InvalidAssignment("Select a dataset before configuring fields.")
    return catalog.get_dataset(config.dataset_id)


def _with_fields(
    config: ChartConfiguration,
    metrics: List[AssignedField],
    dimensions: List[AssignedField],
) -> ChartConfiguration:
    updated = config.model_copy(update={
        "assigned_metrics": metrics,
        "assigned_dimensions": dimensions,
    })
    return updated.model_copy(update={"chart_type": infer_chart_type(updated)})


def select_dataset(
    config: ChartConfiguration,
    catalog: FieldCatalog,
    dataset_id: str,
) -> ChartConfiguration:
    """Hard reset onto a dataset; only the disclosure level survives."""
    ds = catalog.get_dataset(dataset_id)
    return ChartConfiguration(
        dataset_id=ds.id,
        disclosure_level=config.disclosure_level,
    )


def resolve_field(
    catalog: FieldCatalog,
    dataset: Dataset,
    field_id: str,
    role: FieldRole,
    slot: Slot,
) -> AssignedField:
    """Build the slot reference for a catalog field, validating role and ownership."""
    if _SLOT_ROLE[slot] != role:
        raise InvalidAssignment(
            f"A {role.value} field cannot be placed in the {slot.value} slot."
        )

    metric_ids = {m.id for m in dataset.metrics}
    dimension_ids = {d.id for d in dataset.dimensions}

    if role == FieldRole.metric and field_id in metric_ids:
        m = catalog.find_metric(dataset, field_id)
        return AssignedField(
            field_id=m.id, dataset_id=dataset.id, role=role, slot=slot,
            name=m.name, technical_name=m.technical_name,
        )
    if role == FieldRole.dimension and field_id in dimension_ids:
        d = catalog.find_dimension(dataset, field_id)
        return AssignedField(
            field_id=d.id, dataset_id=dataset.id, role=role, slot=slot,
            name=d.name, technical_name=d.technical_name, kind=d.kind,
        )

    if field_id in metric_ids or field_id in dimension_ids:
        actual = "metric" if field_id in metric_ids else "dimension"
        raise InvalidAssignment(
            f"Field '{field_id}' is a {actual}, not a {role.value}."
        )
    owners = [ds_id for ds_id in catalog.datasets_containing(field_id) if ds_id != dataset.id]
    if owners:
        raise InvalidAssignment(
            f"Field '{field_id}' belongs to {', '.join(owners)}, not the active dataset '{dataset.id}'."
        )
    raise NotFound(f"Field '{field_id}' not found in dataset '{dataset.id}'.")


def assign_field(
    config: ChartConfiguration,
    catalog: FieldCatalog,
    field_id: str,
    role: FieldRole,
    slot: Slot,
) -> ChartConfiguration:
    dataset = _active_dataset(config, catalog)
    assigned = resolve_field(catalog, dataset, field_id, role, slot)

    # a field id occupies at most one slot
    metrics = [f for f in config.assigned_metrics if f.field_id != field_id]
    dimensions = [f for f in config.assigned_dimensions if f.field_id != field_id]
    if slot == Slot.metrics:
        metrics.append(assigned)
    else:
        dimensions.append(assigned)
    return _with_fields(config, metrics, dimensions)


def remove_field(config: ChartConfiguration, field_id: str, slot: Slot) -> ChartConfiguration:
    current = config.slot_fields(slot)
    if not any(f.field_id == field_id for f in current):
        return config
    remaining = [f for f in current if f.field_id != field_id]
    if slot == Slot.metrics:
        return _with_fields(config, remaining, list(config.assigned_dimensions))
    return _with_fields(config, list(config.assigned_metrics), remaining)


def set_chart_type(config: ChartConfiguration, chart_type: Any) -> ChartConfiguration:
    try:
        value = ChartType(chart_type)
    except ValueError:
        allowed = ", ".join(t.value for t in ChartType)
        raise InvalidAssignment(f"Unknown chart type '{chart_type}'. Expected one of: {allowed}.")
    return config.model_copy(update={"chart_type": value})


def add_filter(
    config: ChartConfiguration,
    catalog: FieldCatalog,
    filter_id: str,
    operator: str,
    value: Any,
) -> ChartConfiguration:
    dataset = _active_dataset(config, catalog)
    try:
        field = catalog.find_filter(dataset, filter_id)
    except NotFound:
        if catalog.datasets_containing(filter_id):
            raise InvalidAssignment(
                f"Filter '{filter_id}' does not belong to the active dataset '{dataset.id}'."
            )
        raise

    allowed = FILTER_OPERATORS[field.kind]
    if operator not in allowed:
        raise InvalidAssignment(
            f"Operator '{operator}' is not supported for {field.kind.value} filter "
            f"'{filter_id}'. Expected one of: {', '.join(sorted(allowed))}."
        )

    check_filter_value(filter_id, field.kind, operator, value)

    filters = [f for f in config.active_filters if f.filter_id != filter_id]
    filters.append(ActiveFilter(filter_id=filter_id, operator=operator, value=value))
    return config.model_copy(update={"active_filters": filters})


def remove_filter(
    config: ChartConfiguration,
    catalog: FieldCatalog,
    filter_id: str,
) -> ChartConfiguration:
    dataset = _active_dataset(config, catalog)
    catalog.find_filter(dataset, filter_id)
    filters = [f for f in config.active_filters if f.filter_id != filter_id]
    return config.model_copy(update={"active_filters": filters})


def set_disclosure_level(config: ChartConfiguration, level: int) -> ChartConfiguration:
    return config.model_copy(update={"disclosure_level": clamp_level(level)})


_ABSOLUTE_RANGE = re.compile(r"^\s*(\d{4}-\d{2}-\d{2})\s*/\s*(\d{4}-\d{2}-\d{2})\s*$")


def parse_absolute_range(value: str) -> Optional[tuple]:
    """Parse "<start>/<end>" ISO dates; None when malformed or reversed."""
    match = _ABSOLUTE_RANGE.match(value or "")
    if not match:
        return None
    try:
        start = date.fromisoformat(match.group(1))
        end = date.fromisoformat(match.group(2))
    except ValueError:
        return None
    if end < start:
        return None
    return start, end


def set_time_range(config: ChartConfiguration, range_type: str, value: str) -> ChartConfiguration:
    if range_type == "relative":
        if value not in RELATIVE_RANGES:
            raise InvalidAssignment(
                f"Unknown relative range '{value}'. Expected one of: {', '.join(RELATIVE_RANGES)}."
            )
    elif range_type == "absolute":
        if parse_absolute_range(value) is None:
            raise InvalidAssignment(
                f"Absolute range must look like 'YYYY-MM-DD/YYYY-MM-DD', got '{value}'."
            )
    else:
        raise InvalidAssignment(f"Time range type must be 'relative' or 'absolute', got '{range_type}'.")
    return config.model_copy(update={"time_range": TimeRange(type=range_type, value=value)})


def reset(config: ChartConfiguration) -> ChartConfiguration:
    return ChartConfiguration(dataset_id=config.dataset_id)


# ---------------------------------------------------------------------------
# Session-owned state
# ---------------------------------------------------------------------------

class ConfigurationState:
    """
    One session's chart configuration.

    Each operation returns an `OperationResult`; on failure `config` is the
    unchanged prior configuration and `error` names the problem.
    """

    def __init__(self, catalog: FieldCatalog, config: Optional[ChartConfiguration] = None) -> None:
        self.catalog = catalog
        self.config = config or ChartConfiguration()

    def _apply(self, op_name: str, fn, *args) -> OperationResult:
        try:
            new_config = fn(self.config, *args)
        except ChartBuilderError as e:
            logger.info("Config %s rejected (%s): %s", op_name, e.kind, e.message)
            return OperationResult(ok=False, config=self.config, error=e.to_payload())
        self.config = new_config
        return OperationResult(ok=True, config=new_config)

    def select_dataset(self, dataset_id: str) -> OperationResult:
        return self._apply("select_dataset", select_dataset, self.catalog, dataset_id)

    def assign_field(self, field_id: str, role: FieldRole, slot: Slot) -> OperationResult:
        return self._apply("assign_field", assign_field, self.catalog, field_id, role, slot)

    def remove_field(self, field_id: str, slot: Slot) -> OperationResult:
        return self._apply("remove_field", remove_field, field_id, slot)

    def set_chart_type(self, chart_type: Any) -> OperationResult:
        return self._apply("set_chart_type", set_chart_type, chart_type)

    def add_filter(self, filter_id: str, operator: str, value: Any = None) -> OperationResult:
        return self._apply("add_filter", add_filter, self.catalog, filter_id, operator, value)

    def remove_filter(self, filter_id: str) -> OperationResult:
        return self._apply("remove_filter", remove_filter, self.catalog, filter_id)

    def set_disclosure_level(self, level: int) -> OperationResult:
        return self._apply("set_disclosure_level", set_disclosure_level, level)

    def set_time_range(self, range_type: str, value: str) -> OperationResult:
        return self._apply("set_time_range", set_time_range, range_type, value)

    def reset(self) -> OperationResult:
        return self._apply("reset", reset)
