"""
Error taxonomy for the chart configuration engine.

Pure skills raise these; the session-owned configuration state and the
preview orchestrator turn them into `ErrorPayload`s.
"""

from __future__ import annotations

from core.models import ErrorPayload


class ChartBuilderError(Exception):
    """Base class for user-recoverable engine errors."""

    kind = "ChartBuilderError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(kind=self.kind, message=self.message)


class NotFound(ChartBuilderError):
    """Unknown dataset, metric, dimension or filter id."""

    kind = "NotFound"


class InvalidAssignment(ChartBuilderError):
    """Role/slot mismatch, field not owned by the active dataset, bad operator."""

    kind = "InvalidAssignment"


class IncompleteConfiguration(ChartBuilderError):
    """Aggregation requested while the metrics or dimensions slot is empty."""

    kind = "IncompleteConfiguration"


class UnknownMetric(ChartBuilderError):
    """Metric id has no defined computation."""

    kind = "UnknownMetric"

    def __init__(self, metric_id: str, metric_name: str | None = None) -> None:
        label = f"'{metric_name}' ({metric_id})" if metric_name else f"'{metric_id}'"
        super().__init__(f"Metric {label} cannot be computed for previews.")
        self.metric_id = metric_id
