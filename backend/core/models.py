"""
Core Pydantic models for the chart configuration engine.

All domain types live here so every module shares the same vocabulary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Catalog fields
# ---------------------------------------------------------------------------

class ValueType(str, Enum):
    percentage = "percentage"
    count = "count"
    duration = "duration"
    ratio = "ratio"
    decimal = "decimal"


class DimensionKind(str, Enum):
    categorical = "categorical"
    temporal = "temporal"
    ordinal = "ordinal"


class FilterKind(str, Enum):
    select = "select"
    multiselect = "multiselect"
    daterange = "daterange"
    text = "text"
    numeric = "numeric"


class Metric(BaseModel):
    id: str
    name: str                              # business name: "Pass Rate %"
    business_description: str = ""
    technical_name: str                    # column: "pass_rate_percentage"
    expression: str = ""                   # SQL aggregate expression
    value_type: ValueType
    display_format: str = ""               # "0.1%", "0,0", "HH:mm:ss"
    category: str = ""

    model_config = {"frozen": True}


class Dimension(BaseModel):
    id: str
    name: str
    business_description: str = ""
    technical_name: str
    kind: DimensionKind
    allowed_values: Optional[List[str]] = None
    category: str = ""

    model_config = {"frozen": True}


class FilterOption(BaseModel):
    value: str
    label: str

    model_config = {"frozen": True}


class FilterField(BaseModel):
    id: str
    name: str
    business_description: str = ""
    technical_name: str
    kind: FilterKind
    options: Optional[List[FilterOption]] = None
    default_value: Optional[Any] = None

    model_config = {"frozen": True}


class Dataset(BaseModel):
    id: str
    name: str
    business_description: str = ""
    metrics: List[Metric] = Field(default_factory=list)
    dimensions: List[Dimension] = Field(default_factory=list)
    filters: List[FilterField] = Field(default_factory=list)
    related_dataset_ids: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _unique_field_ids(self) -> "Dataset":
        """Field ids must be unique within each of the dataset's field groups."""
        for group_name in ("metrics", "dimensions", "filters"):
            ids = [f.id for f in getattr(self, group_name)]
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            if dupes:
                raise ValueError(
                    f"Dataset '{self.id}' has duplicate {group_name} ids: {', '.join(dupes)}"
                )
        return self


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ChartType(str, Enum):
    line = "line"
    bar = "bar"
    area = "area"
    pie = "pie"
    table = "table"
    mixed = "mixed"


class FieldRole(str, Enum):
    metric = "metric"
    dimension = "dimension"


class Slot(str, Enum):
    metrics = "metrics"
    dimensions = "dimensions"


class AssignedField(BaseModel):
    field_id: str
    dataset_id: str
    role: FieldRole
    slot: Slot
    name: str = ""
    technical_name: str = ""
    kind: Optional[DimensionKind] = None   # dimensions only

    model_config = {"frozen": True}


class ActiveFilter(BaseModel):
    filter_id: str
    operator: str
    value: Any = None


class TimeRange(BaseModel):
    type: str = "relative"                 # relative | absolute
    value: str = "last_30_days"            # last_N_days key or "<start>/<end>"


MIN_DISCLOSURE_LEVEL = 1
MAX_DISCLOSURE_LEVEL = 4


class ChartConfiguration(BaseModel):
    dataset_id: Optional[str] = None
    assigned_metrics: List[AssignedField] = Field(default_factory=list)
    assigned_dimensions: List[AssignedField] = Field(default_factory=list)
    active_filters: List[ActiveFilter] = Field(default_factory=list)
    chart_type: Optional[ChartType] = None
    disclosure_level: int = MIN_DISCLOSURE_LEVEL
    time_range: TimeRange = Field(default_factory=TimeRange)

    @property
    def is_complete(self) -> bool:
        return bool(self.assigned_metrics) and bool(self.assigned_dimensions)

    def slot_fields(self, slot: Slot) -> List[AssignedField]:
        if slot == Slot.metrics:
            return self.assigned_metrics
        return self.assigned_dimensions


class OperationResult(BaseModel):
    """Outcome of a configuration operation; `config` is the prior one when rejected."""
    ok: bool
    config: ChartConfiguration
    error: Optional["ErrorPayload"] = None


# ---------------------------------------------------------------------------
# Aggregation & preview
# ---------------------------------------------------------------------------

class AggregatedPoint(BaseModel):
    group_label: str
    values: Dict[str, Union[int, float]] = Field(default_factory=dict)

    model_config = {"frozen": True}


class AggregationMetadata(BaseModel):
    input_count: int = 0
    output_count: int = 0


class AggregationResult(BaseModel):
    points: List[AggregatedPoint] = Field(default_factory=list)
    metadata: AggregationMetadata = Field(default_factory=AggregationMetadata)


class SupersetMetric(BaseModel):
    expressionType: str = "SQL"
    sqlExpression: Optional[str] = None
    column: Optional[str] = None
    aggregate: Optional[str] = None
    label: str


class SupersetFilter(BaseModel):
    clause: str = "WHERE"
    subject: str
    operator: str
    comparator: Any = None
    expressionType: str = "SIMPLE"


class SupersetConfig(BaseModel):
    dataset: str
    chart_type: str
    metrics: List[SupersetMetric] = Field(default_factory=list)
    groupby: List[str] = Field(default_factory=list)
    adhoc_filters: List[SupersetFilter] = Field(default_factory=list)
    time_range: Optional[str] = None
    row_limit: Optional[int] = None
    order_desc: bool = True


class PreviewMetadata(BaseModel):
    dataset_id: Optional[str] = None
    dataset_name: Optional[str] = None
    original_count: int = 0                # records supplied by the source
    input_count: int = 0                   # records left after filtering
    output_count: int = 0
    active_sections: Dict[str, bool] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    generated_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )


class PreviewResult(BaseModel):
    chart_type: ChartType
    points: List[AggregatedPoint] = Field(default_factory=list)
    metadata: PreviewMetadata = Field(default_factory=PreviewMetadata)
    query: Optional[SupersetConfig] = None


class PreviewState(str, Enum):
    idle = "idle"
    loading = "loading"
    ready = "ready"
    error = "error"


class ErrorPayload(BaseModel):
    kind: str
    message: str


class PreviewSnapshot(BaseModel):
    state: PreviewState = PreviewState.idle
    generation: int = 0
    result: Optional[PreviewResult] = None
    error: Optional[ErrorPayload] = None


OperationResult.model_rebuild()


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class FilterRequest(BaseModel):
    filter_id: str
    operator: str
    value: Any = None


class PreviewRequest(BaseModel):
    dataset_id: str
    metric_ids: List[str] = Field(default_factory=list)
    dimension_ids: List[str] = Field(default_factory=list)
    filters: List[FilterRequest] = Field(default_factory=list)
    disclosure_level: int = MIN_DISCLOSURE_LEVEL
    time_range: Optional[TimeRange] = None
    records: Optional[List[Dict[str, Any]]] = None


class SelectDatasetRequest(BaseModel):
    dataset_id: str


class AssignFieldRequest(BaseModel):
    field_id: str
    role: FieldRole
    slot: Slot


class ChartTypeRequest(BaseModel):
    chart_type: str


class DisclosureRequest(BaseModel):
    level: int


class TimeRangeRequest(BaseModel):
    type: str
    value: str
