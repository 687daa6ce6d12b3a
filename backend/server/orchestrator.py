"""
Preview orchestrator: turns configuration changes into chart previews.

run_preview: synchronous filter -> aggregate -> validate pipeline
handle_query: stateless preview for a one-shot query request
PreviewOrchestrator: per-session async state machine

    idle --(complete config)--> loading --> ready | error

A refresh that starts while another is loading supersedes it: the older
result is discarded when it lands, so the state always reflects the last
configuration seen.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from core.catalog import FieldCatalog, get_catalog
from core.errors import ChartBuilderError, IncompleteConfiguration
from core.models import (
    ChartConfiguration,
    ChartType,
    ErrorPayload,
    FieldRole,
    PreviewMetadata,
    PreviewRequest,
    PreviewResult,
    PreviewSnapshot,
    PreviewState,
    Slot,
)
from core.settings import max_preview_points, preview_delay_ms
from server.sse import EVT_CONFIG_CHANGED, SSEChannel, SSEEvent, snapshot_event
from skills import configure
from skills.aggregate import aggregate
from skills.filters import apply_filters
from skills.infer import infer_chart_type
from skills.superset import to_superset_config
from skills.validate import validate_configuration, validate_result

logger = logging.getLogger("uvicorn.error")

Records = List[Dict[str, Any]]
RecordSource = Callable[[str], Union[Sequence[Dict[str, Any]], Awaitable[Sequence[Dict[str, Any]]]]]


# ---------------------------------------------------------------------------
# Synchronous pipeline
# ---------------------------------------------------------------------------

def ensure_complete(config: ChartConfiguration) -> None:
    if not config.dataset_id:
        raise IncompleteConfiguration("Select a dataset to preview a chart.")
    if not config.is_complete:
        raise IncompleteConfiguration("Add at least one metric and one dimension to see a preview.")


def run_preview(
    records: Sequence[Dict[str, Any]],
    config: ChartConfiguration,
    catalog: Optional[FieldCatalog] = None,
    *,
    now: Optional[datetime] = None,
    max_points: Optional[int] = None,
) -> PreviewResult:
    """
    Filter, aggregate and validate one preview.

    Incomplete configurations yield an empty result; NotFound and
    UnknownMetric propagate to the caller.
    """
    catalog = catalog or get_catalog()
    sections = configure.active_sections(config.disclosure_level)
    chart_type = config.chart_type or infer_chart_type(config)

    if not config.dataset_id:
        return PreviewResult(
            chart_type=ChartType.table,
            metadata=PreviewMetadata(original_count=len(records), active_sections=sections),
        )

    dataset = catalog.get_dataset(config.dataset_id)
    _, warnings = validate_configuration(config, catalog)

    if not config.is_complete:
        return PreviewResult(
            chart_type=chart_type,
            metadata=PreviewMetadata(
                dataset_id=dataset.id,
                dataset_name=dataset.name,
                original_count=len(records),
                input_count=len(records),
                active_sections=sections,
                warnings=warnings,
            ),
        )

    filtered, original_count = apply_filters(records, config, dataset, catalog, now=now)
    agg = aggregate(filtered, config, catalog)

    result = PreviewResult(
        chart_type=chart_type,
        points=agg.points,
        metadata=PreviewMetadata(
            dataset_id=dataset.id,
            dataset_name=dataset.name,
            original_count=original_count,
            input_count=agg.metadata.input_count,
            output_count=agg.metadata.output_count,
            active_sections=sections,
        ),
    )

    limit = max_points if max_points is not None else max_preview_points()
    advanced = sections["advanced"]
    _, result_warnings = validate_result(result, limit if advanced else 0)
    result.metadata.warnings = warnings + result_warnings

    if advanced:
        if limit and len(result.points) > limit:
            result.points = result.points[:limit]
        result.query = to_superset_config(config, catalog, row_limit=limit or None)

    return result


def build_configuration(request: PreviewRequest, catalog: FieldCatalog) -> ChartConfiguration:
    """Replay a query request onto a fresh configuration; the first bad id raises."""
    config = ChartConfiguration(disclosure_level=configure.clamp_level(request.disclosure_level))
    config = configure.select_dataset(config, catalog, request.dataset_id)
    for metric_id in request.metric_ids:
        config = configure.assign_field(config, catalog, metric_id, FieldRole.metric, Slot.metrics)
    for dimension_id in request.dimension_ids:
        config = configure.assign_field(config, catalog, dimension_id, FieldRole.dimension, Slot.dimensions)
    for f in request.filters:
        config = configure.add_filter(config, catalog, f.filter_id, f.operator, f.value)
    if request.time_range is not None:
        config = configure.set_time_range(config, request.time_range.type, request.time_range.value)
    return config


def handle_query(
    request: PreviewRequest,
    records: Sequence[Dict[str, Any]],
    catalog: Optional[FieldCatalog] = None,
    *,
    now: Optional[datetime] = None,
) -> PreviewResult:
    catalog = catalog or get_catalog()
    config = build_configuration(request, catalog)
    return run_preview(records, config, catalog, now=now)


# ---------------------------------------------------------------------------
# Async state machine
# ---------------------------------------------------------------------------

class PreviewOrchestrator:
    """
    Per-session preview state.

    `record_source(dataset_id)` may be a plain or async callable. `delay_ms`
    simulates the record source's latency before aggregation runs.
    """

    def __init__(
        self,
        record_source: RecordSource,
        catalog: Optional[FieldCatalog] = None,
        *,
        delay_ms: Optional[int] = None,
    ) -> None:
        self.record_source = record_source
        self.catalog = catalog or get_catalog()
        self.delay_ms = preview_delay_ms() if delay_ms is None else delay_ms
        self._generation = 0
        self._snapshot = PreviewSnapshot()
        self._channels: List[SSEChannel] = []

    @property
    def snapshot(self) -> PreviewSnapshot:
        return self._snapshot

    @property
    def state(self) -> PreviewState:
        return self._snapshot.state

    # -- subscribers --------------------------------------------------------

    def subscribe(self) -> SSEChannel:
        channel = SSEChannel()
        self._channels.append(channel)
        return channel

    async def unsubscribe(self, channel: SSEChannel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)
            await channel.close()

    async def _publish(self, event: SSEEvent) -> None:
        for channel in list(self._channels):
            await channel.send(event)

    async def _transition(self, state: PreviewState, **fields: Any) -> None:
        self._snapshot = PreviewSnapshot(generation=self._generation, state=state, **fields)
        logger.info("Preview gen %d -> %s", self._generation, state.value)
        await self._publish(snapshot_event(self._snapshot))

    # -- main entry ---------------------------------------------------------

    async def _load_records(self, dataset_id: str) -> Records:
        loaded = self.record_source(dataset_id)
        if inspect.isawaitable(loaded):
            loaded = await loaded
        return list(loaded or [])

    async def refresh(self, config: ChartConfiguration, *, now: Optional[datetime] = None) -> PreviewSnapshot:
        """
        React to a configuration mutation.

        Returns the snapshot current when this refresh finishes; a superseded
        refresh returns the newer state without touching it.
        """
        self._generation += 1
        generation = self._generation
        config = config.model_copy(deep=True)

        try:
            ensure_complete(config)
        except IncompleteConfiguration as e:
            logger.debug("Preview idle: %s", e.message)
            await self._transition(PreviewState.idle)
            return self._snapshot

        await self._transition(PreviewState.loading)

        try:
            records = await self._load_records(config.dataset_id)
            if self.delay_ms:
                await asyncio.sleep(self.delay_ms / 1000.0)
            if generation != self._generation:
                logger.debug("Preview gen %d superseded by %d; discarding", generation, self._generation)
                return self._snapshot
            result = run_preview(records, config, self.catalog, now=now)
        except ChartBuilderError as e:
            if generation != self._generation:
                return self._snapshot
            logger.info("Preview gen %d failed (%s): %s", generation, e.kind, e.message)
            await self._transition(PreviewState.error, error=e.to_payload())
            return self._snapshot
        except Exception as e:
            if generation != self._generation:
                return self._snapshot
            logger.exception("Preview gen %d crashed", generation)
            await self._transition(
                PreviewState.error,
                error=ErrorPayload(kind="InternalError", message=f"Preview failed: {e}"),
            )
            return self._snapshot

        await self._transition(PreviewState.ready, result=result)
        return self._snapshot

    async def publish_config(self, config: ChartConfiguration) -> None:
        """Tell subscribers the configuration changed, ahead of the preview events."""
        await self._publish(SSEEvent(event=EVT_CONFIG_CHANGED, data=config.model_dump(mode="json")))
