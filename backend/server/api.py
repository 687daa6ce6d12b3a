"""
Chart builder API routes: mounted as a sub-router on the main FastAPI app.

Catalog:   GET /api/datasets, GET /api/datasets/{id}
Config:    /api/config/* mutations; each accepted one schedules a preview refresh
Preview:   GET /api/preview (snapshot), GET /api/preview/events (SSE),
           POST /api/preview (stateless one-shot query)
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from core.catalog import get_catalog
from core.errors import ChartBuilderError
from core.models import (
    AssignFieldRequest,
    ChartTypeRequest,
    DisclosureRequest,
    ErrorPayload,
    FilterRequest,
    OperationResult,
    PreviewRequest,
    PreviewResult,
    SelectDatasetRequest,
    Slot,
    TimeRangeRequest,
)
from core.storage import get_records
from server.orchestrator import handle_query
from server.session import get_chart_session
from server.sse import snapshot_event
from skills.configure import active_sections
from skills.superset import to_superset_config

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["chart-builder"])

ERROR_STATUS: Dict[str, int] = {
    "NotFound": 404,
    "InvalidAssignment": 400,
    "UnknownMetric": 422,
    "IncompleteConfiguration": 400,
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _require_session_id(request: Request) -> str:
    sid = request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header.")
    return sid


def _error_response(error: ErrorPayload) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(error.kind, 400),
        content=error.model_dump(),
    )


async def _mutation(request: Request, op: str, *args: Any):
    session = get_chart_session(_require_session_id(request))
    result: OperationResult = getattr(session.state, op)(*args)
    await session.changed(result)
    if not result.ok:
        return _error_response(result.error)
    return _config_response(result)


def _config_response(result: OperationResult) -> dict:
    return {
        "ok": result.ok,
        "config": result.config.model_dump(mode="json"),
        "active_sections": active_sections(result.config.disclosure_level),
    }


def preview_response(result: PreviewResult) -> dict:
    return {
        "chart_type": result.chart_type.value,
        "data": [
            {"group_label": p.group_label, **p.values}
            for p in result.points
        ],
        "metadata": result.metadata.model_dump(mode="json"),
        "query": result.query.model_dump(mode="json") if result.query else None,
    }


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@router.get("/datasets")
async def list_datasets(request: Request):
    _require_session_id(request)
    return {
        "datasets": [
            {
                "id": ds.id,
                "name": ds.name,
                "business_description": ds.business_description,
                "n_metrics": len(ds.metrics),
                "n_dimensions": len(ds.dimensions),
                "n_filters": len(ds.filters),
            }
            for ds in get_catalog().list_datasets()
        ]
    }


@router.get("/datasets/{dataset_id}")
async def get_dataset(request: Request, dataset_id: str):
    _require_session_id(request)
    try:
        ds = get_catalog().get_dataset(dataset_id)
    except ChartBuilderError as e:
        return _error_response(e.to_payload())
    return ds.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@router.get("/config")
async def get_config(request: Request):
    session = get_chart_session(_require_session_id(request))
    return _config_response(OperationResult(ok=True, config=session.state.config))


@router.post("/config/dataset")
async def select_dataset(request: Request, body: SelectDatasetRequest):
    return await _mutation(request, "select_dataset", body.dataset_id)


@router.post("/config/fields")
async def assign_field(request: Request, body: AssignFieldRequest):
    return await _mutation(request, "assign_field", body.field_id, body.role, body.slot)


@router.delete("/config/fields/{slot}/{field_id}")
async def remove_field(request: Request, slot: Slot, field_id: str):
    return await _mutation(request, "remove_field", field_id, slot)


@router.put("/config/chart-type")
async def set_chart_type(request: Request, body: ChartTypeRequest):
    return await _mutation(request, "set_chart_type", body.chart_type)


@router.post("/config/filters")
async def add_filter(request: Request, body: FilterRequest):
    return await _mutation(request, "add_filter", body.filter_id, body.operator, body.value)


@router.delete("/config/filters/{filter_id}")
async def remove_filter(request: Request, filter_id: str):
    return await _mutation(request, "remove_filter", filter_id)


@router.put("/config/disclosure")
async def set_disclosure_level(request: Request, body: DisclosureRequest):
    return await _mutation(request, "set_disclosure_level", body.level)


@router.put("/config/time-range")
async def set_time_range(request: Request, body: TimeRangeRequest):
    return await _mutation(request, "set_time_range", body.type, body.value)


@router.post("/config/reset")
async def reset_config(request: Request):
    return await _mutation(request, "reset")


@router.get("/config/superset")
async def superset_config(request: Request):
    """Superset chart payload for the session's current configuration."""
    session = get_chart_session(_require_session_id(request))
    config = session.state.config
    if not config.dataset_id:
        raise HTTPException(status_code=400, detail="Select a dataset first.")
    try:
        query = to_superset_config(config, session.catalog)
    except ChartBuilderError as e:
        return _error_response(e.to_payload())
    return query.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

@router.get("/preview")
async def get_preview(request: Request):
    """Current orchestrator snapshot: idle, loading, ready or error."""
    session = get_chart_session(_require_session_id(request))
    snap = session.preview.snapshot
    return {
        "state": snap.state.value,
        "generation": snap.generation,
        "preview": preview_response(snap.result) if snap.result else None,
        "error": snap.error.model_dump() if snap.error else None,
    }


@router.post("/preview")
async def query_preview(request: Request, body: PreviewRequest):
    """
    Stateless preview: builds a configuration from the request, then filters
    and aggregates. Records come from the body or from the session's upload
    for the dataset.
    """
    sid = _require_session_id(request)
    records = body.records if body.records is not None else get_records(sid, body.dataset_id)
    try:
        result = handle_query(body, records, get_catalog())
    except ChartBuilderError as e:
        logger.info("Preview query rejected (%s): %s", e.kind, e.message)
        return _error_response(e.to_payload())
    return preview_response(result)


@router.get("/preview/events")
async def stream_preview_events(
    request: Request,
    session_id: str = Query(None, alias="session_id"),
):
    """
    SSE endpoint: current snapshot first, then every state transition.

    EventSource doesn't support custom headers, so session_id is passed
    as a query parameter.
    """
    sid = session_id or request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing session_id query parameter.")

    session = get_chart_session(sid)
    channel = session.preview.subscribe()
    initial = snapshot_event(session.preview.snapshot).format()

    async def _stream():
        try:
            yield initial
            async for event_str in channel:
                yield event_str
        finally:
            await session.preview.unsubscribe(channel)

    return StreamingResponse(_stream(), media_type="text/event-stream", headers=SSE_HEADERS)
