from fastapi import FastAPI, UploadFile, File, HTTPException, Request, Query
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from core.catalog import get_catalog
from core.settings import cors_origins
from core.storage import get_session, get_session_hashes, get_session_meta, put_records
from core.utils import df_to_records_safe
from server.api import router as chart_router
from server.session import find_chart_session
from typing import Any, Dict, List
import pandas as pd
import io
import logging
import hashlib
import json
from datetime import datetime, timezone

logger = logging.getLogger("uvicorn.error")
app = FastAPI(title="Chart Builder", description="Configure business charts and preview aggregated data")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chart_router)


def require_session_id(request: Request) -> str:
    sid = request.headers.get("X-Session-Id")
    if not sid:
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header.")
    return sid


def require_dataset(dataset_id: str) -> str:
    if dataset_id not in get_catalog():
        raise HTTPException(status_code=404, detail=f"Dataset '{dataset_id}' not found.")
    return dataset_id


def _sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _log_response(ctx: str, payload) -> None:
    """Pretty-print JSON-able payloads; fall back to str()."""
    try:
        logger.info("%s response: %s", ctx, json.dumps(payload, indent=2, default=str))
    except (TypeError, ValueError):
        logger.info("%s response (non-serializable): %s", ctx, str(payload))


def _table_meta(records: List[Dict[str, Any]], **extra) -> dict:
    columns: List[str] = []
    for rec in records:
        for key in rec:
            if key not in columns:
                columns.append(key)
    return {
        **extra,
        "created_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "n_rows": len(records),
        "n_cols": len(columns),
        "columns": columns,
    }


def _store(sid: str, dataset_id: str, records: List[Dict[str, Any]], file_hash: str, **extra) -> dict:
    meta = _table_meta(records, **extra)
    put_records(sid, dataset_id, records, meta)
    get_session_hashes(sid)[file_hash] = dataset_id
    # a live preview on this dataset must not keep showing the old rows
    session = find_chart_session(sid)
    if session is not None:
        session.records_replaced(dataset_id)
    return meta


@app.post("/records/{dataset_id}")
async def upload_records(request: Request, dataset_id: str, records: List[Dict[str, Any]]):
    """Replace this session's records for a dataset with a JSON list."""
    sid = require_session_id(request)
    require_dataset(dataset_id)

    file_hash = _sha256_bytes(json.dumps(records, sort_keys=True, default=str).encode("utf-8"))
    meta = _store(sid, dataset_id, records, file_hash, source="json")

    resp = {"ok": True, "table": dataset_id, "rows": len(records), "meta": meta}
    _log_response("RECORDS", {k: v for k, v in resp.items() if k != "meta"})
    return resp


@app.post("/upload")
async def upload(
    request: Request,
    file: UploadFile = File(...),
    dataset_id: str = Query(...),
):
    """Load a CSV as the session's records for a dataset."""
    sid = require_session_id(request)
    require_dataset(dataset_id)
    content = await file.read()
    filename = file.filename or "records.csv"

    # duplicate detection (by content hash)
    file_hash = _sha256_bytes(content)
    sess_hashes = get_session_hashes(sid)
    if file_hash in sess_hashes:
        dup_resp = {
            "ok": False,
            "duplicate": True,
            "table": sess_hashes[file_hash],
            "detail": "Duplicate upload: this file was already uploaded for this session.",
        }
        _log_response("UPLOAD (duplicate)", dup_resp)
        return JSONResponse(status_code=409, content=dup_resp)

    try:
        df = pd.read_csv(io.BytesIO(content))
    except (ValueError, pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.exception("Failed to read CSV")
        raise HTTPException(status_code=400, detail=f"Failed to read CSV: {e}")

    records = df_to_records_safe(df)
    meta = _store(
        sid, dataset_id, records, file_hash,
        source="csv", file_name=filename, file_size=len(content),
    )

    resp = {
        "ok": True,
        "table": dataset_id,
        "rows": len(records),
        "columns": meta["columns"],
        "meta": meta,
    }
    _log_response("UPLOAD", resp)
    return resp


@app.get("/tables")
async def tables(request: Request):
    sid = require_session_id(request)
    sess = get_session(sid)
    meta_store = get_session_meta(sid)

    tables_info = []
    for dataset_id, records in sess.items():
        meta = meta_store.get(dataset_id) or _table_meta(records)
        tables_info.append({"name": dataset_id, **meta})

    resp = {"tables": tables_info}
    _log_response("TABLES", resp)
    return resp
