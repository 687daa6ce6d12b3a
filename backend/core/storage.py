"""
In-memory session storage.

Per session: uploaded record tables keyed by dataset id, content hashes for
duplicate-upload detection, and table metadata for GET /tables.
"""

from __future__ import annotations

from typing import Any, Dict, List

Records = List[Dict[str, Any]]

# session_id -> dataset_id -> records
RECORDS: Dict[str, Dict[str, Records]] = {}
# session_id -> sha256 -> dataset_id
SESS_HASHES: Dict[str, Dict[str, str]] = {}
# session_id -> dataset_id -> metadata
SESS_META: Dict[str, Dict[str, dict]] = {}


def get_session(session_id: str) -> Dict[str, Records]:
    if session_id not in RECORDS:
        RECORDS[session_id] = {}
    return RECORDS[session_id]


def get_session_hashes(session_id: str) -> Dict[str, str]:
    if session_id not in SESS_HASHES:
        SESS_HASHES[session_id] = {}
    return SESS_HASHES[session_id]


def get_session_meta(session_id: str) -> Dict[str, dict]:
    if session_id not in SESS_META:
        SESS_META[session_id] = {}
    return SESS_META[session_id]


def get_records(session_id: str, dataset_id: str) -> Records:
    """Records uploaded for a dataset in this session; empty when none were."""
    return RECORDS.get(session_id, {}).get(dataset_id, [])


def put_records(session_id: str, dataset_id: str, records: Records, meta: dict) -> None:
    """Replace the session's table for a dataset."""
    get_session(session_id)[dataset_id] = list(records)
    get_session_meta(session_id)[dataset_id] = meta
    hashes = get_session_hashes(session_id)
    # a replaced table no longer blocks re-uploading its old content
    for h in [h for h, ds in hashes.items() if ds == dataset_id]:
        hashes.pop(h)
