"""Shared fixtures: a fresh built-in catalog and clean in-memory stores per test."""

import pytest

from core import storage
from core.catalog import FieldCatalog, load_catalog, set_catalog
from core.models import ChartConfiguration
from server import session as chart_sessions
from skills import configure


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch):
    monkeypatch.delenv("CATALOG_PATH", raising=False)
    monkeypatch.setenv("PREVIEW_DELAY_MS", "0")
    set_catalog(None)
    storage.RECORDS.clear()
    storage.SESS_HASHES.clear()
    storage.SESS_META.clear()
    chart_sessions.SESSIONS.clear()
    yield
    set_catalog(None)
    chart_sessions.SESSIONS.clear()


@pytest.fixture
def catalog() -> FieldCatalog:
    cat = load_catalog()
    set_catalog(cat)
    return cat


@pytest.fixture
def qa_config(catalog) -> ChartConfiguration:
    """test_execution selected, nothing assigned."""
    return configure.select_dataset(ChartConfiguration(), catalog, "test_execution")


@pytest.fixture
def qa_records():
    return [
        {"status": "PASSED", "environment": "QA", "test_type": "automated",
         "duration_seconds": 10, "execution_date": "2024-03-01", "sprint_name": "Sprint 1"},
        {"status": "FAILED", "environment": "QA", "test_type": "manual",
         "duration_seconds": 21, "execution_date": "2024-03-02", "sprint_name": "Sprint 1"},
        {"status": "PASSED", "environment": "Staging", "test_type": "automated",
         "duration_seconds": 30, "execution_date": "2024-03-02", "sprint_name": "Sprint 2"},
        {"status": "ERROR", "environment": "Production", "test_type": "automated",
         "duration_seconds": 5, "execution_date": "2024-02-10", "sprint_name": "Sprint 2"},
        {"status": "SKIPPED", "environment": None, "test_type": "manual",
         "duration_seconds": None, "execution_date": "2024-03-05", "sprint_name": "Sprint 2"},
    ]
