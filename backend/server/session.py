"""
Per-session wiring: one ConfigurationState and one PreviewOrchestrator per
X-Session-Id. Every successful mutation schedules a preview refresh, and so
does replacing the records of the dataset the configuration is built on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Set

from core.catalog import FieldCatalog, get_catalog
from core.models import ChartConfiguration, OperationResult
from core.storage import get_records
from server.orchestrator import PreviewOrchestrator
from skills.configure import ConfigurationState

logger = logging.getLogger("uvicorn.error")


class ChartSession:
    def __init__(
        self,
        session_id: str,
        catalog: Optional[FieldCatalog] = None,
        delay_ms: Optional[int] = None,
    ) -> None:
        self.session_id = session_id
        self.catalog = catalog or get_catalog()
        self.state = ConfigurationState(self.catalog)
        self.preview = PreviewOrchestrator(self._records, self.catalog, delay_ms=delay_ms)
        self._tasks: Set[asyncio.Task] = set()

    def _records(self, dataset_id: str):
        return get_records(self.session_id, dataset_id)

    async def changed(self, result: OperationResult) -> OperationResult:
        """Publish an accepted mutation and kick off a background refresh."""
        if not result.ok:
            return result
        await self.preview.publish_config(result.config)
        self._schedule(result.config)
        return result

    def records_replaced(self, dataset_id: str) -> bool:
        """Refresh the preview if `dataset_id` is the configured dataset."""
        if self.state.config.dataset_id != dataset_id:
            return False
        logger.info("Session %s records for %s replaced; refreshing preview", self.session_id, dataset_id)
        self._schedule(self.state.config)
        return True

    def _schedule(self, config: ChartConfiguration) -> None:
        task = asyncio.create_task(self.preview.refresh(config))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


# session_id -> ChartSession
SESSIONS: Dict[str, ChartSession] = {}


def get_chart_session(session_id: str) -> ChartSession:
    if session_id not in SESSIONS:
        logger.info("New chart session %s", session_id)
        SESSIONS[session_id] = ChartSession(session_id)
    return SESSIONS[session_id]


def find_chart_session(session_id: str) -> Optional[ChartSession]:
    return SESSIONS.get(session_id)
