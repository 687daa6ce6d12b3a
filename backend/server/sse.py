"""
Preview events streamed to the chart builder UI over Server-Sent Events.

Each preview state has one event name (`preview_idle`, `preview_loading`,
`preview_ready`, `preview_error`) whose data is the full PreviewSnapshot.
`config_changed` carries the configuration that triggered the refresh and
is always sent before the refresh's own preview events.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, AsyncIterator, Dict, Optional

from pydantic import BaseModel

from core.models import PreviewSnapshot, PreviewState

EVT_PREVIEW_IDLE = "preview_idle"
EVT_PREVIEW_LOADING = "preview_loading"
EVT_PREVIEW_READY = "preview_ready"
EVT_PREVIEW_ERROR = "preview_error"
EVT_CONFIG_CHANGED = "config_changed"

PREVIEW_EVENTS: Dict[PreviewState, str] = {
    PreviewState.idle: EVT_PREVIEW_IDLE,
    PreviewState.loading: EVT_PREVIEW_LOADING,
    PreviewState.ready: EVT_PREVIEW_READY,
    PreviewState.error: EVT_PREVIEW_ERROR,
}


def event_for_state(state: PreviewState) -> str:
    return PREVIEW_EVENTS[PreviewState(state)]


class SSEEvent(BaseModel):
    event: str
    data: Any = None
    id: Optional[str] = None

    def format(self) -> str:
        lines = [f"id: {self.id}"] if self.id else []
        lines.append(f"event: {self.event}")
        if self.data is None:
            payload = "{}"
        elif isinstance(self.data, str):
            payload = self.data
        else:
            payload = json.dumps(self.data, default=str)
        # multi-line data needs one "data:" field per line
        lines.extend(f"data: {line}" for line in payload.split("\n"))
        return "\n".join(lines) + "\n\n"


def snapshot_event(snapshot: PreviewSnapshot) -> SSEEvent:
    """The event announcing a snapshot, named after its state."""
    return SSEEvent(event=event_for_state(snapshot.state), data=snapshot.model_dump(mode="json"))


class SSEChannel:
    """
    Preview events waiting to be written to one EventSource connection.

    Events without an id are numbered per channel, so a reconnecting client
    can tell how far it got. `close()` ends iteration after the events
    already queued have been drained.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[SSEEvent]] = asyncio.Queue()
        self._ids = itertools.count(1)
        self._closed = False

    async def send(self, event: SSEEvent) -> None:
        if self._closed:
            return
        if event.id is None:
            event = event.model_copy(update={"id": str(next(self._ids))})
        await self._queue.put(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event.format()
