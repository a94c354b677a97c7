"""
Server-Sent Events writer.

``SSEWriter`` is the single path by which a run reports progress. It frames
each event as::

    event: <name>
    data: <json>

and hands the bytes to a sink. By default the sink is an internal queue that
``stream()`` drains, which is what the HTTP layer feeds into a streaming
response.

Example:
    writer = SSEWriter()
    writer.write(MODE, {"mode": "single"})
    writer.write(DONE, {"response": "ok", "toolCalls": []})

    async for chunk in writer.stream():
        ...
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

from nova_orchestrator.logging import get_logger

logger = get_logger("sse")

# Event names
MODE = "mode"
PLAN_START = "plan_start"
PLAN_READY = "plan_ready"
STEP_START = "step_start"
TOOL_CALL = "tool_call"
STEP_COMPLETE = "step_complete"
VALIDATION_START = "validation_start"
VALIDATION_COMPLETE = "validation_complete"
INSIGHT = "insight"
DONE = "done"
ERROR = "error"

TERMINAL_EVENTS = frozenset({DONE, ERROR})

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
SSE_MEDIA_TYPE = "text/event-stream"


@dataclass(frozen=True)
class SSEEvent:
    event: str
    data: dict[str, Any]

    def encode(self) -> bytes:
        payload = json.dumps(self.data, ensure_ascii=False)
        return f"event: {self.event}\ndata: {payload}\n\n".encode()


def parse_frames(raw: str) -> list[SSEEvent]:
    """Parse a buffer of complete frames back into events."""
    events: list[SSEEvent] = []
    for block in raw.split("\n\n"):
        if not block.strip():
            continue
        name = ""
        data: dict[str, Any] = {}
        for line in block.split("\n"):
            if line.startswith("event: "):
                name = line[len("event: "):].strip()
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        if name:
            events.append(SSEEvent(name, data))
    return events


class SSEWriter:
    """
    Stateful SSE writer.

    Writes after ``close()`` are dropped. A terminal event (``done`` or
    ``error``) closes the writer, so at most one terminal frame is emitted.
    Sink failures are logged and swallowed; the writer closes itself.
    """

    def __init__(self, sink: Callable[[bytes], None] | None = None) -> None:
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._sink = sink or self._queue.put_nowait
        self._closed = False
        self.events_written = 0
        self.last_event: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, event: str, data: dict[str, Any] | None = None) -> bool:
        """Write one frame. Returns False if the frame was dropped."""
        if self._closed:
            logger.debug("Dropping '%s' frame: writer closed", event)
            return False
        try:
            self._sink(SSEEvent(event, data or {}).encode())
        except Exception as e:
            logger.debug("SSE write failed for '%s': %s", event, e)
            self.close()
            return False
        self.events_written += 1
        self.last_event = event
        if event in TERMINAL_EVENTS:
            self.close()
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield encoded frames until the writer is closed."""
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk
