"""
Server-Sent Events writer.

Formats payloads as SSE frames and pushes them to a sink: any callable
that takes a string (a response writer, ``queue.put``, ``list.append``).
``format`` is pure and needs no sink.

Frame layout:

    id: <id>            (only when an id is set)
    event: <type>       (omitted for the default "message" type)
    data: <line 1>
    data: <line 2>
    <blank line>

Usage:
    frames = []
    sse = SSEWriter(frames.append)
    await sse.stream_deltas(driver.stream(messages))
    # frames → ['data: {"type": "delta", ...}\\n\\n', ..., 'event: done\\n...']
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from llmbridge.exceptions import LLMBridgeError, ProviderRequestError
from llmbridge.llm.streaming import DeltaStream

logger = logging.getLogger(__name__)

DEFAULT_EVENT = "message"

DEFAULT_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


class SSEWriter:
    """Formats and emits SSE frames; holds the current id and event type."""

    def __init__(
        self,
        sink: Optional[Callable[[str], Any]] = None,
        event_id: Optional[str] = None,
        event_type: str = DEFAULT_EVENT,
        retry_ms: int = 3000,
    ):
        self.sink = sink
        self.event_id = event_id
        self.event_type = event_type
        self.retry_ms = retry_ms

    # --- Formatting ---

    def format(
        self,
        data: Any,
        event_id: Optional[str] = None,
        event: Optional[str] = None,
    ) -> str:
        event_id = event_id if event_id is not None else self.event_id
        event = event or self.event_type

        lines = []
        if event_id is not None:
            lines.append(f"id: {event_id}")
        if event != DEFAULT_EVENT:
            lines.append(f"event: {event}")

        payload = json.dumps(data) if isinstance(data, (dict, list)) else str(data)
        lines.extend(f"data: {line}" for line in payload.split("\n"))
        return "\n".join(lines) + "\n\n"

    def headers(self, custom: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Response headers for an SSE endpoint; custom values win."""
        return {**DEFAULT_HEADERS, **(custom or {})}

    # --- Emitting ---

    def _emit(self, frame: str) -> str:
        if self.sink is not None:
            self.sink(frame)
        return frame

    def send(
        self,
        data: Any,
        event_id: Optional[str] = None,
        event: Optional[str] = None,
    ) -> str:
        return self._emit(self.format(data, event_id, event))

    def send_batch(self, messages: Iterable[Any]) -> list[str]:
        """
        Send several messages. Dicts with a ``data`` key may carry their
        own ``id`` and ``event``; anything else is sent as plain data.
        """
        frames = []
        for message in messages:
            if isinstance(message, Mapping) and "data" in message:
                frames.append(
                    self.send(message["data"], message.get("id"), message.get("event"))
                )
            else:
                frames.append(self.send(message))
        return frames

    def keep_alive(self, comment: str = "keepalive") -> str:
        return self._emit(f": {comment}\n\n")

    def retry(self, ms: Optional[int] = None) -> str:
        if ms is not None:
            self.retry_ms = ms
        return self._emit(f"retry: {self.retry_ms}\n\n")

    def send_error(self, message: str, code: int = 500) -> str:
        return self.send(
            {"error": True, "message": message, "code": code}, event="error"
        )

    def end(self, data: Any = None) -> str:
        """Optionally send a last message, then the ``done`` event."""
        if data is not None:
            self.send(data)
        return self.send({"type": "done"}, event="done")

    # --- Streams ---

    async def stream_deltas(self, deltas: DeltaStream) -> bool:
        """
        Relay a DeltaStream as SSE frames and finish with ``done``.

        A provider failure is reported to the client as an ``error``
        event instead of being raised. Returns True when the stream
        completed without error.
        """
        ok = True
        async with deltas:
            try:
                async for delta in deltas:
                    self.send({"type": "delta", "content": delta.content, "model": delta.model})
            except ProviderRequestError as e:
                ok = False
                logger.error(
                    "sse_stream_failed",
                    extra={"provider": e.provider, "status_code": e.status_code},
                )
                self.send_error(str(e), code=e.status_code or 502)
            except LLMBridgeError as e:
                ok = False
                logger.error("sse_stream_failed", extra={"error": str(e)})
                self.send_error(str(e))
        self.end()
        return ok
