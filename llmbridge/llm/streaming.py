"""
Streaming translator — raw provider HTTP streams to ContentDelta.

Every provider streams newline-delimited events. DeltaStream reads the
body line by line, strips SSE framing, decodes JSON and asks the
provider's extractor for a text fragment. Lines that are blank, SSE
comments, non-data fields or broken JSON are skipped; a broken line is
counted so callers can watch skip rates.

The HTTP request is only sent on the first pull, so building a stream
is free and failures to connect surface from ``__anext__``.

Usage:
    stream = driver.stream([Message(role="user", content="Hi")])

    async with stream:
        async for delta in stream:
            print(delta.content, end="", flush=True)

    print(stream.chunk_count, stream.skipped)
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx

from llmbridge.exceptions import MalformedStreamChunk, ProviderRequestError
from llmbridge.llm.messages import ContentDelta
from llmbridge.llm.providers import ProviderSpec

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# SSE fields that never carry a payload
_IGNORED_FIELDS = ("event:", "id:", "retry:")


# ---------------------------------------------------------------------------
# Line decoding
# ---------------------------------------------------------------------------

class _Done:
    """Marker returned when the stream announces its own end."""


DONE = _Done()


def decode_stream_line(line: str) -> Optional[dict[str, Any] | _Done]:
    """
    Decode one raw body line.

    Returns None for lines without payload, DONE for the ``[DONE]``
    sentinel, or the decoded JSON object. Raises MalformedStreamChunk
    when the payload is not a JSON object.
    """
    line = line.strip()
    if not line or line.startswith(":") or line.startswith(_IGNORED_FIELDS):
        return None

    if line.startswith("data:"):
        line = line[len("data:"):].strip()
        if not line:
            return None

    if line == DONE_SENTINEL:
        return DONE

    try:
        chunk = json.loads(line)
    except json.JSONDecodeError as e:
        raise MalformedStreamChunk(f"Invalid JSON in stream: {e}", line=line) from e

    if not isinstance(chunk, dict):
        raise MalformedStreamChunk("Stream chunk is not a JSON object", line=line)
    return chunk


# ---------------------------------------------------------------------------
# Delta Stream
# ---------------------------------------------------------------------------

class DeltaStream:
    """
    Lazy, pull-based, single-use async iterator of ContentDelta.

    Once it has ended (sentinel, end of body, error or aclose) every
    further pull ends immediately.
    """

    def __init__(
        self,
        spec: ProviderSpec,
        open_response: Callable[[], Awaitable[httpx.Response]],
        model: Optional[str] = None,
    ):
        self._spec = spec
        self._open_response = open_response
        self._response: Optional[httpx.Response] = None
        self._lines: Optional[AsyncIterator[str]] = None
        self._finished = False
        self._started_at: Optional[float] = None

        self.model = model
        self.chunk_count = 0
        self.skipped = 0

    @property
    def provider(self) -> str:
        return self._spec.provider.value

    @property
    def finished(self) -> bool:
        return self._finished

    # --- Async iterator protocol ---

    def __aiter__(self) -> "DeltaStream":
        return self

    async def __anext__(self) -> ContentDelta:
        if self._finished:
            raise StopAsyncIteration

        if self._lines is None:
            await self._open()

        while True:
            try:
                line = await self._lines.__anext__()
            except StopAsyncIteration:
                await self._finish()
                raise
            except httpx.HTTPError as e:
                await self._finish(completed=False)
                raise ProviderRequestError(
                    f"{self.provider} stream interrupted: {e}",
                    provider=self.provider,
                    reason="transport",
                ) from e

            try:
                chunk = decode_stream_line(line)
            except MalformedStreamChunk as e:
                self.skipped += 1
                logger.debug(
                    "stream_line_skipped",
                    extra={"provider": self.provider, "line": e.line[:200]},
                )
                continue

            if chunk is None:
                continue
            if chunk is DONE:
                await self._finish()
                raise StopAsyncIteration

            model = self._spec.extract_model(chunk)
            if model:
                self.model = model

            text = self._spec.extract_text(chunk)
            if text is None:
                continue

            self.chunk_count += 1
            return ContentDelta(content=text, model=self.model)

    # --- Lifecycle ---

    async def _open(self) -> None:
        self._started_at = time.monotonic()
        try:
            self._response = await self._open_response()
        except BaseException:
            self._finished = True
            raise
        self._lines = self._response.aiter_lines()

    async def _finish(self, completed: bool = True) -> None:
        if self._finished:
            return
        self._finished = True
        if self._response is not None:
            await self._response.aclose()

        if completed:
            elapsed = (time.monotonic() - (self._started_at or time.monotonic())) * 1000
            logger.info(
                "stream_completed",
                extra={
                    "provider": self.provider,
                    "model": self.model,
                    "chunks": self.chunk_count,
                    "skipped": self.skipped,
                    "latency_ms": round(elapsed, 1),
                },
            )

    async def aclose(self) -> None:
        """Stop the stream and release the connection. Safe to call twice."""
        if not self._finished:
            logger.debug("stream_cancelled", extra={"provider": self.provider})
        await self._finish(completed=False)

    async def __aenter__(self) -> "DeltaStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def collect_stream(stream: DeltaStream) -> str:
    """Drain a stream and return the joined text."""
    parts = []
    async with stream:
        async for delta in stream:
            parts.append(delta.content)
    return "".join(parts)
