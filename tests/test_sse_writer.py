"""
Tests for SSEWriter framing and delta relaying.
"""

from __future__ import annotations

import json

import httpx
import pytest

from llmbridge.config.schema import ProviderSettings
from llmbridge.llm.driver import EngineDriver
from llmbridge.llm.messages import Message
from llmbridge.sse import DEFAULT_HEADERS, SSEWriter


class TestFormat:

    def test_plain_message(self):
        assert SSEWriter().format("hello") == "data: hello\n\n"

    def test_id_and_event(self):
        frame = SSEWriter().format("x", event_id="7", event="update")
        assert frame == "id: 7\nevent: update\ndata: x\n\n"

    def test_message_event_omitted(self):
        assert "event:" not in SSEWriter(event_type="message").format("x")

    def test_writer_level_defaults(self):
        writer = SSEWriter(event_id="abc", event_type="token")
        assert writer.format("x") == "id: abc\nevent: token\ndata: x\n\n"

    def test_multiline_payload(self):
        assert SSEWriter().format("a\nb") == "data: a\ndata: b\n\n"

    def test_dict_is_json(self):
        frame = SSEWriter().format({"a": 1})
        assert json.loads(frame[len("data: "):].strip()) == {"a": 1}


class TestEmit:

    def _writer(self):
        frames = []
        return SSEWriter(frames.append), frames

    def test_send_goes_to_sink(self):
        writer, frames = self._writer()
        returned = writer.send("hi")
        assert frames == [returned] == ["data: hi\n\n"]

    def test_send_batch(self):
        writer, frames = self._writer()
        writer.send_batch(["a", {"data": "b", "id": "2", "event": "tick"}])
        assert frames == ["data: a\n\n", "id: 2\nevent: tick\ndata: b\n\n"]

    def test_keep_alive(self):
        writer, frames = self._writer()
        writer.keep_alive()
        writer.keep_alive("ping")
        assert frames == [": keepalive\n\n", ": ping\n\n"]

    def test_retry(self):
        writer, frames = self._writer()
        writer.retry()
        writer.retry(1500)
        assert frames == ["retry: 3000\n\n", "retry: 1500\n\n"]
        assert writer.retry_ms == 1500

    def test_send_error(self):
        writer, frames = self._writer()
        writer.send_error("boom", code=503)
        lines = frames[0].splitlines()
        assert lines[0] == "event: error"
        assert json.loads(lines[1][len("data: "):]) == {
            "error": True, "message": "boom", "code": 503,
        }

    def test_end(self):
        writer, frames = self._writer()
        writer.end({"final": True})
        assert frames[0] == 'data: {"final": true}\n\n'
        assert frames[1] == 'event: done\ndata: {"type": "done"}\n\n'

    def test_format_without_sink(self):
        assert SSEWriter().send("x") == "data: x\n\n"

    def test_headers(self):
        headers = SSEWriter().headers({"X-Request-Id": "r1", "Connection": "close"})
        assert headers["Content-Type"] == "text/event-stream"
        assert headers["X-Accel-Buffering"] == "no"
        assert headers["X-Request-Id"] == "r1"
        assert headers["Connection"] == "close"
        assert DEFAULT_HEADERS["Connection"] == "keep-alive"


class TestStreamDeltas:

    @pytest.mark.asyncio
    async def test_relays_deltas_then_done(self):
        body = (
            'data: {"choices": [{"delta": {"content": "Hel"}}]}\n'
            'data: {"choices": [{"delta": {"content": "lo"}}]}\n'
            "data: [DONE]\n"
        )
        transport = httpx.MockTransport(lambda r: httpx.Response(200, content=body.encode()))
        driver = EngineDriver("openai", ProviderSettings(), transport=transport)
        frames = []

        ok = await SSEWriter(frames.append).stream_deltas(
            driver.stream([Message(role="user", content="hi")])
        )

        assert ok is True
        payloads = [json.loads(f.split("data: ", 1)[1]) for f in frames[:2]]
        assert [p["content"] for p in payloads] == ["Hel", "lo"]
        assert frames[-1].startswith("event: done")

    @pytest.mark.asyncio
    async def test_provider_error_becomes_error_event(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(401, text="bad key"))
        driver = EngineDriver("claude", ProviderSettings(), transport=transport)
        frames = []

        ok = await SSEWriter(frames.append).stream_deltas(
            driver.stream([Message(role="user", content="hi")])
        )

        assert ok is False
        assert frames[0].startswith("event: error")
        assert '"code": 401' in frames[0]
        assert frames[-1].startswith("event: done")
