"""
Tests for EngineDriver.send and the provider table.

Every test talks to an httpx.MockTransport, so request bodies, URLs and
headers can be inspected and canned provider responses returned.
"""

from __future__ import annotations

import json

import httpx
import pytest

from llmbridge.config.schema import ProviderSettings
from llmbridge.exceptions import ProviderRequestError
from llmbridge.llm.driver import EngineDriver
from llmbridge.llm.messages import Message, Provider, Role


# ===========================================================================
# Mock Factories
# ===========================================================================

OPENAI_BODY = {
    "model": "gpt-4-0613",
    "choices": [{"message": {"role": "assistant", "content": "Hello there"}}],
    "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
}

CLAUDE_BODY = {
    "model": "claude-3-opus-20240229",
    "content": [{"type": "text", "text": "Hello there"}],
    "usage": {"input_tokens": 5, "output_tokens": 2},
}

GEMINI_BODY = {
    "candidates": [{"content": {"role": "model", "parts": [{"text": "Hello there"}]}}],
    "usageMetadata": {"promptTokenCount": 5, "candidatesTokenCount": 2},
}


class RecordingTransport:
    """Captures requests and answers each with a fixed response."""

    def __init__(self, status_code: int = 200, body=None, text: str = ""):
        self.status_code = status_code
        self.body = body
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, text=self.text)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _driver(provider, recorder, **settings) -> EngineDriver:
    settings.setdefault("api_key", "test-key")
    return EngineDriver(
        provider,
        ProviderSettings(**settings),
        transport=recorder.transport(),
    )


def _messages():
    return [
        Message(role=Role.SYSTEM, content="Be brief."),
        Message(role=Role.USER, content="Hi"),
    ]


# ===========================================================================
# Send
# ===========================================================================

class TestOpenAISend:

    @pytest.mark.asyncio
    async def test_send_parses_response(self):
        recorder = RecordingTransport(body=OPENAI_BODY)
        driver = _driver("openai", recorder, organization_id="org-1")

        response = await driver.send(_messages(), {"temperature": "0.2", "foo": "bar"})

        assert response.content == "Hello there"
        assert response.role == "assistant"
        assert response.model == "gpt-4-0613"
        assert response.provider == "openai"
        assert response.usage["total_tokens"] == 7

        request = recorder.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["OpenAI-Organization"] == "org-1"

        body = recorder.last_json
        assert body["messages"][0] == {"role": "system", "content": "Be brief."}
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 1000
        assert body["model"] == "gpt-4"
        assert "foo" not in body
        assert "stream" not in body

    @pytest.mark.asyncio
    async def test_call_options_override_defaults(self):
        recorder = RecordingTransport(body=OPENAI_BODY)
        driver = _driver("openai", recorder, model="gpt-4o", temperature=0.1)

        await driver.send(_messages(), {"model": "gpt-4o-mini", "max_tokens": 5})

        body = recorder.last_json
        assert body["model"] == "gpt-4o-mini"
        assert body["temperature"] == 0.1
        assert body["max_tokens"] == 5

    @pytest.mark.asyncio
    async def test_accepts_plain_dicts(self):
        recorder = RecordingTransport(body=OPENAI_BODY)
        driver = _driver("openai", recorder)

        await driver.send([{"role": "user", "content": "Hi"}])

        assert recorder.last_json["messages"] == [{"role": "user", "content": "Hi"}]


class TestClaudeSend:

    @pytest.mark.asyncio
    async def test_send(self):
        recorder = RecordingTransport(body=CLAUDE_BODY)
        driver = _driver("claude", recorder)

        response = await driver.send(_messages(), {"stop": "END"})

        assert response.content == "Hello there"
        assert response.role == "assistant"
        assert response.model == "claude-3-opus-20240229"

        request = recorder.requests[0]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "test-key"
        assert request.headers["anthropic-version"] == "2023-06-01"

        body = recorder.last_json
        assert body["messages"][0]["role"] == "user"
        assert body["stop_sequences"] == ["END"]


class TestGeminiSend:

    @pytest.mark.asyncio
    async def test_send(self):
        recorder = RecordingTransport(body=GEMINI_BODY)
        driver = _driver("gemini", recorder)

        response = await driver.send(_messages())

        assert response.content == "Hello there"
        assert response.role == "assistant"
        assert response.model == "gemini-pro"
        assert response.usage["promptTokenCount"] == 5

        request = recorder.requests[0]
        assert str(request.url) == (
            "https://generativelanguage.googleapis.com/v1/models/gemini-pro:generateContent"
        )
        assert request.headers["x-goog-api-key"] == "test-key"

        body = recorder.last_json
        assert body["contents"][0] == {"role": "model", "parts": [{"text": "Be brief."}]}
        assert body["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 1000}
        assert "model" not in body

    @pytest.mark.asyncio
    async def test_project_base_url(self):
        recorder = RecordingTransport(body=GEMINI_BODY)
        driver = _driver("gemini", recorder, project_id="proj-9", model="gemini-1.5-pro")

        await driver.send(_messages())

        assert str(recorder.requests[0].url) == (
            "https://generativelanguage.googleapis.com/v1/projects/proj-9/"
            "models/gemini-1.5-pro:generateContent"
        )

    @pytest.mark.asyncio
    async def test_base_url_override(self):
        recorder = RecordingTransport(body=GEMINI_BODY)
        driver = _driver("gemini", recorder, base_url="http://localhost:9000/v1beta")

        await driver.send(_messages())

        assert str(recorder.requests[0].url).startswith(
            "http://localhost:9000/v1beta/models/gemini-pro"
        )


# ===========================================================================
# Errors
# ===========================================================================

class TestSendErrors:

    @pytest.mark.asyncio
    async def test_http_status_error(self):
        recorder = RecordingTransport(status_code=429, text="rate limited")
        driver = _driver("openai", recorder)

        with pytest.raises(ProviderRequestError) as exc_info:
            await driver.send(_messages())

        err = exc_info.value
        assert err.provider == "openai"
        assert err.status_code == 429
        assert err.reason == "http_status"
        assert err.details["body"] == "rate limited"
        assert len(recorder.requests) == 1  # no retry

    @pytest.mark.asyncio
    async def test_transport_error_is_chained(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        driver = EngineDriver(
            "claude", ProviderSettings(), transport=httpx.MockTransport(handler)
        )

        with pytest.raises(ProviderRequestError) as exc_info:
            await driver.send(_messages())

        assert exc_info.value.reason == "transport"
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_unexpected_body(self):
        recorder = RecordingTransport(body={"choices": []})
        driver = _driver("openai", recorder)

        with pytest.raises(ProviderRequestError) as exc_info:
            await driver.send(_messages())

        assert exc_info.value.reason == "invalid_response"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        recorder = RecordingTransport(text="<html>oops</html>")
        driver = _driver("gemini", recorder)

        with pytest.raises(ProviderRequestError):
            await driver.send(_messages())


# ===========================================================================
# Config & client
# ===========================================================================

class TestDriverConfig:

    def test_get_config_is_read_only(self):
        driver = EngineDriver("claude", ProviderSettings(api_key="k"))
        config = driver.get_config()

        assert config["provider"] == "claude"
        assert config["model"] == "claude-3-opus-20240229"
        assert config["base_url"] == "https://api.anthropic.com/v1/"
        with pytest.raises(TypeError):
            config["model"] = "other"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            EngineDriver("mistral")

    @pytest.mark.asyncio
    async def test_set_client(self):
        recorder = RecordingTransport(body=OPENAI_BODY)
        driver = EngineDriver(Provider.OPENAI, ProviderSettings())
        driver.set_client(httpx.AsyncClient(transport=recorder.transport()))

        response = await driver.send(_messages())

        assert response.content == "Hello there"
        assert len(recorder.requests) == 1
        await driver.aclose()
