"""
Provider table — per-backend wire details behind one EngineDriver.

Each supported provider is a ProviderSpec row: where to POST, which auth
headers to send, how to build the body, how to read a response and how
to pull a text delta out of one decoded stream chunk. Adding a backend
means adding a row, not a subclass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from llmbridge.llm.formatters import format_options
from llmbridge.llm.messages import ChatResponse, Provider, RequestOptions

ANTHROPIC_VERSION = "2023-06-01"


# ---------------------------------------------------------------------------
# Provider Spec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderSpec:
    """Static wire description of one provider."""

    provider: Provider
    default_base_url: str
    default_model: str
    build_headers: Callable[[Any], dict[str, str]]
    send_path: Callable[[str], str]
    stream_path: Callable[[str], str]
    build_body: Callable[[list[dict[str, Any]], RequestOptions, bool], dict[str, Any]]
    parse_response: Callable[[dict[str, Any], str], ChatResponse]
    extract_text: Callable[[dict[str, Any]], Optional[str]]
    extract_model: Callable[[dict[str, Any]], Optional[str]]

    def base_url(self, settings: Any) -> str:
        """Configured base URL, always ending with a slash."""
        url = getattr(settings, "base_url", None) or self._project_base_url(settings)
        return url if url.endswith("/") else url + "/"

    def _project_base_url(self, settings: Any) -> str:
        project_id = getattr(settings, "project_id", None)
        if self.provider is Provider.GEMINI and project_id:
            return f"{self.default_base_url}projects/{project_id}/"
        return self.default_base_url


# ---------------------------------------------------------------------------
# Chunk access
# ---------------------------------------------------------------------------
#
# Stream chunks are untrusted JSON. A chunk whose shape does not match
# yields None, never an exception.

def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _field(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key)
    return None


def _text(value: Any, key: str) -> Optional[str]:
    text = _field(value, key)
    return text if isinstance(text, str) else None


# ---------------------------------------------------------------------------
# OpenAI-like
# ---------------------------------------------------------------------------

def _openai_headers(settings: Any) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {settings.api_key or ''}",
        "Content-Type": "application/json",
    }
    if getattr(settings, "organization_id", None):
        headers["OpenAI-Organization"] = settings.organization_id
    return headers


def _openai_body(
    messages: list[dict[str, Any]], options: RequestOptions, stream: bool
) -> dict[str, Any]:
    body = {"messages": messages, **format_options(options, Provider.OPENAI)}
    if stream:
        body["stream"] = True
    return body


def _openai_response(data: dict[str, Any], model: str) -> ChatResponse:
    message = data["choices"][0]["message"]
    return ChatResponse(
        role=message.get("role", "assistant"),
        content=message.get("content") or "",
        model=data.get("model", model),
        provider=Provider.OPENAI.value,
        usage=data.get("usage"),
        raw_response=data,
    )


def _openai_text(chunk: dict[str, Any]) -> Optional[str]:
    choice = _first(chunk.get("choices"))
    return _text(_field(choice, "delta"), "content")


# ---------------------------------------------------------------------------
# Anthropic-like
# ---------------------------------------------------------------------------

def _claude_headers(settings: Any) -> dict[str, str]:
    return {
        "x-api-key": settings.api_key or "",
        "anthropic-version": getattr(settings, "api_version", None) or ANTHROPIC_VERSION,
        "Content-Type": "application/json",
    }


def _claude_body(
    messages: list[dict[str, Any]], options: RequestOptions, stream: bool
) -> dict[str, Any]:
    body = {"messages": messages, **format_options(options, Provider.CLAUDE)}
    if stream:
        body["stream"] = True
    return body


def _claude_response(data: dict[str, Any], model: str) -> ChatResponse:
    return ChatResponse(
        role="assistant",
        content=data["content"][0]["text"],
        model=data.get("model", model),
        provider=Provider.CLAUDE.value,
        usage=data.get("usage"),
        raw_response=data,
    )


def _claude_text(chunk: dict[str, Any]) -> Optional[str]:
    if chunk.get("type") != "content_block_delta":
        return None
    return _text(chunk.get("delta"), "text")


def _claude_model(chunk: dict[str, Any]) -> Optional[str]:
    if chunk.get("type") == "message_start":
        return _text(chunk.get("message"), "model")
    return None


# ---------------------------------------------------------------------------
# Gemini-like
# ---------------------------------------------------------------------------

def _gemini_headers(settings: Any) -> dict[str, str]:
    return {
        "x-goog-api-key": settings.api_key or "",
        "Content-Type": "application/json",
    }


def _gemini_body(
    messages: list[dict[str, Any]], options: RequestOptions, stream: bool
) -> dict[str, Any]:
    # Streaming is selected by the URL, not the body
    return {"contents": messages, **format_options(options, Provider.GEMINI)}


def _gemini_response(data: dict[str, Any], model: str) -> ChatResponse:
    return ChatResponse(
        role="assistant",
        content=data["candidates"][0]["content"]["parts"][0]["text"],
        model=model,
        provider=Provider.GEMINI.value,
        usage=data.get("usageMetadata"),
        raw_response=data,
    )


def _gemini_text(chunk: dict[str, Any]) -> Optional[str]:
    content = _field(_first(chunk.get("candidates")), "content")
    return _text(_first(_field(content, "parts")), "text")


def _top_level_model(chunk: dict[str, Any]) -> Optional[str]:
    return _text(chunk, "model") or _text(chunk, "modelVersion")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROVIDER_SPECS: dict[Provider, ProviderSpec] = {
    Provider.OPENAI: ProviderSpec(
        provider=Provider.OPENAI,
        default_base_url="https://api.openai.com/v1/",
        default_model="gpt-4",
        build_headers=_openai_headers,
        send_path=lambda model: "chat/completions",
        stream_path=lambda model: "chat/completions",
        build_body=_openai_body,
        parse_response=_openai_response,
        extract_text=_openai_text,
        extract_model=_top_level_model,
    ),
    Provider.CLAUDE: ProviderSpec(
        provider=Provider.CLAUDE,
        default_base_url="https://api.anthropic.com/v1/",
        default_model="claude-3-opus-20240229",
        build_headers=_claude_headers,
        send_path=lambda model: "messages",
        stream_path=lambda model: "messages",
        build_body=_claude_body,
        parse_response=_claude_response,
        extract_text=_claude_text,
        extract_model=_claude_model,
    ),
    Provider.GEMINI: ProviderSpec(
        provider=Provider.GEMINI,
        default_base_url="https://generativelanguage.googleapis.com/v1/",
        default_model="gemini-pro",
        build_headers=_gemini_headers,
        send_path=lambda model: f"models/{model}:generateContent",
        stream_path=lambda model: f"models/{model}:streamGenerateContent?alt=sse",
        build_body=_gemini_body,
        parse_response=_gemini_response,
        extract_text=_gemini_text,
        extract_model=_top_level_model,
    ),
}


def get_provider_spec(provider: Provider | str) -> ProviderSpec:
    """Look up a provider row; raises ValueError for unknown names."""
    return PROVIDER_SPECS[Provider(provider)]
