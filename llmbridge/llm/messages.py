"""
Message & Options Model — provider-agnostic chat data shapes.

Defines the vocabulary shared by every other module: which providers
exist, which roles and content types a message can carry, and what a
response or a streamed delta looks like.

Usage:
    from llmbridge.llm.messages import Message, Provider, Role

    msg = Message(role=Role.USER, content="Hello")
    img = Message(
        role="user",
        content="https://example.com/cat.png",
        type="image",
        metadata={"detail": "low"},
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Provider(str, Enum):
    """Closed set of supported LLM backends."""

    OPENAI = "openai"    # OpenAI-like chat completions
    CLAUDE = "claude"    # Anthropic-like messages API
    GEMINI = "gemini"    # Gemini-like generateContent API


class Role(str, Enum):
    """Generic chat roles; providers rename them on the wire."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    """Content kind carried by a message."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


# Structured content: a list of provider-style parts or plain strings.
Content = Union[str, list]


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Message:
    """A single chat message, immutable once constructed."""

    role: Role
    content: Content = ""
    type: MessageType = MessageType.TEXT
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "type", MessageType(self.type or MessageType.TEXT))
        object.__setattr__(
            self, "metadata", MappingProxyType(dict(self.metadata or {}))
        )
        if isinstance(self.content, list):
            object.__setattr__(self, "content", list(self.content))

    @property
    def is_text(self) -> bool:
        return self.type is MessageType.TEXT

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        """Build a message from a generic ``{role, content, type, metadata}`` dict."""
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            type=data.get("type") or MessageType.TEXT,
            metadata=data.get("metadata") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "type": self.type.value,
            "metadata": dict(self.metadata),
        }


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------

# Options map; each provider keeps only its whitelisted keys.
RequestOptions = Mapping[str, Any]

FLOAT_OPTIONS = frozenset({
    "temperature", "top_p", "presence_penalty", "frequency_penalty",
})
INT_OPTIONS = frozenset({"max_tokens", "n", "top_k"})


def coerce_option(key: str, value: Any) -> Any:
    """Coerce a numeric option to its declared type; other values pass through."""
    if value is None:
        return None
    if key in FLOAT_OPTIONS:
        return float(value)
    if key in INT_OPTIONS:
        return int(value)
    return value


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContentDelta:
    """One incremental text fragment from a streamed response."""

    content: str
    model: Optional[str] = None


@dataclass
class ChatResponse:
    """Unified non-streamed response from any provider."""

    role: str
    content: str
    model: Optional[str]
    provider: str
    usage: Optional[dict[str, Any]] = None
    raw_response: Any = None

    def to_message(self) -> Message:
        return Message(role=Role.ASSISTANT, content=self.content)
