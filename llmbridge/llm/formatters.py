"""
Content Formatter — generic messages/options to provider wire shapes.

Pure, stateless, table-driven functions. Both the engine driver (request
bodies) and the memory driver (history replay) go through here, so a
message stored once reads back the same way it would be sent.

Role vocabulary on the wire:

    provider   system   user   assistant
    openai     system   user   assistant
    claude     user     user   assistant
    gemini     model    user   model

Non-text messages are encoded per provider (image_url/audio parts for
OpenAI, <image>/<audio> tags for Claude, inline_data parts for Gemini).
A ``metadata["description"]`` always replaces the media payload.

Usage:
    from llmbridge.llm.formatters import format_messages, format_options

    body = {
        "messages": format_messages(history, Provider.OPENAI),
        **format_options({"temperature": "0.2", "foo": 1}, Provider.OPENAI),
    }
    # → {"messages": [...], "temperature": 0.2}
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Union

from llmbridge.llm.messages import (
    Message,
    MessageType,
    Provider,
    RequestOptions,
    Role,
    coerce_option,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Role tables
# ---------------------------------------------------------------------------

OUTGOING_ROLES: dict[Provider, dict[Role, str]] = {
    Provider.OPENAI: {
        Role.SYSTEM: "system",
        Role.USER: "user",
        Role.ASSISTANT: "assistant",
    },
    Provider.CLAUDE: {
        Role.SYSTEM: "user",
        Role.USER: "user",
        Role.ASSISTANT: "assistant",
    },
    Provider.GEMINI: {
        Role.SYSTEM: "model",
        Role.USER: "user",
        Role.ASSISTANT: "model",
    },
}

# Roles written to the record store (Gemini persists assistant as "model").
STORAGE_ROLES: dict[Provider, dict[Role, str]] = {
    Provider.OPENAI: {r: r.value for r in Role},
    Provider.CLAUDE: {r: r.value for r in Role},
    Provider.GEMINI: {
        Role.SYSTEM: "system",
        Role.USER: "user",
        Role.ASSISTANT: "model",
    },
}

INCOMING_ROLES: dict[str, Role] = {
    "system": Role.SYSTEM,
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "model": Role.ASSISTANT,
}


def outgoing_role(role: Union[Role, str], provider: Provider) -> str:
    return OUTGOING_ROLES[Provider(provider)][Role(role)]


def storage_role(role: Union[Role, str], provider: Provider) -> str:
    return STORAGE_ROLES[Provider(provider)][normalize_role(role)]


def normalize_role(role: Union[Role, str]) -> Role:
    """Map any wire or generic role name back to a generic Role."""
    if isinstance(role, Role):
        return role
    try:
        return INCOMING_ROLES[str(role).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown message role: {role!r}") from None


# ---------------------------------------------------------------------------
# Option tables
# ---------------------------------------------------------------------------

# generic key -> wire key
OPTION_KEYS: dict[Provider, dict[str, str]] = {
    Provider.OPENAI: {
        key: key
        for key in (
            "model",
            "temperature",
            "top_p",
            "n",
            "stop",
            "max_tokens",
            "presence_penalty",
            "frequency_penalty",
            "logit_bias",
            "user",
        )
    },
    Provider.CLAUDE: {
        "model": "model",
        "temperature": "temperature",
        "top_p": "top_p",
        "top_k": "top_k",
        "max_tokens": "max_tokens",
        "stop": "stop_sequences",
    },
    Provider.GEMINI: {
        "temperature": "temperature",
        "top_p": "topP",
        "top_k": "topK",
        "max_tokens": "maxOutputTokens",
        "n": "candidateCount",
        "stop": "stopSequences",
    },
}

_LIST_OPTIONS = frozenset({"stop_sequences", "stopSequences"})


def format_options(options: RequestOptions, provider: Provider) -> dict[str, Any]:
    """
    Keep whitelisted options, rename them, coerce numbers.

    Unknown keys and ``None`` values are dropped silently. Gemini options
    are nested under ``generationConfig``; its model travels in the URL.
    """
    provider = Provider(provider)
    table = OPTION_KEYS[provider]
    formatted: dict[str, Any] = {}
    dropped = []

    for key, value in (options or {}).items():
        wire_key = table.get(key)
        if wire_key is None:
            dropped.append(key)
            continue
        value = coerce_option(key, value)
        if value is None:
            continue
        if wire_key in _LIST_OPTIONS and isinstance(value, str):
            value = [value]
        formatted[wire_key] = value

    if dropped:
        logger.debug(
            "options_dropped",
            extra={"provider": provider.value, "keys": sorted(dropped)},
        )

    if provider is Provider.GEMINI:
        return {"generationConfig": formatted} if formatted else {}
    return formatted


# ---------------------------------------------------------------------------
# OpenAI encoding
# ---------------------------------------------------------------------------

def _openai_parts(parts: Iterable[Any]) -> list[dict[str, Any]]:
    return [
        {"type": "text", "text": part} if isinstance(part, str) else dict(part)
        for part in parts
    ]


def _openai_media(message: Message) -> list[dict[str, Any]]:
    meta = message.metadata

    if message.type is MessageType.IMAGE:
        return [{
            "type": "image_url",
            "image_url": {
                "url": message.content,
                "detail": meta.get("detail", "auto"),
            },
        }]

    if message.type is MessageType.AUDIO:
        return [{
            "type": "audio",
            "audio": {
                "url": message.content,
                "format": meta.get("format"),
            },
        }]

    # Video: narration text, sampled frames, optional soundtrack
    video = meta.get("video") or {}
    parts: list[dict[str, Any]] = [{"type": "text", "text": message.content}]
    for frame in video.get("frames", []):
        parts.append({
            "type": "image_url",
            "image_url": {"url": frame, "detail": "low"},
        })
    audio = video.get("audio")
    if audio:
        parts.append({
            "type": "input_audio",
            "input_audio": {"data": audio["data"], "format": audio["format"]},
        })
    return parts


def _openai_message(message: Message) -> dict[str, Any]:
    if isinstance(message.content, list):
        content: Any = _openai_parts(message.content)
    elif message.is_text:
        content = message.content
    elif "description" in message.metadata:
        content = message.metadata["description"]
    else:
        content = _openai_media(message)

    return {
        "role": outgoing_role(message.role, Provider.OPENAI),
        "content": content,
    }


# ---------------------------------------------------------------------------
# Claude encoding
# ---------------------------------------------------------------------------

def _joined_text(parts: Iterable[Any]) -> str:
    texts = []
    for part in parts:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, Mapping) and "text" in part:
            texts.append(str(part["text"]))
    return "\n".join(texts)


def _claude_media(message: Message) -> str:
    meta = message.metadata
    text = ""

    if message.type is MessageType.IMAGE:
        text += f"<image>{message.content}</image>\n"
        if "caption" in meta:
            text += f"{meta['caption']}\n"

    elif message.type is MessageType.AUDIO:
        if "format" in meta:
            text += f'<audio format="{meta["format"]}">{message.content}</audio>\n'
        if "transcript" in meta:
            text += f"{meta['transcript']}\n"

    else:
        video = meta.get("video") or {}
        for frame in video.get("frames", []):
            text += f"<image>{frame}</image>\n"
        text += f"{meta.get('transcript', message.content)}\n"

    return text.strip()


def _claude_message(message: Message) -> dict[str, Any]:
    if isinstance(message.content, list):
        content = _joined_text(message.content)
    elif message.is_text:
        content = message.content
    elif "description" in message.metadata:
        content = message.metadata["description"]
    else:
        content = _claude_media(message)

    return {
        "role": outgoing_role(message.role, Provider.CLAUDE),
        "content": content,
    }


# ---------------------------------------------------------------------------
# Gemini encoding
# ---------------------------------------------------------------------------

_GEMINI_DEFAULT_MIME = {
    MessageType.IMAGE: "image/jpeg",
    MessageType.AUDIO: "audio/mpeg",
    MessageType.VIDEO: "video/mp4",
}


def _gemini_parts(parts: Iterable[Any]) -> list[dict[str, Any]]:
    out = []
    for part in parts:
        if isinstance(part, str):
            out.append({"text": part})
        elif isinstance(part, Mapping) and "text" in part:
            out.append({"text": part["text"]})
        else:
            out.append(dict(part))
    return out


def _gemini_media(message: Message) -> list[dict[str, Any]]:
    meta = message.metadata

    # No native audio input; a transcript stands in when available
    if message.type is MessageType.AUDIO and "transcript" in meta:
        return [{"text": meta["transcript"]}]

    return [{
        "inline_data": {
            "mime_type": meta.get("mime_type", _GEMINI_DEFAULT_MIME[message.type]),
            "data": message.content,
        },
    }]


def _gemini_message(message: Message) -> dict[str, Any]:
    if isinstance(message.content, list):
        parts = _gemini_parts(message.content)
    elif message.is_text:
        parts = [{"text": message.content}]
    elif "description" in message.metadata:
        parts = [{"text": message.metadata["description"]}]
    else:
        parts = _gemini_media(message)

    return {
        "role": outgoing_role(message.role, Provider.GEMINI),
        "parts": parts,
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

MESSAGE_ENCODERS: dict[Provider, Callable[[Message], dict[str, Any]]] = {
    Provider.OPENAI: _openai_message,
    Provider.CLAUDE: _claude_message,
    Provider.GEMINI: _gemini_message,
}


def format_message(message: Message, provider: Provider) -> dict[str, Any]:
    """Encode one generic message into the provider's wire shape."""
    return MESSAGE_ENCODERS[Provider(provider)](message)


def format_messages(
    messages: Iterable[Union[Message, Mapping[str, Any]]],
    provider: Provider,
) -> list[dict[str, Any]]:
    """Encode a conversation; dicts are parsed as generic or native messages first."""
    provider = Provider(provider)
    return [
        format_message(coerce_message(m, provider), provider) for m in messages
    ]


def coerce_message(
    value: Union[Message, Mapping[str, Any]],
    provider: Provider,
) -> Message:
    if isinstance(value, Message):
        return value
    return parse_incoming_message(value, provider)


def _type_from_mime(mime_type: str) -> MessageType:
    kind = mime_type.split("/", 1)[0]
    try:
        return MessageType(kind)
    except ValueError:
        return MessageType.IMAGE


def _parse_gemini_parts(role: Role, parts: list[Any]) -> Message:
    texts = [p["text"] for p in parts if isinstance(p, Mapping) and "text" in p]
    if len(texts) == len(parts):
        return Message(role=role, content="".join(texts))

    if len(parts) == 1 and "inline_data" in parts[0]:
        inline = parts[0]["inline_data"]
        mime_type = inline.get("mime_type", "image/jpeg")
        return Message(
            role=role,
            content=inline.get("data", ""),
            type=_type_from_mime(mime_type),
            metadata={"mime_type": mime_type},
        )

    return Message(role=role, content=list(parts))


def _parse_content_parts(role: Role, parts: list[Any]) -> Message:
    if all(isinstance(p, str) or p.get("type") == "text" for p in parts):
        return Message(role=role, content=_joined_text(parts))

    if len(parts) == 1 and parts[0].get("type") == "image_url":
        image = parts[0]["image_url"]
        metadata = {"detail": image["detail"]} if "detail" in image else {}
        return Message(
            role=role, content=image["url"], type=MessageType.IMAGE, metadata=metadata
        )

    if len(parts) == 1 and parts[0].get("type") == "audio":
        audio = parts[0]["audio"]
        metadata = {"format": audio["format"]} if audio.get("format") else {}
        return Message(
            role=role, content=audio["url"], type=MessageType.AUDIO, metadata=metadata
        )

    return Message(role=role, content=list(parts))


def parse_incoming_message(
    record: Mapping[str, Any],
    provider: Provider,
) -> Message:
    """
    Inverse of format_message: map a provider-native (or generic) record
    back to a Message.

    Accepts ``{role, content}`` (OpenAI/Claude), ``{role, parts}``
    (Gemini) and persisted rows carrying ``type``/``metadata``. Text
    content always survives the round trip.
    """
    Provider(provider)
    role = normalize_role(record.get("role", Role.USER))

    if "parts" in record:
        return _parse_gemini_parts(role, list(record["parts"]))

    content = record.get("content", "")
    if "type" in record:
        return Message(
            role=role,
            content=content,
            type=record.get("type") or MessageType.TEXT,
            metadata=record.get("metadata") or {},
        )

    if isinstance(content, list):
        return _parse_content_parts(role, content)

    return Message(role=role, content=content)
