"""
Tests for the content formatter.

Tests cover:
1. Role mapping per provider (system messages are never dropped)
2. Option whitelists, renames and numeric coercion
3. Media encodings and the description override
4. Parsing native and persisted shapes back to Message
"""

from __future__ import annotations

import pytest

from llmbridge.llm.formatters import (
    coerce_message,
    format_message,
    format_messages,
    format_options,
    normalize_role,
    parse_incoming_message,
    storage_role,
)
from llmbridge.llm.messages import Message, MessageType, Provider, Role


def _text(role, content="hello"):
    return Message(role=role, content=content)


# ===========================================================================
# Roles
# ===========================================================================

class TestRoleMapping:

    def test_openai_keeps_system(self):
        assert format_message(_text(Role.SYSTEM), Provider.OPENAI) == {
            "role": "system",
            "content": "hello",
        }

    def test_claude_maps_system_to_user(self):
        assert format_message(_text(Role.SYSTEM), Provider.CLAUDE)["role"] == "user"

    def test_gemini_maps_system_and_assistant_to_model(self):
        assert format_message(_text(Role.SYSTEM), Provider.GEMINI)["role"] == "model"
        assert format_message(_text(Role.ASSISTANT), Provider.GEMINI)["role"] == "model"

    @pytest.mark.parametrize("provider", list(Provider))
    def test_system_message_never_dropped(self, provider):
        messages = [_text(Role.SYSTEM, "be brief"), _text(Role.USER, "hi")]
        assert len(format_messages(messages, provider)) == 2

    def test_gemini_text_uses_parts_only(self):
        result = format_message(_text(Role.USER, "hi"), Provider.GEMINI)
        assert result == {"role": "user", "parts": [{"text": "hi"}]}
        assert "content" not in result

    def test_storage_role_gemini_assistant(self):
        assert storage_role(Role.ASSISTANT, Provider.GEMINI) == "model"
        assert storage_role("assistant", Provider.OPENAI) == "assistant"

    def test_normalize_role(self):
        assert normalize_role("model") is Role.ASSISTANT
        assert normalize_role(" User ") is Role.USER
        with pytest.raises(ValueError):
            normalize_role("tool")


# ===========================================================================
# Options
# ===========================================================================

class TestFormatOptions:

    def test_openai_whitelist_and_coercion(self):
        result = format_options(
            {"temperature": "0.2", "max_tokens": "50", "foo": 1, "model": "gpt-4"},
            Provider.OPENAI,
        )
        assert result == {"temperature": 0.2, "max_tokens": 50, "model": "gpt-4"}
        assert isinstance(result["temperature"], float)
        assert isinstance(result["max_tokens"], int)

    def test_claude_renames_stop(self):
        result = format_options({"stop": "END", "top_k": "5", "n": 2}, Provider.CLAUDE)
        assert result == {"stop_sequences": ["END"], "top_k": 5}

    def test_gemini_nests_generation_config(self):
        result = format_options(
            {"model": "gemini-pro", "temperature": 1, "max_tokens": 10, "top_p": 0.5},
            Provider.GEMINI,
        )
        assert result == {
            "generationConfig": {
                "temperature": 1.0,
                "maxOutputTokens": 10,
                "topP": 0.5,
            }
        }

    def test_gemini_empty_options(self):
        assert format_options({"model": "gemini-pro"}, Provider.GEMINI) == {}

    def test_none_values_dropped(self):
        assert format_options({"temperature": None}, Provider.OPENAI) == {}


# ===========================================================================
# Media
# ===========================================================================

class TestMediaEncoding:

    def test_openai_image(self):
        msg = Message(role="user", content="https://x/cat.png", type="image")
        assert format_message(msg, Provider.OPENAI)["content"] == [{
            "type": "image_url",
            "image_url": {"url": "https://x/cat.png", "detail": "auto"},
        }]

    def test_openai_image_detail_from_metadata(self):
        msg = Message(role="user", content="u", type="image", metadata={"detail": "low"})
        part = format_message(msg, Provider.OPENAI)["content"][0]
        assert part["image_url"]["detail"] == "low"

    def test_openai_audio(self):
        msg = Message(role="user", content="a.mp3", type="audio", metadata={"format": "mp3"})
        assert format_message(msg, Provider.OPENAI)["content"] == [
            {"type": "audio", "audio": {"url": "a.mp3", "format": "mp3"}}
        ]

    def test_openai_video_frames_and_audio(self):
        msg = Message(
            role="user",
            content="what happens?",
            type="video",
            metadata={"video": {
                "frames": ["f1", "f2"],
                "audio": {"data": "b64", "format": "wav"},
            }},
        )
        parts = format_message(msg, Provider.OPENAI)["content"]
        assert parts[0] == {"type": "text", "text": "what happens?"}
        assert [p["image_url"]["detail"] for p in parts[1:3]] == ["low", "low"]
        assert parts[3] == {
            "type": "input_audio",
            "input_audio": {"data": "b64", "format": "wav"},
        }

    def test_claude_image_with_caption(self):
        msg = Message(role="user", content="U", type="image", metadata={"caption": "a cat"})
        assert format_message(msg, Provider.CLAUDE)["content"] == "<image>U</image>\na cat"

    def test_claude_audio_with_format_and_transcript(self):
        msg = Message(
            role="user", content="A", type="audio",
            metadata={"format": "mp3", "transcript": "hi"},
        )
        assert format_message(msg, Provider.CLAUDE)["content"] == (
            '<audio format="mp3">A</audio>\nhi'
        )

    def test_claude_audio_without_format_has_no_tag(self):
        msg = Message(role="user", content="A", type="audio", metadata={"transcript": "hi"})
        assert format_message(msg, Provider.CLAUDE)["content"] == "hi"

    def test_gemini_image_default_mime(self):
        msg = Message(role="user", content="BASE64", type="image")
        assert format_message(msg, Provider.GEMINI)["parts"] == [
            {"inline_data": {"mime_type": "image/jpeg", "data": "BASE64"}}
        ]

    def test_gemini_audio_prefers_transcript(self):
        msg = Message(role="user", content="B", type="audio", metadata={"transcript": "t"})
        assert format_message(msg, Provider.GEMINI)["parts"] == [{"text": "t"}]

    def test_gemini_video_default_mime(self):
        msg = Message(role="user", content="V", type="video")
        part = format_message(msg, Provider.GEMINI)["parts"][0]
        assert part["inline_data"]["mime_type"] == "video/mp4"

    @pytest.mark.parametrize("provider", list(Provider))
    def test_description_overrides_media(self, provider):
        msg = Message(
            role="user", content="U", type="image",
            metadata={"description": "a photo of a cat"},
        )
        result = format_message(msg, provider)
        if provider is Provider.GEMINI:
            assert result["parts"] == [{"text": "a photo of a cat"}]
        else:
            assert result["content"] == "a photo of a cat"

    def test_structured_parts(self):
        msg = Message(role="user", content=["look", {"type": "text", "text": "here"}])
        assert format_message(msg, Provider.OPENAI)["content"] == [
            {"type": "text", "text": "look"},
            {"type": "text", "text": "here"},
        ]
        assert format_message(msg, Provider.CLAUDE)["content"] == "look\nhere"
        assert format_message(msg, Provider.GEMINI)["parts"] == [
            {"text": "look"}, {"text": "here"},
        ]


# ===========================================================================
# Parsing
# ===========================================================================

class TestParseIncoming:

    @pytest.mark.parametrize("provider", list(Provider))
    @pytest.mark.parametrize("role", [Role.USER, Role.ASSISTANT])
    def test_text_content_survives(self, provider, role):
        original = Message(role=role, content="round trip")
        parsed = parse_incoming_message(format_message(original, provider), provider)
        assert parsed.content == "round trip"
        assert parsed.role is role

    def test_gemini_model_role(self):
        parsed = parse_incoming_message(
            {"role": "model", "parts": [{"text": "a"}, {"text": "b"}]}, Provider.GEMINI
        )
        assert parsed.role is Role.ASSISTANT
        assert parsed.content == "ab"

    def test_gemini_inline_data(self):
        parsed = parse_incoming_message(
            {"role": "user", "parts": [{"inline_data": {"mime_type": "audio/wav", "data": "X"}}]},
            Provider.GEMINI,
        )
        assert parsed.type is MessageType.AUDIO
        assert parsed.metadata["mime_type"] == "audio/wav"

    def test_openai_image_part(self):
        parsed = parse_incoming_message(
            {"role": "user", "content": [
                {"type": "image_url", "image_url": {"url": "u", "detail": "high"}},
            ]},
            Provider.OPENAI,
        )
        assert parsed.type is MessageType.IMAGE
        assert parsed.content == "u"
        assert parsed.metadata["detail"] == "high"

    def test_persisted_row(self):
        parsed = parse_incoming_message(
            {"role": "user", "content": "u", "type": "image", "metadata": {"caption": "c"}},
            Provider.CLAUDE,
        )
        assert parsed.type is MessageType.IMAGE
        assert parsed.metadata["caption"] == "c"

    def test_coerce_message_passthrough(self):
        msg = _text(Role.USER)
        assert coerce_message(msg, Provider.OPENAI) is msg
        assert coerce_message({"role": "user", "content": "x"}, Provider.OPENAI).content == "x"
