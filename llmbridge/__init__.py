"""
llmbridge — one chat interface over OpenAI-like, Anthropic-like and
Gemini-like LLM providers, with streaming and provider-shaped memory.
"""

from llmbridge.config.loader import load_settings
from llmbridge.config.schema import EngineSettings, MemorySettings, ProviderSettings
from llmbridge.engine import Engine
from llmbridge.exceptions import (
    ConfigurationError,
    LLMBridgeError,
    ProviderRequestError,
    ScopeNotSetError,
    UnsupportedDriverError,
)
from llmbridge.llm.driver import EngineDriver
from llmbridge.llm.json_repair import parse_json
from llmbridge.llm.messages import (
    ChatResponse,
    ContentDelta,
    Message,
    MessageType,
    Provider,
    Role,
)
from llmbridge.llm.streaming import DeltaStream, collect_stream
from llmbridge.memory.driver import MemoryDriver
from llmbridge.memory.manager import MemoryManager
from llmbridge.memory.store import (
    InMemoryRecordStore,
    PersistedMessageRecord,
    SupabaseRecordStore,
)
from llmbridge.sse import SSEWriter

__version__ = "0.1.0"

__all__ = [
    "ChatResponse",
    "ConfigurationError",
    "ContentDelta",
    "DeltaStream",
    "Engine",
    "EngineDriver",
    "EngineSettings",
    "InMemoryRecordStore",
    "LLMBridgeError",
    "MemoryDriver",
    "MemoryManager",
    "MemorySettings",
    "Message",
    "MessageType",
    "PersistedMessageRecord",
    "Provider",
    "ProviderRequestError",
    "ProviderSettings",
    "Role",
    "SSEWriter",
    "ScopeNotSetError",
    "SupabaseRecordStore",
    "UnsupportedDriverError",
    "collect_stream",
    "load_settings",
    "parse_json",
]
