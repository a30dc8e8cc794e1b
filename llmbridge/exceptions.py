"""
Custom exception hierarchy for llmbridge.

Structured error handling with clear categories:
- Configuration errors (caught at startup)
- Provider request errors (transport, HTTP status, response shape)
- Scope errors (memory used before a conversation owner was set)
- Resolution errors (unknown engine / memory driver names)
- Malformed stream chunks (internal, always recovered locally)

Usage:
    from llmbridge.exceptions import ProviderRequestError

    try:
        response = await driver.send(messages)
    except ProviderRequestError as e:
        logger.error("send_failed", extra={"provider": e.provider})
"""

from __future__ import annotations

from typing import Optional


class LLMBridgeError(Exception):
    """
    Base exception for all llmbridge errors.

    All custom exceptions inherit from this, so you can catch
    `LLMBridgeError` to handle any library-specific error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Configuration Errors ──────────────────────────────────────────


class ConfigurationError(LLMBridgeError):
    """
    Raised when the settings file or environment overrides are invalid.

    Examples:
    - YAML file that is not a mapping
    - Non-numeric temperature in an env override
    - Unknown memory backend
    """

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.config_path = config_path


# ── Provider Errors ───────────────────────────────────────────────


class ProviderRequestError(LLMBridgeError):
    """
    Raised when a call to an LLM provider fails.

    Covers transport failures (DNS, TLS, connection reset), non-2xx
    responses, and response bodies that do not match the provider's
    documented shape. The original transport error is chained as
    ``__cause__``. Never retried by the library.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        reason: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.provider = provider
        self.reason = reason
        self.status_code = status_code


class MalformedStreamChunk(LLMBridgeError):
    """
    Raised by the stream line parser for a line that is not valid JSON.

    Internal only: the stream loop catches it, counts the skip and moves
    on to the next line. It never reaches callers.
    """

    def __init__(
        self,
        message: str,
        *,
        line: str = "",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.line = line


# ── Memory Errors ─────────────────────────────────────────────────


class ScopeNotSetError(LLMBridgeError):
    """
    Raised when a memory operation runs before set_parent().
    """

    def __init__(
        self,
        message: str = "Parent scope must be set before using memory.",
        *,
        driver: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.driver = driver


# ── Resolution Errors ─────────────────────────────────────────────


class UnsupportedDriverError(LLMBridgeError):
    """
    Raised when an engine or memory driver name is not supported.

    Nothing is cached for the rejected name, so a later call with the
    same name fails the same way.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str,
        kind: str = "engine",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.name = name
        self.kind = kind
