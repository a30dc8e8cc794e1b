"""
Engine Driver — one interface over every supported LLM provider.

Formats generic messages for the provider, merges call options over the
configured defaults, POSTs once and normalizes the answer into a
ChatResponse (``send``) or a lazy DeltaStream (``stream``). There is no
retry and no fallback: any transport, HTTP or response-shape failure
raises ProviderRequestError with the original error chained.

Usage:
    from llmbridge.llm.driver import EngineDriver

    driver = EngineDriver("claude", ProviderSettings(api_key="sk-ant-..."))
    response = await driver.send(
        [Message(role="user", content="Hello")],
        {"temperature": 0.2},
    )
    print(response.content)
"""

from __future__ import annotations

import logging
import time
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

import httpx

from llmbridge.config.schema import ProviderSettings
from llmbridge.exceptions import ProviderRequestError
from llmbridge.llm.formatters import format_messages
from llmbridge.llm.messages import ChatResponse, Message, Provider, RequestOptions
from llmbridge.llm.providers import ProviderSpec, get_provider_spec
from llmbridge.llm.streaming import DeltaStream

logger = logging.getLogger(__name__)

MessageInput = Iterable[Union[Message, Mapping[str, Any]]]

# Bodies parsed out of error responses are cut to this many characters
_ERROR_BODY_LIMIT = 500


class EngineDriver:
    """
    Chat driver for a single provider.

    Holds one pooled httpx.AsyncClient, built at construction and reused
    for every call. The driver never closes it on its own; call
    ``aclose()`` (or close the owning Engine) when done.
    """

    def __init__(
        self,
        provider: Union[Provider, str],
        settings: Optional[ProviderSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider = Provider(provider)
        self._spec: ProviderSpec = get_provider_spec(self.provider)
        self._settings = settings or ProviderSettings()
        self._client = client or httpx.AsyncClient(
            timeout=self._settings.timeout,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._settings.model or self._spec.default_model

    @property
    def base_url(self) -> str:
        return self._spec.base_url(self._settings)

    # --- Configuration ---

    def get_config(self) -> Mapping[str, Any]:
        """Read-only view of this driver's static configuration."""
        config = self._settings.model_dump()
        config.update(
            provider=self.provider.value,
            model=self.model,
            base_url=self.base_url,
        )
        return MappingProxyType(config)

    def set_client(self, client: httpx.AsyncClient) -> None:
        """Swap the HTTP client (custom transports, tests)."""
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Request building ---

    def _merge_options(self, options: Optional[RequestOptions]) -> dict[str, Any]:
        merged: dict[str, Any] = {
            "model": self.model,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        merged.update(options or {})
        if not merged.get("model"):
            merged["model"] = self.model
        return merged

    def _prepare(
        self,
        messages: MessageInput,
        options: Optional[RequestOptions],
        stream: bool,
    ) -> tuple[str, str, dict[str, Any], dict[str, str]]:
        merged = self._merge_options(options)
        model = str(merged["model"])
        body = self._spec.build_body(
            format_messages(messages, self.provider), merged, stream
        )
        path = self._spec.stream_path(model) if stream else self._spec.send_path(model)
        headers = self._spec.build_headers(self._settings)
        if stream:
            headers["Accept"] = "text/event-stream"
        return self.base_url + path, model, body, headers

    def _request_error(
        self,
        message: str,
        *,
        reason: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> ProviderRequestError:
        logger.error(
            "llm_request_failed",
            extra={
                "provider": self.provider.value,
                "reason": reason,
                "status_code": status_code,
            },
        )
        return ProviderRequestError(
            message,
            provider=self.provider.value,
            reason=reason,
            status_code=status_code,
            details={"body": body[:_ERROR_BODY_LIMIT]} if body else None,
        )

    def _check_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise self._request_error(
            f"{self.provider.value} returned HTTP {response.status_code}",
            reason="http_status",
            status_code=response.status_code,
            body=response.text,
        )

    # --- Main API ---

    async def send(
        self,
        messages: MessageInput,
        options: Optional[RequestOptions] = None,
    ) -> ChatResponse:
        """
        Send a conversation and wait for the complete answer.

        Args:
            messages: Message objects or dicts (generic or provider-native)
            options: Per-call options; override configured defaults

        Returns:
            ChatResponse with role, content, model and usage

        Raises:
            ProviderRequestError: transport failure, non-2xx status or a
                body that does not match the provider's response shape
        """
        url, model, body, headers = self._prepare(messages, options, stream=False)
        start = time.monotonic()

        try:
            response = await self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise self._request_error(
                f"{self.provider.value} request failed: {e}", reason="transport"
            ) from e

        self._check_status(response)

        try:
            result = self._spec.parse_response(response.json(), model)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise self._request_error(
                f"{self.provider.value} returned an unexpected response body",
                reason="invalid_response",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info(
            "llm_call_completed",
            extra={
                "provider": self.provider.value,
                "model": result.model,
                "latency_ms": round((time.monotonic() - start) * 1000, 1),
            },
        )
        return result

    def stream(
        self,
        messages: MessageInput,
        options: Optional[RequestOptions] = None,
    ) -> DeltaStream:
        """
        Build a lazy stream of content deltas.

        Nothing is sent until the first pull; connection failures and
        non-2xx statuses raise ProviderRequestError from that pull.
        """
        url, model, body, headers = self._prepare(messages, options, stream=True)

        async def open_response() -> httpx.Response:
            request = self._client.build_request("POST", url, json=body, headers=headers)
            try:
                response = await self._client.send(request, stream=True)
            except httpx.HTTPError as e:
                raise self._request_error(
                    f"{self.provider.value} stream failed to open: {e}",
                    reason="transport",
                ) from e

            if not response.is_success:
                try:
                    await response.aread()
                except httpx.HTTPError as e:
                    raise self._request_error(
                        f"{self.provider.value} returned HTTP {response.status_code} "
                        f"and the error body could not be read: {e}",
                        reason="transport",
                        status_code=response.status_code,
                    ) from e
                finally:
                    await response.aclose()
                self._check_status(response)
            return response

        return DeltaStream(self._spec, open_response, model=model)

    def __repr__(self) -> str:
        return f"EngineDriver(provider={self.provider.value!r}, model={self.model!r})"
