"""
Ollama client adapter - Infrastructure implementation of the ChatBackend protocol.
Streams ``POST /api/chat`` over httpx and hands the body to the NDJSON decoder.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

import httpx

from ...domain.errors import BackendError
from ...domain.interfaces.tool_plugin import ToolRegistry
from ...domain.models.conversation import Message, to_api_format
from ...domain.services.stream_processor import ChatEventStream
from ..config.settings import AppSettings, get_settings
from .ndjson import open_ndjson
from .retry import RetryConfig, RetryPolicy

if TYPE_CHECKING:
    from ...runtime.scope import Scope


class OllamaChatClient:
    """Streaming chat client for a local Ollama server."""

    def __init__(
        self,
        model: Optional[str] = None,
        host: Optional[str] = None,
        *,
        settings: Optional[AppSettings] = None,
        retry: Optional[RetryPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        settings = settings or get_settings()
        self._logger = logger or logging.getLogger(__name__)
        self._model = model or settings.ollama.model
        self._host = (host or settings.ollama.host).rstrip("/")
        self._chat_path = settings.ollama.chat_path
        self._retry = retry or RetryPolicy(RetryConfig.from_settings(settings.retry), logger=self._logger)

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.ollama.read_timeout_s,
                connect=settings.ollama.connect_timeout_s,
            )
        )

        self._logger.debug(f"Ollama client initialized - Model: {self._model}, Host: {self._host}")

    @property
    def model(self) -> str:
        return self._model

    @property
    def chat_url(self) -> str:
        path = self._chat_path if self._chat_path.startswith("/") else f"/{self._chat_path}"
        return f"{self._host}{path}"

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[ToolRegistry] = None,
        format: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Request body; ``tools`` only for a non-empty registry."""
        body: Dict[str, Any] = {
            "model": self._model,
            "messages": to_api_format(messages),
            "stream": True,
        }
        if tools is not None and tools.names():
            body["tools"] = tools.to_ollama_format()
        if format is not None:
            body["format"] = format
        return body

    async def open_stream(self, scope: "Scope", body: Dict[str, Any]) -> httpx.Response:
        """Send the request (with retries) and bind the response to ``scope``."""

        async def _attempt() -> httpx.Response:
            request = self._http.build_request("POST", self.chat_url, json=body)
            response = await self._http.send(request, stream=True)
            if not response.is_success:
                try:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                finally:
                    await response.aclose()
                raise BackendError(
                    f"Ollama returned HTTP {response.status_code}: {detail[:500]}",
                    status_code=response.status_code,
                    body=detail,
                )
            return response

        response = await self._retry.run(_attempt)
        scope.ensure(response.aclose)
        return response

    async def stream_chat(
        self,
        scope: "Scope",
        messages: Sequence[Message],
        tools: Optional[ToolRegistry] = None,
        format: Optional[Dict[str, Any]] = None,
        emit_text: bool = True
    ) -> ChatEventStream:
        """Open one streaming turn. The response is released when ``scope`` exits."""
        body = self.build_request(messages, tools=tools, format=format)
        self._logger.debug(
            f"POST {self.chat_url} - {len(body['messages'])} messages, "
            f"{len(body.get('tools', []))} tools, structured={format is not None}"
        )
        response = await self.open_stream(scope, body)
        records = open_ndjson(scope, response.aiter_bytes())
        return ChatEventStream(records, emit_text=emit_text, signal=scope.signal, logger=self._logger)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> OllamaChatClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
