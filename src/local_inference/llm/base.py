"""Abstract base class for LLM clients."""

import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import AsyncIterator, Optional

import httpx

from ..errors import RequestFailed
from .retry import RetryConfig, with_retries
from .streaming import StreamingClient, WarningHandler
from .types import ChatMessage, GenerationConfig, StreamRecord

logger = logging.getLogger(__name__)


class BaseLLMClient(ABC):
    """Capability interface shared by every backend variant.

    Subclasses only translate between the normalized chat contract and their
    wire format (URLs, request bodies, reply and stream-record shapes). HTTP,
    retries and streaming are handled here.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        api_key: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def models_url(self) -> str:
        ...

    @property
    @abstractmethod
    def chat_url(self) -> str:
        ...

    @abstractmethod
    def build_chat_body(
        self, messages: list[ChatMessage], config: GenerationConfig, stream: bool
    ) -> dict:
        ...

    @abstractmethod
    def parse_reply(self, data) -> ChatMessage:
        """Extract the assistant message from a non-streaming reply."""
        ...

    @abstractmethod
    def parse_stream_record(self, line: str) -> Optional[StreamRecord]:
        """Decode one line of a streamed reply; ``None`` means "ignore this line"."""
        ...

    @abstractmethod
    def parse_model_names(self, data) -> list[str]:
        ...

    def request_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        headers.update(self.headers)
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(transport=self._transport, timeout=self.timeout)
        return self._client

    async def is_available(self, timeout: Optional[float] = None) -> bool:
        """Return True only if the model-listing endpoint answers with a 2xx status."""
        client = await self._get_client()
        try:
            response = await client.get(
                self.models_url,
                headers=self.request_headers(),
                timeout=timeout if timeout is not None else self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Local AI not available at %s: %s", self.base_url, e)
            return False
        if not response.is_success:
            logger.debug("Local AI at %s returned status %s", self.base_url, response.status_code)
        return response.is_success

    async def list_models(self, timeout: Optional[float] = None) -> list[str]:
        """Names of the models the backend reports; empty on any failure."""
        client = await self._get_client()
        try:
            response = await client.get(
                self.models_url,
                headers=self.request_headers(),
                timeout=timeout if timeout is not None else self.timeout,
            )
            response.raise_for_status()
            return self.parse_model_names(response.json())
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, TypeError, KeyError) as e:
            logger.warning("Failed to list models at %s: %s", self.base_url, e)
            return []

    async def chat(
        self,
        messages: list[ChatMessage],
        config: GenerationConfig | None = None,
    ) -> ChatMessage:
        """Send one non-streaming chat request, retrying transient failures."""
        cfg = config or GenerationConfig()
        body = self.build_chat_body(messages, cfg, stream=False)
        return await with_retries(lambda: self._post_chat(body), self.retry_config)

    async def _post_chat(self, body: dict) -> ChatMessage:
        client = await self._get_client()
        response = await client.post(self.chat_url, json=body, headers=self.request_headers())
        if not response.is_success:
            raise RequestFailed(
                f"Local AI request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return self.parse_reply(response.json())
        except (ValueError, TypeError, KeyError, IndexError, AttributeError) as e:
            raise RequestFailed(f"Malformed chat response: {e}", status_code=response.status_code) from e

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        config: GenerationConfig | None = None,
        *,
        cancel_event=None,
        on_warning: Optional[WarningHandler] = None,
    ) -> AsyncIterator[str]:
        """Yield response fragments as the backend produces them."""
        cfg = config or GenerationConfig()
        client = await self._get_client()
        streamer = StreamingClient(client)
        fragments = streamer.stream(
            self.chat_url,
            json=self.build_chat_body(messages, cfg, stream=True),
            parse_record=self.parse_stream_record,
            headers=self.request_headers(),
            timeout=self.timeout,
            cancel_event=cancel_event,
            on_warning=on_warning,
        )
        async with aclosing(fragments):
            async for fragment in fragments:
                yield fragment

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
