"""Conversation session state machine.

A ``SessionManager`` owns one conversation with one backend::

    disconnected --start_session()--> connecting --probe ok--> connected
         ^                                |                        |
         +------------probe failed--------+                        |
         +--------------------------end_session()------------------+

While connected, ``send_message`` appends the user turn and schedules a single
response generation as an ``asyncio.Task``. The task never raises: it resolves
to a ``GenerationResult`` that reports completion, failure or cancellation.
History only ever receives a complete assistant message, never a partial one.
"""

import asyncio
import dataclasses
import functools
import logging
import uuid
from contextlib import aclosing
from datetime import datetime
from typing import Awaitable, Callable, Optional

import httpx

from .config import BackendConfig
from .errors import (
    BackendUnavailable,
    Cancelled,
    ConnectionInProgress,
    GenerationInProgress,
    RequestFailed,
)
from .history import compact_messages
from .llm.base import BaseLLMClient
from .llm.factory import create_client
from .llm.streaming import WarningHandler
from .llm.types import (
    ChatMessage,
    GenerationConfig,
    GenerationResult,
    GenerationStatus,
    ProviderStatus,
    Role,
    SessionState,
)
from .probe import check_available
from .validation import validate_config

logger = logging.getLogger(__name__)

Probe = Callable[[str, float], Awaitable[bool]]
FragmentHandler = Callable[[str], None]


class SessionManager:
    """Owns the conversation history and the request/response lifecycle.

    Args:
        config: Backend configuration. Validated here, before any I/O.
        stream: Use the streaming chat endpoint for responses.
        transport: Optional httpx transport used for every request, so tests
            can substitute a stub backend.
        probe: Optional ``(endpoint, timeout_ms) -> bool`` availability check.
        on_fragment: Called with each streamed fragment as it arrives.
        on_warning: Called with each ``StreamParseWarning``.
    """

    def __init__(
        self,
        config: BackendConfig,
        *,
        stream: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        probe: Optional[Probe] = None,
        on_fragment: Optional[FragmentHandler] = None,
        on_warning: Optional[WarningHandler] = None,
    ):
        validate_config(config).raise_for_errors()
        if config.debug:
            logging.getLogger("local_inference").setLevel(logging.DEBUG)
        self.config = config
        self.stream = stream
        self.session_id: str | None = None
        self._transport = transport
        self._probe = probe or self._default_probe()
        self._on_fragment = on_fragment
        self._on_warning = on_warning

        self._state = SessionState.DISCONNECTED
        self._history: list[ChatMessage] = []
        self._client: BaseLLMClient | None = None
        self._generation: asyncio.Task | None = None
        self._cancel_event: asyncio.Event | None = None
        self._generation_started = False
        # bumped on every end_session so stale generations and starts cannot touch new state
        self._epoch = 0
        self._status = ProviderStatus(current_model=config.model_id)

    def _default_probe(self) -> Probe:
        settings = self.config.provider_settings
        return functools.partial(
            check_available,
            provider_kind=self.config.provider_kind,
            headers=settings.headers,
            api_key=settings.api_key,
            transport=self._transport,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_generating(self) -> bool:
        return self._generation is not None and not self._generation.done()

    @property
    def status(self) -> ProviderStatus:
        return dataclasses.replace(self._status)

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.end_session()

    async def start_session(
        self,
        seed_context: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Probe the backend and, if it answers, move to ``connected``.

        Raises:
            BackendUnavailable: the probe failed; the session stays disconnected.
            ConnectionInProgress: another ``start_session`` is still probing.
            Cancelled: ``end_session`` ran while the probe was pending.
        """
        if self._state is SessionState.CONNECTED:
            logger.debug("Session %s already connected", self.session_id)
            return
        if self._state is SessionState.CONNECTING:
            raise ConnectionInProgress("Session is already connecting")

        self._state = SessionState.CONNECTING
        epoch = self._epoch
        available = False
        try:
            available = await self._probe(self.config.endpoint, self.config.timeout_ms)
        finally:
            if not available and epoch == self._epoch:
                self._state = SessionState.DISCONNECTED

        if epoch != self._epoch:
            logger.info("Session start aborted: session ended while connecting")
            raise Cancelled("Session start aborted")

        self._status.available = available
        if not available:
            error = BackendUnavailable(self.config.endpoint)
            self._status.last_error = str(error)
            raise error

        if seed_context:
            self._history.append(ChatMessage(role=Role.SYSTEM, content=seed_context))

        self._client = create_client(self.config, transport=self._transport)
        self.session_id = session_id or uuid.uuid4().hex
        self._state = SessionState.CONNECTED
        self._status.connected = True
        self._status.last_connected_at = datetime.now()
        logger.info("Local AI session started: %s (%s)", self.session_id, self.config.model_id)

    async def end_session(self) -> None:
        """Cancel any in-flight generation, clear history and release resources."""
        self._epoch += 1
        self._state = SessionState.DISCONNECTED
        self._status.connected = False

        if self._cancel_event is not None:
            self._cancel_event.set()
        task, self._generation = self._generation, None
        if task is not None and not task.done():
            # A task cancelled before its first step would hand the caller a
            # CancelledError instead of a result; the set event covers that case.
            if self._generation_started:
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._cancel_event = None

        self._history = []
        if self._client is not None:
            await self._client.close()
            self._client = None

        if self.session_id is not None:
            logger.info("Local AI session ended: %s", self.session_id)
        self.session_id = None

    def send_message(self, text: str) -> Optional[asyncio.Task]:
        """Append a user message and start generating the reply.

        Returns the generation task (resolving to a ``GenerationResult``), or
        ``None`` when the session is not connected, in which case nothing is
        recorded.

        Raises:
            GenerationInProgress: a previous reply is still being generated.
        """
        if self._state is not SessionState.CONNECTED:
            logger.warning("Cannot send message: session not connected")
            return None
        if self.is_generating:
            raise GenerationInProgress("A response is already being generated for this session")

        loop = asyncio.get_running_loop()
        self._history.append(ChatMessage(role=Role.USER, content=text))
        self._cancel_event = asyncio.Event()
        self._generation_started = False
        self._generation = loop.create_task(self._generate(self._epoch, self._cancel_event))
        return self._generation

    def send_context_update(self, text: str) -> bool:
        """Append a system message without triggering a reply.

        Returns False (and records nothing) when the session is not connected.
        """
        if self._state is not SessionState.CONNECTED:
            logger.warning("Cannot send context update: session not connected")
            return False
        self._history.append(ChatMessage(role=Role.SYSTEM, content=text))
        logger.debug("Context updated: %s", text)
        return True

    def get_history(self) -> list[ChatMessage]:
        """A snapshot of the conversation; mutating it never affects the session."""
        return [dataclasses.replace(m) for m in self._history]

    def compact_history(self, max_messages: int) -> int:
        """Drop the oldest non-system messages beyond ``max_messages``.

        Returns the number of messages removed.
        """
        before = len(self._history)
        self._history = compact_messages(self._history, max_messages)
        return before - len(self._history)

    def _generation_config(self) -> GenerationConfig:
        return GenerationConfig(
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            context_size=self.config.context_size,
            thread_count=self.config.thread_count,
            gpu_enabled=self.config.gpu_enabled,
            stream=self.stream,
        )

    async def _generate(self, epoch: int, cancel_event: asyncio.Event) -> GenerationResult:
        if cancel_event.is_set():
            return GenerationResult(GenerationStatus.CANCELLED)
        self._generation_started = True
        messages = self.get_history()
        gen_config = self._generation_config()
        fragments: list[str] = []
        client = self._client

        try:
            if gen_config.stream:
                async with aclosing(
                    client.stream_chat(
                        messages,
                        gen_config,
                        cancel_event=cancel_event,
                        on_warning=self._on_warning,
                    )
                ) as stream:
                    async for fragment in stream:
                        fragments.append(fragment)
                        if self._on_fragment is not None:
                            self._on_fragment(fragment)
                reply = ChatMessage(role=Role.ASSISTANT, content="".join(fragments))
            else:
                reply = await client.chat(messages, gen_config)
        except (Cancelled, asyncio.CancelledError):
            logger.info("Response generation aborted")
            return GenerationResult(GenerationStatus.CANCELLED, fragments=fragments)
        except Exception as e:
            error = e if isinstance(e, RequestFailed) else RequestFailed(
                f"Local AI request failed: {type(e).__name__}: {e}"
            )
            if error is not e:
                error.__cause__ = e
            logger.error("Failed to generate response: %s", error)
            self._status.last_error = str(error)
            return GenerationResult(GenerationStatus.FAILED, error=error, fragments=fragments)

        if cancel_event.is_set() or epoch != self._epoch:
            logger.info("Discarding response for ended session")
            return GenerationResult(GenerationStatus.CANCELLED, fragments=fragments)

        self._history.append(reply)
        logger.debug("Response generated (%d chars)", len(reply.content))
        return GenerationResult(
            GenerationStatus.COMPLETED,
            message=dataclasses.replace(reply),
            fragments=fragments,
        )
