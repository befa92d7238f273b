"""Ollama LLM client implementation."""

import json
from typing import Optional

from ..errors import RequestFailed
from .base import BaseLLMClient
from .types import ChatMessage, GenerationConfig, Role, StreamRecord


class OllamaClient(BaseLLMClient):
    """LLM client that talks to an Ollama instance.

    Generation settings are sent in Ollama's native ``options`` object.
    """

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/api/tags"

    @property
    def chat_url(self) -> str:
        # Support both full URL (http://host/api/chat) and base URL (http://host:11434)
        if self.base_url.endswith("/api/chat"):
            return self.base_url
        return f"{self.base_url}/api/chat"

    def build_chat_body(
        self, messages: list[ChatMessage], config: GenerationConfig, stream: bool
    ) -> dict:
        options = {"temperature": config.temperature}
        if config.max_tokens is not None:
            options["num_predict"] = config.max_tokens
        if config.context_size is not None:
            options["num_ctx"] = config.context_size
        if config.thread_count is not None:
            options["num_thread"] = config.thread_count
        if config.gpu_enabled is False:
            options["num_gpu"] = 0

        return {
            "model": config.model or self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
            "options": options,
        }

    def parse_reply(self, data) -> ChatMessage:
        content = data["message"]["content"]
        if not isinstance(content, str):
            raise TypeError("message.content is not a string")
        return ChatMessage(role=Role.ASSISTANT, content=content)

    def parse_stream_record(self, line: str) -> Optional[StreamRecord]:
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError("stream record is not an object")
        if "error" in data:
            raise RequestFailed(f"Local AI stream error: {data['error']}")
        message = data.get("message") or {}
        content = message.get("content")
        return StreamRecord(
            content=content if isinstance(content, str) else None,
            done=bool(data.get("done")),
        )

    def parse_model_names(self, data) -> list[str]:
        models = data.get("models") or []
        return [m["name"] for m in models if isinstance(m, dict) and "name" in m]


class NormalizedClient(OllamaClient):
    """Client for custom servers that implement the normalized chat contract.

    Same endpoints and reply shapes as Ollama, but generation settings travel
    as top-level ``temperature`` and ``maxTokens`` fields instead of the
    Ollama-specific ``options`` object.
    """

    def build_chat_body(
        self, messages: list[ChatMessage], config: GenerationConfig, stream: bool
    ) -> dict:
        body = {
            "model": config.model or self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        if config.temperature is not None:
            body["temperature"] = config.temperature
        if config.max_tokens is not None:
            body["maxTokens"] = config.max_tokens
        return body
