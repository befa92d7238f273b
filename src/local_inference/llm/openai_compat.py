"""Client for OpenAI-compatible servers (LM Studio, LocalAI, vLLM and friends)."""

import json
from typing import Optional

from .base import BaseLLMClient
from .types import ChatMessage, GenerationConfig, Role, StreamRecord

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class OpenAICompatibleClient(BaseLLMClient):
    """Translates the normalized chat contract to ``/v1/chat/completions``.

    ``base_url`` is expected to include the API prefix, e.g.
    ``http://localhost:1234/v1``.
    """

    def __init__(self, *args, organization: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.organization = organization

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/models"

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def request_headers(self) -> dict[str, str]:
        headers = super().request_headers()
        if self.organization:
            headers.setdefault("OpenAI-Organization", self.organization)
        return headers

    def build_chat_body(
        self, messages: list[ChatMessage], config: GenerationConfig, stream: bool
    ) -> dict:
        body = {
            "model": config.model or self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": config.temperature,
            "stream": stream,
        }
        if config.max_tokens is not None:
            body["max_tokens"] = config.max_tokens
        return body

    def parse_reply(self, data) -> ChatMessage:
        content = data["choices"][0]["message"]["content"]
        if not isinstance(content, str):
            raise TypeError("choices[0].message.content is not a string")
        return ChatMessage(role=Role.ASSISTANT, content=content)

    def parse_stream_record(self, line: str) -> Optional[StreamRecord]:
        # Server-sent events: only "data:" lines carry records.
        if not line.startswith(SSE_DATA_PREFIX):
            return None
        payload = line[len(SSE_DATA_PREFIX):].strip()
        if payload == SSE_DONE:
            return StreamRecord(done=True)

        data = json.loads(payload)
        choice = data["choices"][0] if data.get("choices") else {}
        content = (choice.get("delta") or {}).get("content")
        return StreamRecord(
            content=content if isinstance(content, str) else None,
            done=choice.get("finish_reason") is not None,
        )

    def parse_model_names(self, data) -> list[str]:
        models = data.get("data") or []
        return [m["id"] for m in models if isinstance(m, dict) and "id" in m]
