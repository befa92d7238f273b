import asyncio
import json

import httpx
import pytest

from local_inference.config import BackendConfig


class RecordingStream(httpx.AsyncByteStream):
    """Response body that yields fixed chunks and remembers whether it was closed."""

    def __init__(self, chunks, gate: asyncio.Event | None = None):
        self.chunks = list(chunks)
        self.gate = gate
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.gate is not None:
            await self.gate.wait()

    async def aclose(self):
        self.closed = True


def ndjson(*records) -> list[bytes]:
    return [(json.dumps(r, ensure_ascii=False) + "\n").encode("utf-8") for r in records]


class StubBackend:
    """In-process Ollama-style backend served through httpx.MockTransport."""

    def __init__(
        self,
        *,
        models=("llama3.2",),
        tags_status=200,
        reply="Hello from the stub",
        chat_status=200,
        stream_chunks=None,
        stream_gate=None,
        chat_gate=None,
        unreachable=False,
    ):
        self.models = list(models)
        self.tags_status = tags_status
        self.reply = reply
        self.chat_status = chat_status
        self.stream_chunks = stream_chunks
        self.stream_gate = stream_gate
        self.chat_gate = chat_gate
        self.unreachable = unreachable
        self.requests: list[httpx.Request] = []
        self.streams: list[RecordingStream] = []

    def chat_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/api/chat")]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)

        if request.url.path.endswith("/api/tags"):
            return httpx.Response(
                self.tags_status, json={"models": [{"name": m} for m in self.models]}
            )

        if request.url.path.endswith("/api/chat"):
            body = json.loads(request.content)
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": "boom"})
            if body.get("stream"):
                stream = RecordingStream(self.stream_chunks or [], gate=self.stream_gate)
                self.streams.append(stream)
                return httpx.Response(200, stream=stream)
            if self.chat_gate is not None:
                await self.chat_gate.wait()
            return httpx.Response(
                200,
                json={"message": {"role": "assistant", "content": self.reply}, "done": True},
            )

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def ollama_config() -> BackendConfig:
    return BackendConfig.for_provider("ollama", "http://localhost:11434", "llama3.2")


@pytest.fixture
def backend() -> StubBackend:
    return StubBackend()
