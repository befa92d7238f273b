import json

import httpx
import pytest

from local_inference.config import BackendConfig
from local_inference.errors import RequestFailed
from local_inference.llm import NormalizedClient, OllamaClient, OpenAICompatibleClient, create_client
from local_inference.llm.retry import RetryConfig
from local_inference.llm.types import ChatMessage, GenerationConfig, Role

MESSAGES = [
    ChatMessage(role=Role.SYSTEM, content="be brief"),
    ChatMessage(role=Role.USER, content="hi"),
]

NO_WAIT = RetryConfig(max_retries=2, base_delay=0, jitter=0)


def _transport(responses, seen):
    responses = list(responses)

    def handler(request):
        seen.append(request)
        return responses.pop(0)

    return httpx.MockTransport(handler)


def test_ollama_body_uses_native_options():
    client = OllamaClient("http://localhost:11434/", "llama3.2")
    body = client.build_chat_body(
        MESSAGES,
        GenerationConfig(temperature=0.3, max_tokens=64, context_size=8192, thread_count=4, gpu_enabled=False),
        stream=True,
    )
    assert client.chat_url == "http://localhost:11434/api/chat"
    assert body == {
        "model": "llama3.2",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ],
        "stream": True,
        "options": {
            "temperature": 0.3,
            "num_predict": 64,
            "num_ctx": 8192,
            "num_thread": 4,
            "num_gpu": 0,
        },
    }


def test_custom_body_uses_top_level_settings():
    config = BackendConfig.for_provider("custom", "http://localhost:9000", "house-model", temperature=0.2, max_tokens=128)
    client = create_client(config)
    body = client.build_chat_body(
        MESSAGES, GenerationConfig(temperature=config.temperature, max_tokens=config.max_tokens), stream=False
    )
    assert client.chat_url == "http://localhost:9000/api/chat"
    assert body == {
        "model": "house-model",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ],
        "stream": False,
        "temperature": 0.2,
        "maxTokens": 128,
    }


def test_openai_body_and_headers():
    client = OpenAICompatibleClient(
        "http://localhost:1234/v1", "qwen", api_key="k", headers={"X-Team": "core"}, organization="org"
    )
    body = client.build_chat_body(MESSAGES, GenerationConfig(temperature=1.0, max_tokens=10), stream=False)
    assert body["max_tokens"] == 10 and body["temperature"] == 1.0 and body["stream"] is False
    headers = client.request_headers()
    assert headers["Authorization"] == "Bearer k"
    assert headers["OpenAI-Organization"] == "org"
    assert headers["X-Team"] == "core"


@pytest.mark.asyncio
async def test_ollama_chat_returns_assistant_message():
    seen = []
    transport = _transport(
        [httpx.Response(200, json={"message": {"role": "assistant", "content": "yo"}, "done": True})], seen
    )
    client = OllamaClient("http://localhost:11434", "llama3.2", transport=transport)
    reply = await client.chat(MESSAGES)
    await client.close()
    assert reply == ChatMessage(role=Role.ASSISTANT, content="yo")
    assert json.loads(seen[0].content)["stream"] is False


@pytest.mark.asyncio
async def test_openai_chat_returns_assistant_message():
    seen = []
    transport = _transport(
        [httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "yo"}}]})], seen
    )
    client = OpenAICompatibleClient("http://localhost:1234/v1", "qwen", transport=transport)
    assert (await client.chat(MESSAGES)).content == "yo"
    assert seen[0].url.path == "/v1/chat/completions"
    await client.close()


@pytest.mark.asyncio
async def test_malformed_reply_raises_request_failed():
    transport = _transport([httpx.Response(200, json={"done": True})], [])
    client = OllamaClient("http://localhost:11434", "llama3.2", transport=transport, retry_config=NO_WAIT)
    with pytest.raises(RequestFailed, match="Malformed"):
        await client.chat(MESSAGES)
    await client.close()


@pytest.mark.asyncio
async def test_retries_transient_status_then_succeeds():
    seen = []
    transport = _transport(
        [
            httpx.Response(503),
            httpx.Response(200, json={"message": {"role": "assistant", "content": "ok"}}),
        ],
        seen,
    )
    client = OllamaClient("http://localhost:11434", "m", transport=transport, retry_config=NO_WAIT)
    assert (await client.chat(MESSAGES)).content == "ok"
    assert len(seen) == 2
    await client.close()


@pytest.mark.asyncio
async def test_does_not_retry_client_errors():
    seen = []
    transport = _transport([httpx.Response(400), httpx.Response(200)], seen)
    client = OllamaClient("http://localhost:11434", "m", transport=transport, retry_config=NO_WAIT)
    with pytest.raises(RequestFailed) as exc_info:
        await client.chat(MESSAGES)
    assert exc_info.value.status_code == 400
    assert len(seen) == 1
    await client.close()


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    seen = []
    transport = _transport([httpx.Response(500)] * 3, seen)
    client = OllamaClient("http://localhost:11434", "m", transport=transport, retry_config=NO_WAIT)
    with pytest.raises(RequestFailed):
        await client.chat(MESSAGES)
    assert len(seen) == 3
    await client.close()


@pytest.mark.parametrize(
    "kind,client_type",
    [
        ("ollama", OllamaClient),
        ("custom", NormalizedClient),
        ("lmstudio", OpenAICompatibleClient),
        ("localai", OpenAICompatibleClient),
        ("openai", OpenAICompatibleClient),
    ],
)
def test_factory_selects_variant(kind, client_type):
    config = BackendConfig.for_provider(kind, "http://localhost:9000", "m", max_retries=5, timeout_ms=2000)
    client = create_client(config)
    assert type(client) is client_type
    assert client.retry_config.max_retries == 5
    assert client.timeout == 2.0
