"""LLM abstraction layer."""

from .base import BaseLLMClient
from .factory import create_client, create_probe_client
from .ollama import NormalizedClient, OllamaClient
from .openai_compat import OpenAICompatibleClient
from .streaming import StreamingClient
from .types import ChatMessage, GenerationConfig, ProviderKind, Role

__all__ = [
    "BaseLLMClient",
    "NormalizedClient",
    "OllamaClient",
    "OpenAICompatibleClient",
    "StreamingClient",
    "ChatMessage",
    "GenerationConfig",
    "ProviderKind",
    "Role",
    "create_client",
    "create_probe_client",
]
