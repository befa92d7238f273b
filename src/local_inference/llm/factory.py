"""Map each provider kind to the client variant that speaks its wire format."""

from typing import TYPE_CHECKING, Optional

import httpx

from .base import BaseLLMClient
from .ollama import NormalizedClient, OllamaClient
from .openai_compat import OpenAICompatibleClient
from .retry import RetryConfig
from .types import ProviderKind

if TYPE_CHECKING:
    from ..config import BackendConfig

CLIENT_TYPES: dict[ProviderKind, type[BaseLLMClient]] = {
    ProviderKind.OLLAMA: OllamaClient,
    ProviderKind.LMSTUDIO: OpenAICompatibleClient,
    ProviderKind.LOCALAI: OpenAICompatibleClient,
    ProviderKind.OPENAI: OpenAICompatibleClient,
    ProviderKind.CUSTOM: NormalizedClient,
}


def create_client(
    config: "BackendConfig",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMClient:
    """Build the client for ``config.provider_kind`` from a validated config."""
    kind = ProviderKind(config.provider_kind)
    settings = config.provider_settings
    kwargs = dict(
        api_key=settings.api_key,
        headers=settings.headers,
        timeout=config.timeout_seconds,
        retry_config=RetryConfig(max_retries=max(0, config.max_retries)),
        transport=transport,
    )
    client_type = CLIENT_TYPES[kind]
    if client_type is OpenAICompatibleClient:
        kwargs["organization"] = settings.organization
    return client_type(settings.url, settings.model, **kwargs)


def create_probe_client(
    endpoint: str,
    provider_kind: ProviderKind | str = ProviderKind.OLLAMA,
    *,
    timeout: float = 5.0,
    headers: Optional[dict[str, str]] = None,
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMClient:
    """A throwaway client used only for read-only model-listing requests."""
    client_type = CLIENT_TYPES[ProviderKind(provider_kind)]
    return client_type(
        endpoint, "", api_key=api_key, headers=headers, timeout=timeout, transport=transport
    )
