"""Availability checks against a backend's model-listing endpoint.

Unavailability is an ordinary outcome here, so none of these functions raise
on network failures, bad statuses, timeouts or malformed payloads. Every call
opens and closes its own HTTP client, so probes never contend with a session.
"""

import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import httpx

from .llm.factory import create_probe_client
from .llm.types import HealthStatus, ProviderKind, ProviderStatus

if TYPE_CHECKING:
    from .config import BackendConfig

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_MS = 5000


async def check_available(
    endpoint: str,
    timeout_ms: float = DEFAULT_PROBE_TIMEOUT_MS,
    *,
    provider_kind: ProviderKind | str = ProviderKind.OLLAMA,
    headers: Optional[dict[str, str]] = None,
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Return True iff ``endpoint`` answers its model-listing request with 2xx."""
    client = create_probe_client(
        endpoint,
        provider_kind,
        timeout=timeout_ms / 1000,
        headers=headers,
        api_key=api_key,
        transport=transport,
    )
    try:
        available = await client.is_available()
    finally:
        await client.close()
    if not available:
        logger.warning("Local AI not available at %s", endpoint)
    return available


async def list_models(
    endpoint: str,
    timeout_ms: float = DEFAULT_PROBE_TIMEOUT_MS,
    *,
    provider_kind: ProviderKind | str = ProviderKind.OLLAMA,
    headers: Optional[dict[str, str]] = None,
    api_key: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[str]:
    client = create_probe_client(
        endpoint,
        provider_kind,
        timeout=timeout_ms / 1000,
        headers=headers,
        api_key=api_key,
        transport=transport,
    )
    try:
        return await client.list_models()
    finally:
        await client.close()


async def check_model(endpoint: str, model: str, **kwargs) -> bool:
    """True if the backend reports ``model`` among its installed models."""
    return model in await list_models(endpoint, **kwargs)


async def health_check(
    config: "BackendConfig",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HealthStatus:
    """Probe the configured backend and time the round trip."""
    settings = config.provider_settings
    started = time.perf_counter()
    available = await check_available(
        config.endpoint,
        config.timeout_ms,
        provider_kind=config.provider_kind,
        headers=settings.headers if settings else None,
        api_key=settings.api_key if settings else None,
        transport=transport,
    )
    elapsed_ms = (time.perf_counter() - started) * 1000

    status = ProviderStatus(
        available=available,
        connected=False,
        last_connected_at=datetime.now() if available else None,
        last_error=None if available else f"Local AI not available at {config.endpoint}",
        current_model=config.model_id or None,
    )
    return HealthStatus(healthy=available, provider=status, response_time_ms=elapsed_ms)
