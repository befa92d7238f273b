"""Backend configuration and environment loading."""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

import dotenv

from .llm.types import ProviderKind
from .validation import validate_config

dotenv.load_dotenv()


DEFAULT_PROVIDER = ProviderKind.OLLAMA
DEFAULT_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"


@dataclass(frozen=True)
class ProviderSettings:
    """Connection details for a single provider."""

    url: str
    model: str
    api_key: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)
    organization: Optional[str] = None


@dataclass(frozen=True)
class BackendConfig:
    """Validated-once, immutable backend configuration.

    Exactly one of the provider sub-structs (matching ``provider_kind``) is
    populated. Use ``with_updates`` to derive a changed copy.
    """

    provider_kind: ProviderKind = DEFAULT_PROVIDER
    ollama: Optional[ProviderSettings] = None
    lmstudio: Optional[ProviderSettings] = None
    localai: Optional[ProviderSettings] = None
    openai: Optional[ProviderSettings] = None
    custom: Optional[ProviderSettings] = None

    timeout_ms: int = 30000
    max_retries: int = 3
    temperature: float = 0.7
    max_tokens: int = 2048
    context_size: Optional[int] = 4096
    thread_count: Optional[int] = None
    gpu_enabled: Optional[bool] = None
    debug: bool = False

    @classmethod
    def for_provider(
        cls,
        provider_kind: ProviderKind | str,
        url: str,
        model: str,
        *,
        api_key: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        organization: Optional[str] = None,
        **tunables,
    ) -> "BackendConfig":
        kind = ProviderKind(provider_kind)
        settings = ProviderSettings(
            url=url,
            model=model,
            api_key=api_key,
            headers=dict(headers or {}),
            organization=organization,
        )
        return cls(provider_kind=kind, **{kind.value: settings}, **tunables)

    @property
    def provider_settings(self) -> Optional[ProviderSettings]:
        try:
            kind = ProviderKind(self.provider_kind)
        except ValueError:
            return None
        return getattr(self, kind.value)

    @property
    def endpoint(self) -> str:
        settings = self.provider_settings
        return settings.url.rstrip("/") if settings else ""

    @property
    def model_id(self) -> str:
        settings = self.provider_settings
        return settings.model if settings else ""

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def with_updates(self, **changes) -> "BackendConfig":
        """Return a new validated config with ``changes`` applied."""
        updated = dataclasses.replace(self, **changes)
        validate_config(updated).raise_for_errors()
        return updated


def _number(raw: Optional[str], default, cast):
    # Unparseable values are passed through so validation reports them.
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        return raw


def _flag(raw: Optional[str], default: Optional[bool]) -> Optional[bool]:
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def config_from_mapping(values: Mapping[str, str]) -> BackendConfig:
    """Build an (unvalidated) ``BackendConfig`` from a flat key/value map."""
    raw_kind = values.get("LOCAL_AI_PROVIDER") or DEFAULT_PROVIDER.value
    try:
        kind = ProviderKind(raw_kind.strip().lower())
    except ValueError:
        kind = raw_kind

    header_pairs = values.get("LOCAL_AI_HEADERS", "")
    headers = {}
    for pair in filter(None, (p.strip() for p in header_pairs.split(","))):
        name, _, value = pair.partition("=")
        headers[name.strip()] = value.strip()

    tunables = dict(
        timeout_ms=_number(values.get("LOCAL_AI_TIMEOUT"), BackendConfig.timeout_ms, int),
        max_retries=_number(values.get("LOCAL_AI_MAX_RETRIES"), BackendConfig.max_retries, int),
        temperature=_number(values.get("LOCAL_AI_TEMPERATURE"), BackendConfig.temperature, float),
        max_tokens=_number(values.get("LOCAL_AI_MAX_TOKENS"), BackendConfig.max_tokens, int),
        context_size=_number(values.get("LOCAL_AI_CONTEXT_SIZE"), BackendConfig.context_size, int),
        thread_count=_number(values.get("LOCAL_AI_THREADS"), None, int),
        gpu_enabled=_flag(values.get("LOCAL_AI_GPU"), None),
        debug=bool(_flag(values.get("LOCAL_AI_DEBUG"), False)),
    )

    if not isinstance(kind, ProviderKind):
        return BackendConfig(provider_kind=kind, **tunables)

    return BackendConfig.for_provider(
        kind,
        values.get("LOCAL_AI_URL", DEFAULT_URL),
        values.get("LOCAL_AI_MODEL", DEFAULT_MODEL),
        api_key=values.get("LOCAL_AI_API_KEY") or None,
        headers=headers,
        organization=values.get("LOCAL_AI_ORGANIZATION") or None,
        **tunables,
    )


def config_from_env() -> BackendConfig:
    return config_from_mapping(os.environ)


def load_config(values: Optional[Mapping[str, str]] = None) -> BackendConfig:
    """Load a configuration and validate it, raising ``ConfigurationError`` on failure."""
    config = config_from_env() if values is None else config_from_mapping(values)
    validate_config(config).raise_for_errors()
    return config


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(name)s %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("local_inference").setLevel(logging.DEBUG if debug else logging.INFO)
