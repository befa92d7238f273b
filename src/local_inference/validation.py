"""Validation rules for backend configurations.

``validate_config`` is pure: it performs no I/O, never raises, and reports every
violated rule in a fixed order so callers can show the whole list at once.
Anything of the wrong type is treated as missing (required fields) or out of
range (numeric fields).
"""

from dataclasses import dataclass, field

import httpx

from .errors import ConfigurationError
from .llm.types import ProviderKind

PROVIDER_LABELS = {
    ProviderKind.OLLAMA: ("Ollama URL", "Ollama model"),
    ProviderKind.LMSTUDIO: ("LM Studio URL", "LM Studio model"),
    ProviderKind.LOCALAI: ("LocalAI URL", "LocalAI model"),
    ProviderKind.OPENAI: ("OpenAI base URL", "OpenAI model"),
    ProviderKind.CUSTOM: ("Custom URL", "Custom model"),
}

TIMEOUT_MS_RANGE = (1000, 600000)
TEMPERATURE_RANGE = (0, 2)
MAX_TOKENS_RANGE = (1, 100000)
CONTEXT_SIZE_RANGE = (512, 32768)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def raise_for_errors(self) -> None:
        if not self.valid:
            raise ConfigurationError(self.errors)


def _coerce_kind(value) -> ProviderKind | None:
    if isinstance(value, ProviderKind):
        return value
    if isinstance(value, str):
        try:
            return ProviderKind(value.strip().lower())
        except ValueError:
            return None
    return None


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _in_range(value, low, high) -> bool:
    return _is_number(value) and low <= value <= high


def _is_http_url(value: str) -> bool:
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return url.scheme in ("http", "https") and bool(url.host)


def _check_provider(config, errors: list[str]) -> None:
    raw_kind = getattr(config, "provider_kind", None)
    if raw_kind is None or raw_kind == "":
        errors.append("Provider type is required")
        return

    kind = _coerce_kind(raw_kind)
    if kind is None:
        errors.append(f"Unknown provider type: {raw_kind!r}")
        return

    url_label, model_label = PROVIDER_LABELS[kind]
    settings = getattr(config, kind.value, None)
    url = getattr(settings, "url", None)
    model = getattr(settings, "model", None)

    if not isinstance(url, str) or not url.strip():
        errors.append(f"{url_label} is required")
    elif not _is_http_url(url.strip()):
        errors.append(f"{url_label} is invalid")

    if not isinstance(model, str) or not model.strip():
        errors.append(f"{model_label} is required")

    # exactly one provider sub-struct may be populated
    for other in ProviderKind:
        if other is not kind and getattr(config, other.value, None) is not None:
            errors.append(f"Settings for inactive provider '{other.value}' must not be set")


def validate_config(config) -> ValidationResult:
    """Validate a backend configuration.

    Args:
        config: A ``BackendConfig`` (or any object exposing the same attributes).

    Returns:
        A ``ValidationResult`` whose ``errors`` list is ordered: provider fields,
        timeout, temperature, max tokens, context size, thread count.
    """
    errors: list[str] = []

    _check_provider(config, errors)

    if not _in_range(getattr(config, "timeout_ms", None), *TIMEOUT_MS_RANGE):
        errors.append("Timeout must be between 1000ms and 600000ms")

    if not _in_range(getattr(config, "temperature", None), *TEMPERATURE_RANGE):
        errors.append("Temperature must be between 0 and 2")

    if not _in_range(getattr(config, "max_tokens", None), *MAX_TOKENS_RANGE):
        errors.append("Max tokens must be between 1 and 100000")

    context_size = getattr(config, "context_size", None)
    if context_size is not None and not _in_range(context_size, *CONTEXT_SIZE_RANGE):
        errors.append("Context size must be between 512 and 32768")

    thread_count = getattr(config, "thread_count", None)
    if thread_count is not None and not (_is_number(thread_count) and thread_count >= 1):
        errors.append("Threads must be at least 1")

    return ValidationResult(valid=not errors, errors=errors)
