"""Uniform async client for locally hosted LLM inference backends."""

from .catalog import ModelCatalog, format_size
from .config import BackendConfig, ProviderSettings, config_from_env, config_from_mapping, load_config
from .errors import (
    BackendUnavailable,
    Cancelled,
    ConfigurationError,
    ConnectionInProgress,
    GenerationInProgress,
    LocalInferenceError,
    RequestFailed,
    StreamParseWarning,
)
from .llm.types import (
    ChatMessage,
    GenerationResult,
    GenerationStatus,
    ModelDescriptor,
    ProviderKind,
    ProviderStatus,
    Role,
    SessionState,
)
from .probe import check_available, check_model, health_check, list_models
from .session import SessionManager
from .validation import ValidationResult, validate_config

__all__ = [
    "BackendConfig",
    "ProviderSettings",
    "config_from_env",
    "config_from_mapping",
    "load_config",
    "validate_config",
    "ValidationResult",
    "ModelCatalog",
    "format_size",
    "check_available",
    "check_model",
    "list_models",
    "health_check",
    "SessionManager",
    "ChatMessage",
    "GenerationResult",
    "GenerationStatus",
    "ModelDescriptor",
    "ProviderKind",
    "ProviderStatus",
    "Role",
    "SessionState",
    "LocalInferenceError",
    "ConfigurationError",
    "BackendUnavailable",
    "RequestFailed",
    "Cancelled",
    "ConnectionInProgress",
    "GenerationInProgress",
    "StreamParseWarning",
]
