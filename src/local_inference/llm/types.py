"""Types for the LLM abstraction layer."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Conversation roles understood by every backend."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ProviderKind(str, Enum):
    """Supported backend flavours."""
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    LOCALAI = "localai"
    OPENAI = "openai"
    CUSTOM = "custom"


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class ChatMessage:
    """A message in a chat conversation."""
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass
class GenerationConfig:
    """Configuration for LLM generation."""
    temperature: float = 0.7
    max_tokens: Optional[int] = 2048
    context_size: Optional[int] = 4096
    thread_count: Optional[int] = None
    gpu_enabled: Optional[bool] = None
    stream: bool = False
    model: Optional[str] = None  # Override default model


@dataclass(frozen=True)
class ModelDescriptor:
    """A model known to the static catalog."""
    id: str
    display_name: str
    size_bytes: int
    quantization: Optional[str] = None
    capabilities: frozenset[str] = frozenset()


@dataclass
class ProviderStatus:
    """Read-only view of a backend as seen by a session."""
    available: bool = False
    connected: bool = False
    last_connected_at: Optional[datetime] = None
    last_error: Optional[str] = None
    current_model: Optional[str] = None


@dataclass
class HealthStatus:
    healthy: bool
    provider: ProviderStatus
    response_time_ms: float


@dataclass
class StreamRecord:
    """One decoded record of a streamed chat response."""
    content: Optional[str] = None
    done: bool = False


class GenerationStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class GenerationResult:
    """Outcome of one response generation, delivered through the session's task."""
    status: GenerationStatus
    message: Optional[ChatMessage] = None
    error: Optional[Exception] = None
    fragments: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is GenerationStatus.COMPLETED
