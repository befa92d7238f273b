"""Static registry of known models and memory-fit heuristics."""

import math
from typing import Optional

from .llm.types import ModelDescriptor

GIB = 1024 ** 3
MIB = 1024 ** 2

# Leave headroom for the OS and other apps.
SAFE_MEMORY_FRACTION = 0.7

SUPPORTED_MODELS: dict[str, ModelDescriptor] = {
    "llama3.2": ModelDescriptor(
        id="llama3.2",
        display_name="Llama 3.2",
        size_bytes=int(3.8 * GIB),
        quantization="Q4_K_M",
        capabilities=frozenset({"code", "chat", "reasoning"}),
    ),
    "llama3.2:70b": ModelDescriptor(
        id="llama3.2:70b",
        display_name="Llama 3.2 70B",
        size_bytes=40 * GIB,
        quantization="Q4_K_M",
        capabilities=frozenset({"code", "chat", "reasoning", "advanced"}),
    ),
    "codellama": ModelDescriptor(
        id="codellama",
        display_name="Code Llama",
        size_bytes=int(3.8 * GIB),
        quantization="Q4_K_M",
        capabilities=frozenset({"code", "completion", "debugging"}),
    ),
    "mistral": ModelDescriptor(
        id="mistral",
        display_name="Mistral 7B",
        size_bytes=int(4.1 * GIB),
        quantization="Q4_K_M",
        capabilities=frozenset({"code", "chat", "reasoning"}),
    ),
    "phi3": ModelDescriptor(
        id="phi3",
        display_name="Phi-3",
        size_bytes=int(2.3 * GIB),
        quantization="Q4_K_M",
        capabilities=frozenset({"code", "chat", "fast"}),
    ),
}

# (minimum safe memory, model id), checked top-down
RECOMMENDATION_TIERS = (
    (50 * GIB, "llama3.2:70b"),
    (8 * GIB, "llama3.2"),
    (4 * GIB, "mistral"),
)
FALLBACK_MODEL = "phi3"


def format_size(size_bytes: float) -> str:
    """Render a byte count as ``"<n> MB"`` below 1 GiB, else ``"<n.n> GB"``."""
    if size_bytes < GIB:
        return f"{math.floor(size_bytes / MIB + 0.5)} MB"
    return f"{size_bytes / GIB:.1f} GB"


class ModelCatalog:
    """Lookup and sizing helpers over a fixed set of model descriptors."""

    def __init__(self, models: Optional[dict[str, ModelDescriptor]] = None):
        self._models = dict(SUPPORTED_MODELS if models is None else models)

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._models

    def __iter__(self):
        return iter(self._models.values())

    def get_model(self, model_id: str) -> Optional[ModelDescriptor]:
        return self._models.get(model_id)

    def is_suitable(self, model_id: str, available_memory_bytes: float) -> bool:
        """True iff the model is registered and fits in 70% of ``available_memory_bytes``."""
        model = self._models.get(model_id)
        if model is None:
            return False
        # size <= available * 0.7, arranged so a value computed as size / 0.7 compares exactly
        return model.size_bytes / SAFE_MEMORY_FRACTION <= available_memory_bytes

    def recommend(self, available_memory_bytes: float) -> str:
        """Pick the largest tier whose threshold fits in 70% of available memory."""
        for threshold, model_id in RECOMMENDATION_TIERS:
            if available_memory_bytes >= threshold / SAFE_MEMORY_FRACTION:
                return model_id
        return FALLBACK_MODEL

    def models_with_capability(self, capability: str) -> list[ModelDescriptor]:
        return [m for m in self._models.values() if capability in m.capabilities]

