"""Explicit history compaction.

Sessions never prune on their own; callers that want a bounded history call
``SessionManager.compact_history`` (or this function) when it suits them.
"""

from .llm.types import ChatMessage, Role


def compact_messages(messages: list[ChatMessage], max_messages: int) -> list[ChatMessage]:
    """Keep all system messages and only the newest ``max_messages`` others.

    System messages keep their original position relative to the surviving
    conversation turns.
    """
    if max_messages < 0:
        raise ValueError("max_messages must be >= 0")

    others = [i for i, m in enumerate(messages) if m.role is not Role.SYSTEM]
    dropped = set(others[: max(0, len(others) - max_messages)])
    return [m for i, m in enumerate(messages) if i not in dropped]
