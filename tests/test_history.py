import pytest

from local_inference.history import compact_messages
from local_inference.llm.types import ChatMessage, Role


def _msg(role, content):
    return ChatMessage(role=role, content=content)


def test_keeps_system_messages_and_newest_turns():
    messages = [
        _msg(Role.SYSTEM, "seed"),
        _msg(Role.USER, "u1"),
        _msg(Role.ASSISTANT, "a1"),
        _msg(Role.SYSTEM, "update"),
        _msg(Role.USER, "u2"),
        _msg(Role.ASSISTANT, "a2"),
    ]
    compacted = compact_messages(messages, 2)
    assert [m.content for m in compacted] == ["seed", "update", "u2", "a2"]


def test_no_op_when_under_limit():
    messages = [_msg(Role.USER, "u1")]
    assert compact_messages(messages, 5) == messages


def test_zero_keeps_only_system():
    messages = [_msg(Role.SYSTEM, "seed"), _msg(Role.USER, "u1")]
    assert [m.content for m in compact_messages(messages, 0)] == ["seed"]


def test_negative_limit_rejected():
    with pytest.raises(ValueError):
        compact_messages([], -1)
