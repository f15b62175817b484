"""Unit tests for the ContextManager.

Covers the rolling, compaction and halting modes, the budget resolution
and the date/time metadata block added to user messages.
"""

from datetime import datetime

import pytest

from delver_server.context import ContextManager
from delver_server.context.manager import (
    COMPACTION_RECENT_COUNT,
    ROLLING_WINDOW_SIZE,
)
from delver_server.exceptions import ContextLimitExceededError
from delver_server.sessions import ChatSession, Message

TIMESTAMP = "2024-03-15T14:30:00"


def _conversation(pairs: int, content: str = "hello") -> list[Message]:
    messages = []
    for i in range(pairs):
        messages.append(
            Message(
                role="user",
                content=f"{content} {i}",
                message_id=f"u{i}",
                timestamp=TIMESTAMP,
            )
        )
        messages.append(
            Message(
                role="assistant",
                content=f"reply {i}",
                message_id=f"a{i}",
                timestamp=TIMESTAMP,
            )
        )
    return messages


def _session(
    pairs: int,
    mode: str = "rolling",
    limit: int | None = None,
    content: str = "hello",
    system: bool = True,
) -> ChatSession:
    session = ChatSession(session_id="s1", model="llama3:8b")
    if system:
        session.set_system_prompt("You are helpful")
    for message in _conversation(pairs, content):
        session.add_message(message)
    session.update_context_settings(context_mode=mode, context_limit=limit)
    return session


def _ids(messages: list[Message]) -> list[str]:
    return [m.message_id for m in messages]


class TestBudget:
    def test_session_limit_overrides_provider(self):
        session = _session(1, limit=1000)
        assert ContextManager.resolve_max_tokens(session, 8192) == 1000

    def test_provider_limit_used_without_override(self):
        session = _session(1)
        assert ContextManager.resolve_max_tokens(session, 8192) == 8192


class TestRollingMode:
    def test_fifty_messages_keep_system_and_last_twenty(self):
        session = _session(25)
        conversation = session.messages[1:]

        active = ContextManager().get_active_messages(session, 8192)

        assert len(active) == 21
        assert active[0] is session.messages[0]
        assert _ids(active[1:]) == _ids(conversation[-20:])

    @pytest.mark.parametrize("pairs", [0, 3, 10, 11, 30])
    def test_window_length_is_min_of_length_and_twenty(self, pairs):
        session = _session(pairs, system=False)

        active = ContextManager().get_active_messages(session, 8192)

        expected = min(pairs * 2, ROLLING_WINDOW_SIZE)
        assert len(active) == expected
        assert _ids(active) == _ids(session.messages[len(session.messages) - expected:])

    def test_rolling_ignores_budget(self):
        session = _session(5, content="x" * 1000)

        active = ContextManager().get_active_messages(session, 10)

        assert len(active) == 11


class TestCompactionMode:
    def test_short_conversation_unchanged(self):
        session = _session(5, mode="compaction")

        active = ContextManager().get_active_messages(session, 8192)

        assert _ids(active) == _ids(session.messages)

    def test_older_messages_replaced_by_summary(self):
        session = _session(15, mode="compaction")
        conversation = session.messages[1:]

        active = ContextManager().get_active_messages(session, 8192)

        assert len(active) == 1 + 1 + COMPACTION_RECENT_COUNT
        assert active[0].content == "You are helpful"
        summary = active[1]
        assert summary.role == "system"
        assert summary.content == (
            "[Previous conversation summary: 20 messages (10 from user, "
            "10 from assistant) have been compacted to save context. The key "
            "points and topics discussed are preserved above this message.]"
        )
        assert _ids(active[2:]) == _ids(conversation[-10:])

    def test_summary_without_system_prompt(self):
        session = _session(6, mode="compaction", system=False)

        active = ContextManager().get_active_messages(session, 8192)

        assert len(active) == 11
        assert active[0].role == "system"
        assert "2 messages (1 from user, 1 from assistant)" in active[0].content

    def test_large_recent_messages_fall_back_to_rolling(self):
        # Recent ten messages cost 265 tokens, over 80% of a 300 token budget
        session = _session(15, mode="compaction", content="x" * 200)

        active = ContextManager().get_active_messages(session, 300)

        assert len(active) == 1 + ROLLING_WINDOW_SIZE
        assert all(m.role != "system" for m in active[1:])
        assert _ids(active[1:]) == _ids(session.messages[-20:])

    def test_fallback_threshold_is_inclusive(self):
        session = _session(15, mode="compaction", system=False)
        manager = ContextManager()
        recent_tokens = manager.token_estimator.estimate_messages(session.messages[-10:])
        assert recent_tokens == 20

        # 20 tokens is exactly 80% of 25
        assert len(manager.get_active_messages(session, 25)) == ROLLING_WINDOW_SIZE
        assert len(manager.get_active_messages(session, 26)) == 1 + COMPACTION_RECENT_COUNT

    def test_summary_is_deterministic(self):
        session = _session(15, mode="compaction")
        manager = ContextManager()

        first = manager.get_active_messages(session, 8192)
        second = manager.get_active_messages(session, 8192)

        assert first[1] == second[1]


class TestHaltingMode:
    def test_under_budget_returns_everything(self):
        session = _session(15, mode="halting")

        active = ContextManager().get_active_messages(session, 8192)

        assert _ids(active) == _ids(session.messages)

    def test_over_budget_raises_without_mutation(self):
        session = _session(15, mode="halting", content="x" * 400)
        before = [(m.message_id, m.content) for m in session.messages]

        with pytest.raises(ContextLimitExceededError) as exc_info:
            ContextManager().get_active_messages(session, 100)

        assert exc_info.value.max_tokens == 100
        assert exc_info.value.token_count > 100
        assert "Context limit exceeded" in str(exc_info.value)
        assert [(m.message_id, m.content) for m in session.messages] == before

    def test_session_limit_applies(self):
        session = _session(3, mode="halting", limit=1)

        with pytest.raises(ContextLimitExceededError):
            ContextManager().get_active_messages(session, 8192)


class TestUserMessageMetadata:
    def test_naive_timestamp_is_local_time(self):
        message = Message(
            role="user", content="What's up?", message_id="u1", timestamp=TIMESTAMP
        )

        formatted = ContextManager.format_user_message(message)

        assert formatted.content == (
            "<metadata>\n"
            '  <datetime datetime="2024-03-15 14:30:00" month="March" day="Friday" />\n'
            "</metadata>\n\n"
            "What's up?"
        )
        assert message.content == "What's up?"

    def test_utc_timestamp_converted_to_local(self):
        message = Message(
            role="user",
            content="Hi",
            message_id="u1",
            timestamp="2024-03-15T14:30:00Z",
        )
        local = datetime.fromisoformat("2024-03-15T14:30:00+00:00").astimezone()

        formatted = ContextManager.format_user_message(message)

        assert f'datetime="{local.strftime("%Y-%m-%d %H:%M:%S")}"' in formatted.content

    def test_invalid_timestamp_left_unprefixed(self):
        message = Message(role="user", content="Hi", message_id="u1", timestamp="")

        formatted = ContextManager.format_user_message(message)

        assert formatted.content == "Hi"
        assert formatted is not message

    def test_only_user_messages_are_prefixed(self):
        session = _session(2)

        active = ContextManager().get_active_messages(session, 8192)

        for message in active:
            if message.role == "user":
                assert message.content.startswith("<metadata>")
            else:
                assert not message.content.startswith("<metadata>")

    def test_derivation_is_idempotent_and_stored_content_untouched(self):
        session = _session(3)
        manager = ContextManager()

        first = manager.get_active_messages(session, 8192)
        second = manager.get_active_messages(session, 8192)

        assert [m.content for m in first] == [m.content for m in second]
        assert session.messages[1].content == "hello 0"
        assert first[1].content.count("<metadata>") == 1


def test_context_state_projection():
    session = _session(15)
    manager = ContextManager()

    state = manager.get_context_state(session, 4096)

    assert len(state.messages) == 31
    assert len(state.active_messages) == 21
    assert state.max_tokens == 4096
    assert state.current_tokens == manager.token_estimator.estimate_messages(
        state.active_messages
    )
    assert len(session.messages) == 31
