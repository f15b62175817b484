"""Context window selection for chat sessions.

This module provides the ContextManager which decides which messages of a
session are sent to the model. Three context modes are supported:

- rolling: keep the last ROLLING_WINDOW_SIZE conversation messages
- compaction: replace older messages with a placeholder summary and keep
  the last COMPACTION_RECENT_COUNT messages
- halting: send everything, or refuse when the budget is exceeded

The system prompt is always sent first and is never dropped. User messages
are sent with a metadata block carrying their date and time.
"""

import logging
from dataclasses import dataclass, replace

from delver_server.context.token_estimation import TokenEstimator
from delver_server.exceptions import ContextLimitExceededError
from delver_server.sessions.session import ChatSession, parse_timestamp
from delver_server.sessions.types import Message

logger = logging.getLogger(__name__)

ROLLING_WINDOW_SIZE = 20
COMPACTION_RECENT_COUNT = 10
COMPACTION_FALLBACK_THRESHOLD = 0.8

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


@dataclass
class ContextState:
    """Read-only view of a session's context for display.

    Attributes:
        messages: Full conversation history
        active_messages: Messages that would be sent to the model
        current_tokens: Estimated token count of the active messages
        max_tokens: The token budget in effect
    """

    messages: list[Message]
    active_messages: list[Message]
    current_tokens: int
    max_tokens: int


class ContextManager:
    """Selects the active message window for a session.

    Attributes:
        token_estimator: Cached estimator shared across calls
    """

    def __init__(self, token_estimator: TokenEstimator | None = None) -> None:
        self.token_estimator = token_estimator or TokenEstimator()

    @staticmethod
    def resolve_max_tokens(session: ChatSession, provider_max_tokens: int) -> int:
        """Return the session override if set and positive, else the provider limit."""
        if session.context_limit is not None and session.context_limit > 0:
            return session.context_limit
        return provider_max_tokens

    def get_active_messages(
        self, session: ChatSession, provider_max_tokens: int
    ) -> list[Message]:
        """Get the messages to send to the model for this session.

        Stored messages are never modified; user messages are returned as
        prefixed copies.

        Args:
            session: The chat session
            provider_max_tokens: Context length reported by the provider

        Returns:
            The system prompt (if any) followed by the selected conversation

        Raises:
            ContextLimitExceededError: In halting mode when the conversation
                is larger than the budget
        """
        system_prompt = session.get_system_prompt()
        conversation = [m for m in session.messages if m.role != "system"]
        max_tokens = self.resolve_max_tokens(session, provider_max_tokens)

        mode = session.context_mode
        if mode == "rolling":
            active = self._apply_rolling_window(conversation)
        elif mode == "compaction":
            active = self._apply_compaction(conversation, max_tokens)
        elif mode == "halting":
            active = self._apply_halting(conversation, max_tokens)
        else:
            raise ValueError(f"Unknown context mode: {mode}")

        active = [
            self.format_user_message(m) if m.role == "user" else m for m in active
        ]

        if system_prompt is not None:
            active.insert(0, system_prompt)

        logger.debug(
            f"Session {session.session_id} ({mode}): "
            f"{len(active)} of {len(session.messages)} messages active"
        )
        return active

    def get_context_state(
        self, session: ChatSession, provider_max_tokens: int
    ) -> ContextState:
        """Project the session's context for display without side effects.

        Raises:
            ContextLimitExceededError: In halting mode when over budget
        """
        active = self.get_active_messages(session, provider_max_tokens)
        return ContextState(
            messages=list(session.messages),
            active_messages=active,
            current_tokens=self.token_estimator.estimate_messages(active),
            max_tokens=self.resolve_max_tokens(session, provider_max_tokens),
        )

    def _apply_rolling_window(self, messages: list[Message]) -> list[Message]:
        return messages[-ROLLING_WINDOW_SIZE:]

    def _apply_compaction(
        self, messages: list[Message], max_tokens: int
    ) -> list[Message]:
        if len(messages) <= COMPACTION_RECENT_COUNT:
            return list(messages)

        recent = messages[-COMPACTION_RECENT_COUNT:]
        older = messages[:-COMPACTION_RECENT_COUNT]

        recent_tokens = self.token_estimator.estimate_messages(recent)
        if recent_tokens >= max_tokens * COMPACTION_FALLBACK_THRESHOLD:
            # Recent messages alone are too large to pair with a summary
            logger.debug(
                f"Compaction fallback to rolling window: "
                f"{recent_tokens} recent tokens, budget {max_tokens}"
            )
            return self._apply_rolling_window(messages)

        return [self._create_compaction_summary(older), *recent]

    def _apply_halting(
        self, messages: list[Message], max_tokens: int
    ) -> list[Message]:
        token_count = self.token_estimator.estimate_messages(messages)
        if token_count > max_tokens:
            raise ContextLimitExceededError(token_count, max_tokens)
        return list(messages)

    @staticmethod
    def _create_compaction_summary(messages: list[Message]) -> Message:
        """Create the placeholder summary for compacted messages.

        No summarization is performed; the message only states what was
        dropped.
        """
        user_count = sum(1 for m in messages if m.role == "user")
        assistant_count = sum(1 for m in messages if m.role == "assistant")
        last = messages[-1]

        return Message(
            role="system",
            content=(
                f"[Previous conversation summary: {len(messages)} messages "
                f"({user_count} from user, {assistant_count} from assistant) "
                f"have been compacted to save context. The key points and topics "
                f"discussed are preserved above this message.]"
            ),
            message_id=f"compaction-{last.message_id}",
            timestamp=last.timestamp,
        )

    @staticmethod
    def format_user_message(message: Message) -> Message:
        """Return a copy of a user message prefixed with a date/time block.

        The block is derived from the message's own timestamp in local time,
        so repeated calls produce identical content.
        """
        try:
            when = parse_timestamp(message.timestamp)
        except (ValueError, TypeError):
            logger.warning(
                f"Message {message.message_id} has an invalid timestamp, "
                f"sending without metadata"
            )
            return replace(message)

        if when.tzinfo is not None:
            when = when.astimezone()

        metadata = (
            "<metadata>\n"
            f'  <datetime datetime="{when.strftime("%Y-%m-%d %H:%M:%S")}" '
            f'month="{MONTH_NAMES[when.month - 1]}" '
            f'day="{DAY_NAMES[when.weekday()]}" />\n'
            "</metadata>\n\n"
        )
        return replace(message, content=metadata + message.content)

    def clear_cache(self) -> None:
        self.token_estimator.clear_cache()
