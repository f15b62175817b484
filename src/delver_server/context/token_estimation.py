"""Token estimation utilities.

Uses a simple heuristic of roughly four characters per token.
"""

import json
import math
from dataclasses import asdict

from delver_server.sessions.types import Message

CHARS_PER_TOKEN = 4


def _without_none(items: list[tuple[str, object]]) -> dict:
    # Unset tool call fields are left out of the serialized form
    return {key: value for key, value in items if value is not None}


class TokenEstimator:
    """Heuristic, cached token counter for messages.

    Estimates are cached by (message_id, timestamp). Editing a message must
    refresh its timestamp, otherwise the stale estimate is returned.
    """

    def __init__(self) -> None:
        self._cache: dict[tuple[str, str], int] = {}

    def estimate_message(self, message: Message) -> int:
        """Estimate the token count for a single message."""
        key = (message.message_id, message.timestamp)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        char_count = len(message.content)
        if message.thinking:
            char_count += len(message.thinking)
        if message.tool_calls:
            tool_calls = [
                asdict(tc, dict_factory=_without_none) for tc in message.tool_calls
            ]
            char_count += len(
                json.dumps(
                    tool_calls,
                    separators=(",", ":"),
                    ensure_ascii=False,
                )
            )

        tokens = math.ceil(char_count / CHARS_PER_TOKEN)
        self._cache[key] = tokens
        return tokens

    def estimate_messages(self, messages: list[Message]) -> int:
        """Estimate the total token count for a list of messages."""
        return sum(self.estimate_message(m) for m in messages)

    def clear_cache(self) -> None:
        self._cache.clear()
