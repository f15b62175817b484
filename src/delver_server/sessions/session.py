"""ChatSession class for managing individual chat sessions.

This module provides the ChatSession class which handles:
- Loading and saving session data to JSON files
- Appending messages to the conversation history
- Editing, deleting and truncating messages between turns
- Managing the system prompt and session settings
"""

import json
import logging
import uuid
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from delver_server.sessions.types import (
    CONTEXT_MODES,
    ContextMode,
    Message,
    SessionMetadata,
)

logger = logging.getLogger(__name__)

_MESSAGE_FIELDS = {f.name for f in fields(Message)}


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO 8601 string with a Z suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="microseconds")
        .replace("+00:00", "Z")
    )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing Z.

    Naive timestamps are returned as-is and are treated as local time
    by callers.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def new_message_id() -> str:
    """Generate a 10-character hexadecimal message ID."""
    return uuid.uuid4().hex[:10]


def message_from_dict(data: dict[str, Any]) -> Message:
    """Convert a dictionary to a Message, ignoring unknown keys.

    Raises:
        ValueError: If the role is unknown or a tool message has no tool_name
    """
    return Message(**{k: v for k, v in data.items() if k in _MESSAGE_FIELDS})


class ChatSession:
    """Represents a single chat session with message history and metadata.

    Messages are kept in conversation order. At most one system message
    exists and it is always at index 0.

    A session is persisted as a JSON file with the following structure:
    {
        "metadata": {...},
        "messages": [...]
    }
    """

    def __init__(
        self,
        session_id: str,
        model: str,
        messages: list[Message] | None = None,
        metadata: SessionMetadata | None = None,
    ):
        """Initialize a ChatSession.

        Args:
            session_id: Unique session identifier (10-char hex)
            model: The LLM model name for this session
            messages: Initial message history (default: empty)
            metadata: Session metadata (default: auto-generated)
        """
        self.session_id = session_id
        self.model = model
        self.messages: list[Message] = messages or []

        if metadata is None:
            now = utc_timestamp()
            self.metadata = SessionMetadata(
                session_id=session_id,
                model=model,
                created_at=now,
                updated_at=now,
                message_count=len(self.messages),
            )
        else:
            self.metadata = metadata

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def context_mode(self) -> ContextMode:
        return self.metadata.context_mode

    @property
    def context_limit(self) -> int | None:
        return self.metadata.context_limit

    def _touch(self) -> None:
        """Bump updated_at, never moving it backwards."""
        now = utc_timestamp()
        try:
            if parse_timestamp(now) <= parse_timestamp(self.metadata.updated_at):
                return
        except (ValueError, TypeError):
            pass
        self.metadata.updated_at = now

    def _sync_count(self) -> None:
        self.metadata.message_count = len(self.messages)
        self._touch()

    def add_message(self, message: Message) -> None:
        """Append a message to the session history.

        Args:
            message: The message to add

        Raises:
            ValueError: If a system message is appended after other messages
        """
        if message.role == "system" and self.messages:
            raise ValueError("System message must be the first message")
        self.messages.append(message)
        self._sync_count()

    def edit_message(self, index: int, content: str) -> None:
        """Edit a message and truncate all messages after it.

        This is used when a user wants to edit a previous message and
        regenerate the conversation from that point. The timestamp is
        refreshed so cached token estimates are recomputed.

        Args:
            index: The index of the message to edit (0-based)
            content: The new content for the message

        Raises:
            IndexError: If index is out of range
            ValueError: If trying to edit a system or tool message
        """
        message = self._get(index)
        if message.role not in ("user", "assistant"):
            raise ValueError("Can only edit user or assistant messages")

        message.content = content
        message.timestamp = utc_timestamp()
        self.messages = self.messages[: index + 1]
        self._sync_count()

    def delete_message(self, index: int) -> Message:
        """Remove a single message from the history.

        Raises:
            IndexError: If index is out of range
            ValueError: If trying to delete the system message
        """
        message = self._get(index)
        if message.role == "system":
            raise ValueError("Use remove_system_prompt to delete the system message")
        self.messages.pop(index)
        self._sync_count()
        return message

    def _get(self, index: int) -> Message:
        if index < 0 or index >= len(self.messages):
            raise IndexError(
                f"Message index {index} out of range (0-{len(self.messages) - 1})"
            )
        return self.messages[index]

    def update_model(self, model: str) -> None:
        """Update the model used by this session."""
        self.model = model
        self.metadata.model = model
        self._touch()

    def rename(self, name: str) -> None:
        """Set the display name of this session."""
        self.metadata.name = name
        self._touch()

    def update_context_settings(
        self,
        context_mode: ContextMode | None = None,
        context_limit: int | None = None,
    ) -> None:
        """Update the context mode and/or the context limit override.

        A context_limit of 0 clears the override so the model default applies.

        Raises:
            ValueError: If the mode is unknown or the limit is negative
        """
        if context_mode is not None:
            if context_mode not in CONTEXT_MODES:
                raise ValueError(f"Unknown context mode: {context_mode}")
            self.metadata.context_mode = context_mode
        if context_limit is not None:
            if context_limit < 0:
                raise ValueError("Context limit must not be negative")
            self.metadata.context_limit = context_limit or None
        self._touch()

    def has_system_prompt(self) -> bool:
        """Check if the first message is a system message."""
        return len(self.messages) > 0 and self.messages[0].role == "system"

    def get_system_prompt(self) -> Message | None:
        return self.messages[0] if self.has_system_prompt() else None

    def set_system_prompt(self, content: str) -> None:
        """Set or replace the system prompt at index 0.

        This does NOT truncate the conversation history.
        """
        system_message = Message(
            role="system",
            content=content,
            message_id=new_message_id(),
            timestamp=utc_timestamp(),
        )

        if self.has_system_prompt():
            self.messages[0] = system_message
            logger.debug(f"Replaced system prompt in session {self.session_id}")
        else:
            self.messages.insert(0, system_message)
            logger.debug(f"Added system prompt to session {self.session_id}")

        self._sync_count()

    def remove_system_prompt(self) -> None:
        """Remove the system prompt from this session.

        Raises:
            ValueError: If no system prompt exists to remove
        """
        if not self.has_system_prompt():
            raise ValueError("No system prompt to remove")

        self.messages.pop(0)
        logger.debug(f"Removed system prompt from session {self.session_id}")
        self._sync_count()

    def to_dict(self) -> dict[str, Any]:
        """Convert session to a dictionary for JSON serialization."""
        return {
            "metadata": asdict(self.metadata),
            "messages": [asdict(msg) for msg in self.messages],
        }

    def save(self, sessions_dir: Path) -> None:
        """Save the session to a JSON file.

        Args:
            sessions_dir: Directory where session files are stored
        """
        sessions_dir.mkdir(parents=True, exist_ok=True)
        file_path = sessions_dir / f"{self.session_id}.json"

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.debug(f"Saved session {self.session_id} to {file_path}")

    @classmethod
    def load(cls, session_id: str, sessions_dir: Path) -> "ChatSession":
        """Load a session from a JSON file.

        Args:
            session_id: The session ID to load
            sessions_dir: Directory where session files are stored

        Returns:
            Loaded ChatSession instance

        Raises:
            FileNotFoundError: If session file doesn't exist
            ValueError: If session data is invalid
        """
        file_path = sessions_dir / f"{session_id}.json"

        if not file_path.exists():
            raise FileNotFoundError(f"Session {session_id} not found")

        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        metadata_dict = data["metadata"]
        metadata = SessionMetadata(
            session_id=metadata_dict["session_id"],
            model=metadata_dict["model"],
            created_at=metadata_dict["created_at"],
            updated_at=metadata_dict["updated_at"],
            name=metadata_dict.get("name", "New chat"),
            context_mode=metadata_dict.get("context_mode", "rolling"),
            context_limit=metadata_dict.get("context_limit"),
            message_count=metadata_dict.get("message_count", 0),
            format_version=metadata_dict.get("format_version", "1.0"),
        )

        messages = [message_from_dict(msg) for msg in data.get("messages", [])]

        return cls(
            session_id=session_id,
            model=metadata.model,
            messages=messages,
            metadata=metadata,
        )

    @staticmethod
    def generate_session_id() -> str:
        """Generate a new unique session ID.

        Returns:
            10-character hexadecimal string
        """
        return uuid.uuid4().hex[:10]

    def get_preview(self, max_length: int = 100) -> str:
        """Get a preview of the session (first user message)."""
        for message in self.messages:
            if message.role == "user":
                content = message.content
                if len(content) > max_length:
                    return content[: max_length - 3] + "..."
                return content
        return ""
