"""Data types for session management.

This module defines the core data structures for chat sessions, messages,
tool calls and session configuration.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

ContextMode = Literal["rolling", "compaction", "halting"]
PermissionStatus = Literal["pending", "approved", "denied"]

MESSAGE_ROLES = ("system", "user", "assistant", "tool")
CONTEXT_MODES = ("rolling", "compaction", "halting")


@dataclass
class ToolFunction:
    """The function part of a tool call: name plus structured arguments."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCall:
    """A request from the model to invoke a named tool.

    The permission status, result and error are filled in while the tool
    call is processed. ``result`` and ``error`` are mutually exclusive, use
    ``set_result`` and ``set_error`` to keep them that way.
    """

    function: ToolFunction
    permission_status: PermissionStatus | None = None
    result: str | None = None
    error: str | None = None

    @property
    def name(self) -> str:
        return self.function.name

    def set_result(self, result: str) -> None:
        self.result = result
        self.error = None

    def set_error(self, error: str) -> None:
        self.error = error
        self.result = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ToolCall":
        """Build a ToolCall from stored data or an Ollama tool call payload.

        Args:
            data: Dict with a ``function`` entry holding ``name`` and ``arguments``

        Returns:
            ToolCall: The parsed tool call
        """
        function = data.get("function") or {}
        arguments = function.get("arguments") or {}
        return ToolCall(
            function=ToolFunction(
                name=function.get("name", ""),
                arguments=dict(arguments),
            ),
            permission_status=data.get("permission_status"),
            result=data.get("result"),
            error=data.get("error"),
        )


@dataclass
class Message:
    """A single message in a conversation.

    Attributes:
        role: One of system, user, assistant or tool
        content: Message text
        message_id: Unique message identifier
        timestamp: ISO 8601 timestamp; edits must refresh it
        thinking: Reasoning text streamed by thinking models
        tool_calls: Tool calls requested by an assistant message
        tool_name: Name of the tool that produced a tool-role message
        model: Model that generated an assistant message
        is_streaming: True while the message is still being generated
        editable: Whether the user may edit this message
    """

    role: str
    content: str = ""
    message_id: str = ""
    timestamp: str = ""
    thinking: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_name: str | None = None
    model: str | None = None
    is_streaming: bool | None = None
    editable: bool | None = None

    def __post_init__(self) -> None:
        """Validate the role and the tool_name requirement."""
        if self.role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {self.role}")
        if self.role == "tool" and not self.tool_name:
            raise ValueError("Tool messages require a tool_name")
        if self.tool_calls:
            self.tool_calls = [
                tc if isinstance(tc, ToolCall) else ToolCall.from_dict(tc)
                for tc in self.tool_calls
            ]


@dataclass
class SessionMetadata:
    """Metadata for a chat session."""

    session_id: str
    model: str
    created_at: str
    updated_at: str
    name: str = "New chat"
    context_mode: ContextMode = "rolling"
    context_limit: int | None = None
    message_count: int = 0
    format_version: str = "1.0"


@dataclass
class SessionCreationOptions:
    """Options for creating a new session."""

    model: str
    name: str | None = None
    context_mode: ContextMode = "rolling"
    context_limit: int | None = None
    system_prompt: str | None = None
