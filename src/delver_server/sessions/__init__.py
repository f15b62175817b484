"""Session management for delver-server.

This package provides session persistence, message history management,
and CRUD operations for chat sessions.
"""

from delver_server.sessions.manager import SessionManager
from delver_server.sessions.session import (
    ChatSession,
    new_message_id,
    parse_timestamp,
    utc_timestamp,
)
from delver_server.sessions.types import (
    CONTEXT_MODES,
    ContextMode,
    Message,
    PermissionStatus,
    SessionCreationOptions,
    SessionMetadata,
    ToolCall,
    ToolFunction,
)

__all__ = [
    # Core classes
    "ChatSession",
    "SessionManager",
    # Message types
    "Message",
    "ToolCall",
    "ToolFunction",
    "PermissionStatus",
    # Configuration types
    "ContextMode",
    "CONTEXT_MODES",
    "SessionMetadata",
    "SessionCreationOptions",
    # Helpers
    "new_message_id",
    "parse_timestamp",
    "utc_timestamp",
]
