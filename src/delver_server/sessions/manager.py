"""SessionManager for CRUD operations on chat sessions.

This module provides the SessionManager class which handles:
- Creating new sessions with an initial system prompt
- Listing sessions sorted by last update
- Retrieving, updating and deleting sessions
"""

import logging
from pathlib import Path

from delver_server.sessions.session import (
    ChatSession,
    new_message_id,
    utc_timestamp,
)
from delver_server.sessions.types import (
    ContextMode,
    Message,
    SessionCreationOptions,
)

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages chat sessions with CRUD operations.

    The SessionManager operates on a directory of JSON session files.
    """

    def __init__(self, sessions_dir: Path):
        self.sessions_dir = sessions_dir
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

    def create_session(self, options: SessionCreationOptions) -> ChatSession:
        """Create and persist a new chat session.

        Args:
            options: Session creation options including model and prompt

        Returns:
            The newly created ChatSession

        Raises:
            ValueError: If the context settings are invalid
        """
        session_id = ChatSession.generate_session_id()
        session = ChatSession(session_id=session_id, model=options.model)

        if options.name:
            session.rename(options.name)
        session.update_context_settings(
            context_mode=options.context_mode,
            context_limit=options.context_limit,
        )

        if options.system_prompt:
            session.add_message(
                Message(
                    role="system",
                    content=options.system_prompt,
                    message_id=new_message_id(),
                    timestamp=utc_timestamp(),
                )
            )

        session.save(self.sessions_dir)

        logger.info(f"Created new session {session_id} with model {options.model}")
        return session

    def list_sessions(self) -> list[ChatSession]:
        """List all sessions, newest first."""
        sessions: list[ChatSession] = []

        for file_path in self.sessions_dir.glob("*.json"):
            session_id = file_path.stem
            try:
                sessions.append(ChatSession.load(session_id, self.sessions_dir))
            except Exception as e:
                logger.warning(f"Failed to load session {session_id}: {e}")
                continue

        sessions.sort(key=lambda s: s.metadata.updated_at, reverse=True)

        logger.debug(f"Listed {len(sessions)} sessions")
        return sessions

    def get_session(self, session_id: str) -> ChatSession:
        """Get a specific session by ID.

        Raises:
            FileNotFoundError: If session doesn't exist
        """
        session = ChatSession.load(session_id, self.sessions_dir)
        logger.debug(f"Retrieved session {session_id}")
        return session

    def save_session(self, session: ChatSession) -> None:
        session.save(self.sessions_dir)

    def delete_session(self, session_id: str) -> None:
        """Delete a session.

        Raises:
            FileNotFoundError: If session doesn't exist
        """
        file_path = self.sessions_dir / f"{session_id}.json"

        if not file_path.exists():
            raise FileNotFoundError(f"Session {session_id} not found")

        file_path.unlink()
        logger.info(f"Deleted session {session_id}")

    def update_session(
        self,
        session_id: str,
        name: str | None = None,
        model: str | None = None,
        context_mode: ContextMode | None = None,
        context_limit: int | None = None,
    ) -> ChatSession:
        """Update session settings.

        Args:
            session_id: The session ID to update
            name: Optional new display name
            model: Optional new model name
            context_mode: Optional new context mode
            context_limit: Optional new limit override, 0 resets it

        Returns:
            The updated ChatSession

        Raises:
            FileNotFoundError: If session doesn't exist
            ValueError: If the context settings are invalid
        """
        session = self.get_session(session_id)

        if name is not None:
            session.rename(name)
        if model is not None:
            session.update_model(model)
        if context_mode is not None or context_limit is not None:
            session.update_context_settings(
                context_mode=context_mode,
                context_limit=context_limit,
            )

        session.save(self.sessions_dir)

        logger.info(f"Updated session {session_id}")
        return session
