"""Sessions router for chat session CRUD operations.

This module provides REST API endpoints for:
- Creating new sessions
- Listing all sessions
- Retrieving, updating and deleting sessions
- Getting, editing and deleting session messages
- Inspecting the context that would be sent to the model
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from delver_server.config import DelverServerSettings
from delver_server.context import ContextManager
from delver_server.dependencies import (
    get_app_settings,
    get_context_manager,
    get_provider,
    get_session_manager,
    get_turn_registry,
)
from delver_server.exceptions import ContextLimitExceededError
from delver_server.models.sessions import (
    ContextStateResponse,
    CreateSessionRequest,
    EditMessageRequest,
    MessageResponse,
    MessagesResponse,
    SessionDetailResponse,
    SessionListItem,
    SessionListResponse,
    SessionResponse,
    UpdateSessionRequest,
)
from delver_server.prompts import render_system_prompt
from delver_server.providers import BaseProvider
from delver_server.services import TurnRegistry, get_model_context_length
from delver_server.sessions import SessionCreationOptions, SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])


def _session_not_found(session_id: str) -> HTTPException:
    logger.warning(f"Session {session_id} not found")
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Session {session_id} not found",
    )


def _ensure_idle(turn_registry: TurnRegistry, session_id: str) -> None:
    """Reject session changes while a turn is running on the session."""
    if turn_registry.get(session_id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A turn is already running for session {session_id}",
        )


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new session",
)
async def create_session(
    request: CreateSessionRequest,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    settings: Annotated[DelverServerSettings, Depends(get_app_settings)],
) -> SessionResponse:
    """Create a new chat session.

    Omitted fields fall back to the configured defaults. When no system
    prompt is given the default prompt is used; an empty string creates
    the session without one.

    Args:
        request: Session creation parameters
        session_manager: Injected SessionManager
        settings: Injected settings

    Returns:
        Created session metadata

    Raises:
        HTTPException: 400 if the context settings are invalid
    """
    system_prompt = request.system_prompt
    if system_prompt is None:
        system_prompt = render_system_prompt(
            settings.system_prompt, settings.assistant_name
        )

    options = SessionCreationOptions(
        model=request.model or settings.default_model,
        name=request.name,
        context_mode=request.context_mode or settings.default_context_mode,
        context_limit=request.context_limit,
        system_prompt=system_prompt,
    )

    try:
        session = session_manager.create_session(options)
    except ValueError as e:
        logger.warning(f"Session creation failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SessionResponse.from_session(session)


@router.get(
    "",
    response_model=SessionListResponse,
    summary="List all sessions",
)
async def list_sessions(
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionListResponse:
    """List all chat sessions, most recently updated first.

    Args:
        session_manager: Injected SessionManager

    Returns:
        List of session summaries with a preview of the first user message
    """
    sessions = session_manager.list_sessions()

    items = [
        SessionListItem(
            **SessionResponse.from_session(session).model_dump(),
            preview=session.get_preview(),
        )
        for session in sessions
    ]
    return SessionListResponse(sessions=items)


@router.get(
    "/{session_id}",
    response_model=SessionDetailResponse,
    summary="Get session details",
)
async def get_session(
    session_id: str,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionDetailResponse:
    """Get full details of a specific session including message history.

    Raises:
        HTTPException: 404 if session not found
    """
    try:
        session = session_manager.get_session(session_id)
    except FileNotFoundError:
        raise _session_not_found(session_id)

    return SessionDetailResponse(
        **SessionResponse.from_session(session).model_dump(),
        messages=[MessageResponse.from_message(m) for m in session.messages],
    )


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a session",
)
async def delete_session(
    session_id: str,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
) -> None:
    """Delete a chat session permanently.

    Raises:
        HTTPException: 404 if session not found
        HTTPException: 409 if a turn is running on the session
    """
    _ensure_idle(turn_registry, session_id)
    try:
        session_manager.delete_session(session_id)
    except FileNotFoundError:
        raise _session_not_found(session_id)


@router.patch(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Update session settings",
)
async def update_session(
    session_id: str,
    request: UpdateSessionRequest,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
) -> SessionResponse:
    """Update name, model, context mode or context limit.

    A context_limit of 0 resets the budget to the model's context length.

    Raises:
        HTTPException: 404 if session not found
        HTTPException: 400 if the settings are invalid
        HTTPException: 409 if a turn is running on the session
    """
    _ensure_idle(turn_registry, session_id)
    try:
        session = session_manager.update_session(
            session_id=session_id,
            name=request.name,
            model=request.model,
            context_mode=request.context_mode,
            context_limit=request.context_limit,
        )
    except FileNotFoundError:
        raise _session_not_found(session_id)
    except ValueError as e:
        logger.warning(f"Session update failed: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SessionResponse.from_session(session)


@router.get(
    "/{session_id}/messages",
    response_model=MessagesResponse,
    summary="Get session messages",
)
async def get_messages(
    session_id: str,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessagesResponse:
    """Get all messages from a session.

    Raises:
        HTTPException: 404 if session not found
    """
    try:
        session = session_manager.get_session(session_id)
    except FileNotFoundError:
        raise _session_not_found(session_id)

    return MessagesResponse(
        messages=[MessageResponse.from_message(m) for m in session.messages]
    )


@router.put(
    "/{session_id}/messages/{message_index}",
    response_model=MessagesResponse,
    summary="Edit a message and truncate subsequent messages",
)
async def edit_message(
    session_id: str,
    message_index: int,
    request: EditMessageRequest,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
) -> MessagesResponse:
    """Edit a message in the session and remove all messages after it.

    This allows users to branch the conversation from any point by editing
    a previous message. Only user and assistant messages can be edited.

    Args:
        session_id: The session ID
        message_index: The index of the message to edit (0-based)
        request: New message content
        session_manager: Injected SessionManager
        turn_registry: Injected TurnRegistry

    Returns:
        The remaining messages

    Raises:
        HTTPException: 404 if session not found
        HTTPException: 400 if message_index is out of range or not editable
        HTTPException: 409 if a turn is running on the session
    """
    _ensure_idle(turn_registry, session_id)
    try:
        session = session_manager.get_session(session_id)
    except FileNotFoundError:
        raise _session_not_found(session_id)

    try:
        session.edit_message(message_index, request.content)
    except (IndexError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session_manager.save_session(session)
    logger.info(
        f"Edited message {message_index} in session {session_id} and truncated subsequent messages"
    )
    return MessagesResponse(
        messages=[MessageResponse.from_message(m) for m in session.messages]
    )


@router.delete(
    "/{session_id}/messages/{message_index}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a single message",
)
async def delete_message(
    session_id: str,
    message_index: int,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
) -> None:
    """Remove one message from the history.

    Raises:
        HTTPException: 404 if session not found
        HTTPException: 400 if message_index is out of range or the system message
        HTTPException: 409 if a turn is running on the session
    """
    _ensure_idle(turn_registry, session_id)
    try:
        session = session_manager.get_session(session_id)
    except FileNotFoundError:
        raise _session_not_found(session_id)

    try:
        session.delete_message(message_index)
    except (IndexError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session_manager.save_session(session)
    logger.info(f"Deleted message {message_index} from session {session_id}")


@router.get(
    "/{session_id}/context",
    response_model=ContextStateResponse,
    summary="Get the active context of a session",
)
async def get_context_state(
    session_id: str,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    context_manager: Annotated[ContextManager, Depends(get_context_manager)],
    provider: Annotated[BaseProvider, Depends(get_provider)],
    settings: Annotated[DelverServerSettings, Depends(get_app_settings)],
) -> ContextStateResponse:
    """Show which messages the next round would send and their token cost.

    Raises:
        HTTPException: 404 if session not found
        HTTPException: 400 in halting mode when the conversation is over budget
    """
    try:
        session = session_manager.get_session(session_id)
    except FileNotFoundError:
        raise _session_not_found(session_id)

    context_length = await get_model_context_length(
        provider, session.model, settings.default_context_length
    )

    try:
        state = context_manager.get_context_state(session, context_length)
    except ContextLimitExceededError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": {
                    "code": e.code,
                    "message": str(e),
                    "details": {
                        "token_count": e.token_count,
                        "max_tokens": e.max_tokens,
                    },
                }
            },
        )

    return ContextStateResponse(
        session_id=session.session_id,
        context_mode=session.context_mode,
        message_count=len(state.messages),
        active_message_count=len(state.active_messages),
        current_tokens=state.current_tokens,
        max_tokens=state.max_tokens,
        active_messages=[
            MessageResponse.from_message(m) for m in state.active_messages
        ],
    )
