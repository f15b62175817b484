"""Chat API endpoints.

This module provides the streaming chat endpoint and the endpoints that
steer a running turn: answering tool permission prompts and cancelling.

A turn runs in a background task that feeds an event queue. The SSE
response drains the queue, so permission decisions and cancellation can
arrive on separate requests while the stream is open.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from delver_server.config import DelverServerSettings
from delver_server.context import ContextManager
from delver_server.dependencies import (
    get_app_settings,
    get_context_manager,
    get_permission_manager,
    get_provider,
    get_session_manager,
    get_tool_registry,
    get_turn_registry,
)
from delver_server.exceptions import (
    ContextLimitExceededError,
    DelverServerError,
    TurnInProgressError,
)
from delver_server.generation import ChatLoop, ChatLoopCallbacks, TurnOutcome
from delver_server.models.chat import (
    CancelResponse,
    ChatRequest,
    ContentDeltaEvent,
    DoneEvent,
    ErrorEvent,
    MessageCompleteEvent,
    PermissionDecisionRequest,
    PermissionDecisionResponse,
    ThinkingDeltaEvent,
    ToolCallsCompleteEvent,
    ToolCallsEvent,
    ToolPermissionRequestEvent,
)
from delver_server.models.sessions import ToolCallResponse
from delver_server.providers import BaseProvider, GenerationChunk
from delver_server.services import ActiveTurn, TurnRegistry, get_model_context_length
from delver_server.sessions import (
    ChatSession,
    Message,
    SessionManager,
    ToolCall,
    new_message_id,
    utc_timestamp,
)
from delver_server.tools import PermissionManager, ToolExecutionContext, ToolRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

CANCELLED_PLACEHOLDER = "(cancelled)"

# Turns keep running after a client disconnects until they observe the signal
_background_tasks: set[asyncio.Task] = set()


@dataclass
class _PartialResponse:
    """Text streamed in the current round, kept if the turn is cancelled."""

    content: str = ""
    thinking: str = ""

    def reset(self) -> None:
        self.content = ""
        self.thinking = ""


def _event(name: str, data: BaseModel) -> dict[str, str]:
    return {"event": name, "data": data.model_dump_json()}


def _tool_calls(tool_calls: list[ToolCall] | None) -> list[ToolCallResponse]:
    return [ToolCallResponse(**asdict(tc)) for tc in tool_calls or []]


def _keep_partial_message(session: ChatSession, partial: _PartialResponse) -> None:
    """Append what was streamed before cancellation as the final answer."""
    if not partial.content and not partial.thinking:
        return
    session.add_message(
        Message(
            role="assistant",
            content=partial.content or CANCELLED_PLACEHOLDER,
            thinking=partial.thinking or None,
            model=session.model,
            message_id=new_message_id(),
            timestamp=utc_timestamp(),
        )
    )
    logger.info(f"Kept partial response for cancelled turn in session {session.session_id}")


def _build_callbacks(
    session: ChatSession,
    session_manager: SessionManager,
    turn: ActiveTurn,
    queue: asyncio.Queue,
    partial: _PartialResponse,
) -> ChatLoopCallbacks:
    """Translate chat loop callbacks into SSE events on the queue."""
    usage: dict[str, Any] = {}

    async def on_chunk(chunk: GenerationChunk) -> None:
        if chunk.type == "content" and chunk.content:
            partial.content += chunk.content
            await queue.put(
                _event("content_delta", ContentDeltaEvent(content=chunk.content))
            )
        elif chunk.type == "thinking" and chunk.thinking:
            partial.thinking += chunk.thinking
            await queue.put(
                _event("thinking_delta", ThinkingDeltaEvent(thinking=chunk.thinking))
            )
        elif chunk.type == "tool_call":
            partial.reset()
            await queue.put(
                _event("tool_calls", ToolCallsEvent(tool_calls=_tool_calls(chunk.tool_calls)))
            )
        elif chunk.type == "done":
            usage.update(
                prompt_tokens=chunk.prompt_tokens,
                completion_tokens=chunk.completion_tokens,
                total_tokens=chunk.total_tokens,
            )

    async def on_tool_permission(tool_call: ToolCall) -> bool:
        request_id, decision = turn.create_permission_request()
        logger.info(
            f"Awaiting permission for {tool_call.name} in session {session.session_id} "
            f"(request {request_id})"
        )
        await queue.put(
            _event(
                "tool_permission_request",
                ToolPermissionRequestEvent(
                    request_id=request_id,
                    tool_name=tool_call.name,
                    arguments=tool_call.function.arguments,
                ),
            )
        )
        try:
            return await decision
        finally:
            turn.discard_permission_request(request_id)

    async def on_tool_calls_complete(message: Message) -> None:
        session_manager.save_session(session)
        await queue.put(
            _event(
                "tool_calls_complete",
                ToolCallsCompleteEvent(
                    message_id=message.message_id,
                    tool_calls=_tool_calls(message.tool_calls),
                ),
            )
        )

    async def on_complete(message: Message) -> None:
        await queue.put(
            _event(
                "message_complete",
                MessageCompleteEvent(
                    message_id=message.message_id,
                    model=message.model,
                    content=message.content,
                    thinking=message.thinking,
                    **usage,
                ),
            )
        )

    async def on_error(error: DelverServerError) -> None:
        details: dict[str, Any] = {"session_id": session.session_id}
        if isinstance(error, ContextLimitExceededError):
            details.update(token_count=error.token_count, max_tokens=error.max_tokens)
        await queue.put(
            _event("error", ErrorEvent(code=error.code, message=str(error), details=details))
        )

    return ChatLoopCallbacks(
        on_chunk=on_chunk,
        on_tool_permission=on_tool_permission,
        on_tool_calls_complete=on_tool_calls_complete,
        on_complete=on_complete,
        on_error=on_error,
    )


@router.post("/{session_id}/stream")
async def chat_streaming(
    session_id: str,
    request_body: ChatRequest,
    request: Request,
    provider: Annotated[BaseProvider, Depends(get_provider)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    tool_registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
    permission_manager: Annotated[PermissionManager, Depends(get_permission_manager)],
    context_manager: Annotated[ContextManager, Depends(get_context_manager)],
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
    settings: Annotated[DelverServerSettings, Depends(get_app_settings)],
) -> EventSourceResponse:
    """Run a turn and stream it via Server-Sent Events (SSE).

    Args:
        session_id: The session ID to chat with
        request_body: Chat request containing the optional new user message
        request: FastAPI request object

    Returns:
        EventSourceResponse with SSE events

    SSE Events:
        - content_delta: Each text chunk from the model
        - thinking_delta: Each reasoning chunk from thinking models
        - tool_calls: The model requested tool calls
        - tool_permission_request: A tool needs approval; answer via the
          permissions endpoint with the request_id
        - tool_calls_complete: All tool calls of a round were processed
        - message_complete: The final assistant message
        - error: The turn failed or was cancelled
        - done: Stream is complete, with the turn outcome

    Raises:
        HTTPException: 404 if session not found, 400 if there is nothing to
            respond to, 409 if a turn is already running for the session
    """
    try:
        session = session_manager.get_session(session_id)
    except FileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": {
                    "code": "session_not_found",
                    "message": f"Session {session_id} not found",
                    "details": {"session_id": session_id},
                }
            },
        )

    if request_body.message is None and not any(
        m.role != "system" for m in session.messages
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": {
                    "code": "empty_history",
                    "message": "Session has no messages to process",
                    "details": {},
                }
            },
        )

    try:
        turn = turn_registry.start(session_id)
    except TurnInProgressError as e:
        logger.warning(str(e))
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": {
                    "code": e.code,
                    "message": str(e),
                    "details": {"session_id": session_id},
                }
            },
        )

    try:
        if request_body.message is not None:
            session.add_message(
                Message(
                    role="user",
                    content=request_body.message,
                    message_id=new_message_id(),
                    timestamp=utc_timestamp(),
                    editable=True,
                )
            )
            session_manager.save_session(session)
            logger.info(f"Added user message to session {session_id}")

        context_length = await get_model_context_length(
            provider, session.model, settings.default_context_length
        )
    except BaseException:
        turn_registry.finish(turn)
        raise

    chat_loop = ChatLoop(
        provider=provider.for_turn(),
        tool_registry=tool_registry,
        permission_manager=permission_manager,
        context_manager=context_manager,
        model_max_tokens=context_length,
        temperature=settings.temperature,
    )
    execution_context = ToolExecutionContext(
        vault_path=settings.resolved_vault_dir,
        session_id=session_id,
        session=session,
    )
    queue: asyncio.Queue = asyncio.Queue()
    partial = _PartialResponse()
    callbacks = _build_callbacks(session, session_manager, turn, queue, partial)

    async def run_turn() -> TurnOutcome:
        outcome = TurnOutcome.ERRORED
        try:
            outcome = await chat_loop.run(
                session, execution_context, callbacks, signal=turn.signal
            )
            if outcome is TurnOutcome.CANCELLED:
                _keep_partial_message(session, partial)
        except Exception as e:
            logger.error(f"Turn crashed for session {session_id}: {e}", exc_info=True)
            await queue.put(
                _event(
                    "error",
                    ErrorEvent(
                        code="generation_error",
                        message=f"Failed to generate response: {str(e)}",
                        details={"session_id": session_id},
                    ),
                )
            )
        finally:
            try:
                session_manager.save_session(session)
                logger.debug(f"Saved session {session_id} after turn")
            except OSError as e:
                logger.error(f"Failed to save session {session_id}: {e}")
                await queue.put(
                    _event(
                        "error",
                        ErrorEvent(
                            code="session_save_error",
                            message=f"Failed to save session: {str(e)}",
                            details={"session_id": session_id},
                        ),
                    )
                )
            turn_registry.finish(turn)
            await queue.put(
                _event("done", DoneEvent(session_id=session_id, outcome=outcome.value))
            )
            await queue.put(None)
        return outcome

    task = asyncio.create_task(run_turn())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    logger.info(f"Starting streaming chat for session {session_id}")

    async def event_generator():
        """Relay queued turn events until the turn has finished."""
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event

                if await request.is_disconnected():
                    logger.warning(
                        f"Client disconnected during streaming for session {session_id}"
                    )
                    break
        finally:
            if not task.done():
                turn.cancel()

    return EventSourceResponse(event_generator())


@router.post(
    "/{session_id}/permissions/{request_id}",
    response_model=PermissionDecisionResponse,
)
async def resolve_permission(
    session_id: str,
    request_id: str,
    request_body: PermissionDecisionRequest,
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
) -> PermissionDecisionResponse:
    """Answer a pending tool permission prompt.

    Raises:
        HTTPException: 404 if no turn is running or the request is unknown
    """
    turn = turn_registry.get(session_id)
    if turn is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active turn for session {session_id}",
        )

    try:
        turn.resolve_permission(request_id, request_body.approved)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Permission request {request_id} not found",
        )

    logger.info(
        f"Permission request {request_id} in session {session_id} "
        f"{'approved' if request_body.approved else 'denied'}"
    )
    return PermissionDecisionResponse(
        request_id=request_id, approved=request_body.approved
    )


@router.post("/{session_id}/cancel", response_model=CancelResponse)
async def cancel_turn(
    session_id: str,
    turn_registry: Annotated[TurnRegistry, Depends(get_turn_registry)],
) -> CancelResponse:
    """Cancel the running turn of a session.

    Cancelling is idempotent; without a running turn nothing happens.
    """
    turn = turn_registry.get(session_id)
    if turn is None:
        return CancelResponse(session_id=session_id, cancelled=False)

    turn.cancel()
    return CancelResponse(session_id=session_id, cancelled=True)
