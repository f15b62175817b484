"""Chat loop orchestration.

The ChatLoop drives one assistant turn end-to-end:

1. Select the active messages for the session (ContextManager)
2. Stream a response from the provider, forwarding every chunk
3. If the model asked for tools, append its message, run each tool call in
   order under the permission policy and append one tool message per call
4. Go back to 2 with the extended session until the model answers without
   tool calls, the stream fails, or the turn is cancelled

Each top-level run ends in exactly one terminal state. COMPLETE reports
through on_complete; ERRORED and CANCELLED report through on_error.
"""

import asyncio
import inspect
import logging
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from delver_server.context.manager import ContextManager
from delver_server.exceptions import (
    ContextLimitExceededError,
    DelverServerError,
    GenerationCancelledError,
    GenerationError,
    PermissionDeniedError,
    ToolDeniedError,
    ToolDisabledError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from delver_server.generation.generate import generate
from delver_server.providers.base import BaseProvider, GenerationChunk
from delver_server.sessions.session import ChatSession, new_message_id, utc_timestamp
from delver_server.sessions.types import Message, ToolCall
from delver_server.tools.base import ToolExecutionContext
from delver_server.tools.permissions import PermissionManager
from delver_server.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_RESULT = "No result"


class TurnOutcome(str, Enum):
    """Terminal state of a turn."""

    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERRORED = "errored"


@dataclass
class ChatLoopCallbacks:
    """Hooks through which the caller observes and steers a turn.

    Every callback may be a plain function or a coroutine function.

    Attributes:
        on_chunk: Called for every content, thinking, tool_call and done chunk
        on_tool_permission: Asked before running a tool whose policy is ask;
            returns True to approve. May wait indefinitely.
        on_tool_calls_complete: Called after all tool calls of a round were
            processed, before generation continues
        on_complete: Called once with the final assistant message
        on_error: Called once when the turn fails or is cancelled
    """

    on_chunk: Callable[[GenerationChunk], Any]
    on_tool_permission: Callable[[ToolCall], Awaitable[bool] | bool]
    on_tool_calls_complete: Callable[[Message], Any] | None = None
    on_complete: Callable[[Message], Any] | None = None
    on_error: Callable[[DelverServerError], Any] | None = None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ChatLoop:
    """Runs one conversation turn against a provider.

    All collaborators are passed in, so a turn depends only on its inputs.

    Attributes:
        provider: Source of generation chunks
        tool_registry: Tools that can be advertised and executed
        permission_manager: Per-tool policies, read on every tool call
        context_manager: Selects the messages sent each round
        model_max_tokens: Context length of the model, used as the budget
            unless the session overrides it
        temperature: Optional sampling temperature
    """

    def __init__(
        self,
        provider: BaseProvider,
        tool_registry: ToolRegistry,
        permission_manager: PermissionManager,
        context_manager: ContextManager,
        model_max_tokens: int,
        temperature: float | None = None,
    ) -> None:
        self.provider = provider
        self.tool_registry = tool_registry
        self.permission_manager = permission_manager
        self.context_manager = context_manager
        self.model_max_tokens = model_max_tokens
        self.temperature = temperature

    async def run(
        self,
        session: ChatSession,
        execution_context: ToolExecutionContext,
        callbacks: ChatLoopCallbacks,
        signal: asyncio.Event | None = None,
    ) -> TurnOutcome:
        """Run a full turn for the session.

        Assistant and tool messages are appended to ``session.messages``;
        existing messages are never removed or reordered. A partially
        streamed answer is not appended when the turn is cancelled.

        Args:
            session: The session to extend
            execution_context: Context handed to every tool execution
            callbacks: Caller hooks
            signal: Optional cancellation event

        Returns:
            TurnOutcome: The terminal state reached
        """
        round_number = 0

        while True:
            round_number += 1

            if signal is not None and signal.is_set():
                return await self._fail(callbacks, GenerationCancelledError())

            try:
                active_messages = self.context_manager.get_active_messages(
                    session, self.model_max_tokens
                )
            except ContextLimitExceededError as e:
                return await self._fail(callbacks, e)

            tools = self.tool_registry.get_enabled_tools(
                self.permission_manager.get_all_permissions()
            )
            supports_thinking = await self._check_thinking_support(session.model)

            logger.info(
                f"Session {session.session_id} round {round_number}: "
                f"{len(active_messages)} messages, {len(tools)} tools"
            )

            draft = Message(
                role="assistant",
                content="",
                message_id=new_message_id(),
                timestamp=utc_timestamp(),
                model=session.model,
                is_streaming=True,
            )

            tool_calls_requested = False
            failure: DelverServerError | None = None
            try:
                async with aclosing(
                    generate(
                        self.provider,
                        active_messages,
                        session.model,
                        tools=tools,
                        temperature=self.temperature,
                        think=True if supports_thinking else None,
                        signal=signal,
                    )
                ) as stream:
                    async for chunk in stream:
                        if chunk.type == "content":
                            draft.content += chunk.content or ""
                            await _maybe_await(callbacks.on_chunk(chunk))
                        elif chunk.type == "thinking":
                            draft.thinking = (draft.thinking or "") + (
                                chunk.thinking or ""
                            )
                            await _maybe_await(callbacks.on_chunk(chunk))
                        elif chunk.type == "tool_call":
                            draft.tool_calls = list(chunk.tool_calls or [])
                            draft.is_streaming = False
                            await _maybe_await(callbacks.on_chunk(chunk))
                            session.add_message(draft)
                            tool_calls_requested = True
                            break
                        elif chunk.type == "done":
                            draft.is_streaming = False
                            await _maybe_await(callbacks.on_chunk(chunk))
                        elif chunk.type == "error":
                            draft.is_streaming = False
                            if chunk.cancelled:
                                failure = GenerationCancelledError()
                            else:
                                failure = GenerationError(chunk.error or "Unknown error")
                            break

                if failure is None and tool_calls_requested:
                    cancelled = await self._execute_tool_calls(
                        session, draft, execution_context, callbacks, signal
                    )
                    if cancelled:
                        failure = GenerationCancelledError()
                    elif callbacks.on_tool_calls_complete is not None:
                        await _maybe_await(callbacks.on_tool_calls_complete(draft))

            except Exception as e:
                logger.error(f"Turn failed for session {session.session_id}: {e}")
                failure = GenerationError(str(e) or "Unknown error")

            if failure is not None:
                return await self._fail(callbacks, failure)

            if not tool_calls_requested:
                draft.is_streaming = False
                session.add_message(draft)
                logger.info(
                    f"Session {session.session_id} turn complete: "
                    f"{len(draft.content)} characters"
                )
                if callbacks.on_complete is not None:
                    await _maybe_await(callbacks.on_complete(draft))
                return TurnOutcome.COMPLETE

            logger.debug(
                f"Session {session.session_id}: tool calls processed, continuing generation"
            )

    async def _execute_tool_calls(
        self,
        session: ChatSession,
        message: Message,
        execution_context: ToolExecutionContext,
        callbacks: ChatLoopCallbacks,
        signal: asyncio.Event | None,
    ) -> bool:
        """Process the message's tool calls one at a time, in order.

        Each call gets its tool message appended before the next call starts,
        so later tools observe the results of earlier ones.

        Returns:
            True if the turn was cancelled while waiting for a permission
            decision, False when every call was processed
        """
        for tool_call in message.tool_calls or []:
            name = tool_call.name
            logger.debug(f"Processing tool call: {name}")

            try:
                tool = self.tool_registry.get_tool(name)
                if tool is None:
                    raise ToolNotFoundError(name)
                if self.permission_manager.is_disabled(name):
                    raise ToolDisabledError(name)
                if self.permission_manager.is_denied(name):
                    raise ToolDeniedError(name)

                if self.permission_manager.requires_prompt(name):
                    tool_call.permission_status = "pending"
                    approved = await self._request_permission(
                        tool_call, callbacks, signal
                    )
                    if approved is None:
                        logger.info(f"Cancelled while awaiting permission for {name}")
                        return True
                    tool_call.permission_status = "approved" if approved else "denied"
                    if not approved:
                        raise PermissionDeniedError(name)
                else:
                    tool_call.permission_status = "approved"

                logger.debug(f"Executing tool: {name}")
                try:
                    result = await tool.execute(
                        tool_call.function.arguments, execution_context
                    )
                except Exception as e:
                    raise ToolExecutionError(name, str(e)) from e
                tool_call.set_result("" if result is None else str(result))

            except ToolError as e:
                if not isinstance(e, ToolExecutionError):
                    tool_call.permission_status = "denied"
                logger.info(f"Tool call {name} failed: {e}")
                tool_call.set_error(str(e))

            session.add_message(
                Message(
                    role="tool",
                    content=tool_call.result or tool_call.error or NO_RESULT,
                    tool_name=name,
                    message_id=new_message_id(),
                    timestamp=utc_timestamp(),
                )
            )

        return False

    async def _request_permission(
        self,
        tool_call: ToolCall,
        callbacks: ChatLoopCallbacks,
        signal: asyncio.Event | None,
    ) -> bool | None:
        """Ask the caller for permission, racing the cancellation signal.

        Returns:
            The decision, or None if the signal was set first
        """
        decision = callbacks.on_tool_permission(tool_call)
        if not inspect.isawaitable(decision):
            return bool(decision)
        if signal is None:
            return bool(await decision)

        prompt = asyncio.ensure_future(decision)
        waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {prompt, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (prompt, waiter):
                if not task.done():
                    task.cancel()

        if prompt in done:
            return bool(prompt.result())
        return None

    async def _check_thinking_support(self, model: str) -> bool:
        try:
            model_info = await self.provider.get_model_info(model)
            return model_info.supports_thinking
        except Exception as e:
            logger.debug(f"Could not query thinking support for {model}: {e}")
            return False

    async def _fail(
        self, callbacks: ChatLoopCallbacks, error: DelverServerError
    ) -> TurnOutcome:
        if isinstance(error, GenerationCancelledError):
            logger.info("Turn cancelled")
            outcome = TurnOutcome.CANCELLED
        else:
            logger.error(f"Turn failed: {error}")
            outcome = TurnOutcome.ERRORED

        if callbacks.on_error is not None:
            await _maybe_await(callbacks.on_error(error))
        return outcome
