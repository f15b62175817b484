"""Pydantic models for chat API requests and SSE events.

This module defines the request schemas for the chat endpoints and the
payloads of every event emitted on the chat stream.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from delver_server.models.sessions import ToolCallResponse


class ChatRequest(BaseModel):
    """Request body for POST /api/v1/chat/{session_id}/stream."""

    message: str | None = Field(
        default=None,
        description="The user message to send. If null, generates a new response to the existing history.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "What did I write about gardening?"},
                {"message": None},
            ]
        }
    )


class PermissionDecisionRequest(BaseModel):
    """Request body answering a tool permission prompt."""

    approved: bool = Field(..., description="True to run the tool, false to deny it")


class PermissionDecisionResponse(BaseModel):
    request_id: str
    approved: bool


class CancelResponse(BaseModel):
    """Response for the cancel endpoint."""

    session_id: str
    cancelled: bool = Field(
        ..., description="False when the session had no running turn"
    )


class ContentDeltaEvent(BaseModel):
    """SSE event data for content_delta."""

    content: str


class ThinkingDeltaEvent(BaseModel):
    """SSE event data for thinking_delta."""

    thinking: str


class ToolCallsEvent(BaseModel):
    """SSE event data for tool_calls: the model asked for tools."""

    tool_calls: list[ToolCallResponse]


class ToolPermissionRequestEvent(BaseModel):
    """SSE event data for tool_permission_request.

    The client answers with POST /api/v1/chat/{session_id}/permissions/{request_id}.
    """

    request_id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolCallsCompleteEvent(BaseModel):
    """SSE event data for tool_calls_complete, with every call's outcome."""

    message_id: str
    tool_calls: list[ToolCallResponse]


class MessageCompleteEvent(BaseModel):
    """SSE event data for message_complete."""

    message_id: str
    model: str | None = None
    content: str = ""
    thinking: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ErrorEvent(BaseModel):
    """SSE event data for error."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class DoneEvent(BaseModel):
    """SSE event data for done, always the last event of a stream."""

    session_id: str
    outcome: str = Field(..., description="complete, cancelled or errored")
