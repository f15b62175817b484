"""Pydantic models for session API requests and responses."""

from dataclasses import asdict

from pydantic import BaseModel, Field

from delver_server.sessions import ChatSession, ContextMode, Message


class CreateSessionRequest(BaseModel):
    """Request body for creating a new session."""

    model: str | None = Field(
        None, description="The model to use; defaults to the configured model"
    )
    name: str | None = Field(None, description="Optional display name")
    context_mode: ContextMode | None = Field(
        None, description="rolling, compaction or halting; defaults to settings"
    )
    context_limit: int | None = Field(
        None, ge=0, description="Token budget override; 0 or null uses the model's"
    )
    system_prompt: str | None = Field(
        None,
        description="Optional system prompt; the default prompt is used when omitted",
    )


class UpdateSessionRequest(BaseModel):
    """Request body for updating a session."""

    name: str | None = Field(None, description="New display name")
    model: str | None = Field(None, description="New model to use for this session")
    context_mode: ContextMode | None = Field(None, description="New context mode")
    context_limit: int | None = Field(
        None, ge=0, description="New token budget override; 0 resets to the model's"
    )


class EditMessageRequest(BaseModel):
    """Request body for editing a message."""

    content: str = Field(..., description="New content for the message")


class ToolFunctionResponse(BaseModel):
    name: str
    arguments: dict = Field(default_factory=dict)


class ToolCallResponse(BaseModel):
    """A tool call with its permission status and outcome."""

    function: ToolFunctionResponse
    permission_status: str | None = None
    result: str | None = None
    error: str | None = None


class MessageResponse(BaseModel):
    """Response model for a single message."""

    role: str
    content: str
    message_id: str | None = None
    timestamp: str | None = None
    thinking: str | None = None
    tool_calls: list[ToolCallResponse] | None = None
    tool_name: str | None = None
    model: str | None = None
    is_streaming: bool | None = None
    editable: bool | None = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(**asdict(message))


class SessionResponse(BaseModel):
    """Response model for a single session (metadata only)."""

    session_id: str
    name: str
    model: str
    created_at: str
    updated_at: str
    message_count: int
    context_mode: str
    context_limit: int | None = None

    @classmethod
    def from_session(cls, session: ChatSession) -> "SessionResponse":
        return cls(
            session_id=session.session_id,
            name=session.metadata.name,
            model=session.model,
            created_at=session.metadata.created_at,
            updated_at=session.metadata.updated_at,
            message_count=session.metadata.message_count,
            context_mode=session.metadata.context_mode,
            context_limit=session.metadata.context_limit,
        )


class SessionListItem(SessionResponse):
    """A session item in the list response."""

    preview: str = Field("", description="Preview of first user message")


class SessionListResponse(BaseModel):
    """Response model for listing sessions."""

    sessions: list[SessionListItem]


class SessionDetailResponse(SessionResponse):
    """Response model for a session with full message history."""

    messages: list[MessageResponse]


class MessagesResponse(BaseModel):
    """Response model for getting session messages."""

    messages: list[MessageResponse]


class ContextStateResponse(BaseModel):
    """What would be sent to the model for the session's next round.

    Attributes:
        session_id: Session identifier
        context_mode: The mode that selected the active messages
        message_count: Number of stored messages
        active_message_count: Number of messages that would be sent
        current_tokens: Estimated tokens of the active messages
        max_tokens: Token budget in effect
        active_messages: The active messages, as sent
    """

    session_id: str
    context_mode: str
    message_count: int
    active_message_count: int
    current_tokens: int
    max_tokens: int
    active_messages: list[MessageResponse]
