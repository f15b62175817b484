"""Custom exceptions for delver-server.

Stream-level and budget-level failures end the current turn. Tool-level
failures are recorded on the tool call and never leave the chat loop.
"""


class DelverServerError(Exception):
    """Base exception for delver-server."""

    code = "delver_error"


class ContextLimitExceededError(DelverServerError):
    """The conversation does not fit the token budget in halting mode."""

    code = "context_limit_exceeded"

    def __init__(self, token_count: int, max_tokens: int):
        super().__init__(
            f"Context limit exceeded: {token_count} tokens > {max_tokens} tokens. "
            f'Try switching to "rolling" or "compaction" mode, or increase the '
            f"context limit."
        )
        self.token_count = token_count
        self.max_tokens = max_tokens


class GenerationError(DelverServerError):
    """The model stream failed."""

    code = "generation_error"


class GenerationCancelledError(GenerationError):
    """The model stream was cancelled by the caller."""

    code = "generation_cancelled"

    def __init__(self, message: str = "Generation cancelled"):
        super().__init__(message)


class ToolError(DelverServerError):
    """Base class for errors attributable to one tool call."""

    code = "tool_error"

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool not found: {tool_name}")


class ToolDisabledError(ToolError):
    """The tool's policy is disabled."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool is disabled: {tool_name}")


class ToolDeniedError(ToolError):
    """The tool's policy is deny."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool is denied: {tool_name}")


class PermissionDeniedError(ToolError):
    """The user refused a permission prompt."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, "Permission denied by user")


class ToolExecutionError(ToolError):
    """The tool raised while executing."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(tool_name, message or "Tool execution failed")


class TurnInProgressError(DelverServerError):
    """A turn is already running for the session."""

    code = "turn_in_progress"

    def __init__(self, session_id: str):
        super().__init__(f"A turn is already running for session {session_id}")
        self.session_id = session_id
