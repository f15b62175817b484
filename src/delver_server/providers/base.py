"""Provider abstraction for model backends.

A provider turns a list of messages plus tool schemas into a stream of
generation chunks. The chat loop only depends on this contract, so the
backend can be swapped without touching the orchestration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal

from delver_server.sessions.types import Message, ToolCall

ChunkType = Literal["content", "thinking", "tool_call", "done", "error"]


@dataclass
class GenerationChunk:
    """One incremental unit of a streaming response.

    Attributes:
        type: Which payload this chunk carries
        content: Text fragment for content chunks
        thinking: Reasoning fragment for thinking chunks
        tool_calls: Complete tool call list for tool_call chunks
        done: True on the final chunk
        error: Error message for error chunks
        cancelled: True when an error chunk reports a cancellation
        prompt_tokens: Prompt token count reported on the final chunk
        completion_tokens: Generated token count reported on the final chunk
        total_tokens: Sum of prompt and completion tokens
    """

    type: ChunkType
    content: str | None = None
    thinking: str | None = None
    tool_calls: list[ToolCall] | None = None
    done: bool = False
    error: str | None = None
    cancelled: bool = False
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class GenerationRequest:
    """Everything a provider needs to start one generation."""

    messages: list[Message]
    model: str
    tools: list[dict[str, Any]] | None = None
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelInfo:
    """Capabilities of a model as reported by the provider.

    Attributes:
        name: Model name (e.g., "qwen3:14b")
        context_length: Maximum context window size in tokens
        supports_thinking: Whether the model can stream reasoning
        supports_tools: Whether the model accepts tool schemas
        capabilities: Raw capability list reported by the backend
    """

    name: str
    context_length: int
    supports_thinking: bool = False
    supports_tools: bool = False
    capabilities: list[str] = field(default_factory=list)


class BaseProvider(ABC):
    """Abstract base class for model providers."""

    @abstractmethod
    def generate(self, request: GenerationRequest) -> AsyncIterator[GenerationChunk]:
        """Stream a response as generation chunks.

        The returned iterator is single-use. Transport failures are reported
        as an error chunk rather than raised.
        """

    @abstractmethod
    async def get_model_info(self, model: str) -> ModelInfo:
        """Get information about a model.

        Raises:
            Exception: If the backend cannot be queried
        """

    @abstractmethod
    async def list_models(self) -> list[str]:
        """List available model names."""

    @abstractmethod
    def cancel_generation(self) -> None:
        """Stop the current generation. Safe to call more than once."""

    def for_turn(self) -> "BaseProvider":
        """Return the provider instance to use for a single turn.

        Providers holding per-generation cancellation state override this
        to hand each turn its own instance.
        """
        return self

    async def check_connection(self) -> bool:
        """Check whether the backend is reachable."""
        try:
            await self.list_models()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Release any resources held by the provider."""
