"""Ollama provider built on the ollama Python client.

This module streams chat responses from an Ollama server and maps them onto
generation chunks. The underlying ollama.AsyncClient can be shared between
provider instances, so a provider can be created per turn while the HTTP
connection pool is created once at startup.
"""

import logging
from typing import Any, AsyncIterator

import ollama

from delver_server.providers.base import (
    BaseProvider,
    GenerationChunk,
    GenerationRequest,
    ModelInfo,
)
from delver_server.sessions.types import Message, ToolCall

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LENGTH = 8192
THINKING_MODEL_FAMILIES = ("gpt-oss", "qwen3", "qwen2.5", "deepseek-r1")


def _get_value(obj: Any, key: str, default: Any = None) -> Any:
    """Read a value from either an object attribute or a dict key."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    if hasattr(obj, key):
        return getattr(obj, key, default)
    return default


def _to_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if isinstance(obj, dict):
        return obj
    return vars(obj)


def to_ollama_message(message: Message) -> dict[str, Any]:
    """Convert a session message to Ollama's chat message format."""
    ollama_msg: dict[str, Any] = {
        "role": message.role,
        "content": message.content,
    }
    if message.thinking:
        ollama_msg["thinking"] = message.thinking
    if message.tool_calls:
        ollama_msg["tool_calls"] = [
            {
                "function": {
                    "name": tc.function.name,
                    "arguments": tc.function.arguments,
                }
            }
            for tc in message.tool_calls
        ]
    if message.tool_name:
        ollama_msg["tool_name"] = message.tool_name
    return ollama_msg


def model_info_from_show(model: str, show_response: Any) -> ModelInfo:
    """Build ModelInfo from an Ollama show response.

    The context length is read from ``<architecture>.context_length`` in the
    model info block. Thinking support comes from the reported capabilities,
    falling back to a match on known thinking model families.
    """
    modelinfo = _get_value(show_response, "modelinfo") or {}
    details = _get_value(show_response, "details") or {}
    architecture = modelinfo.get("general.architecture") or _get_value(
        details, "family"
    )

    context_length = DEFAULT_CONTEXT_LENGTH
    if architecture and f"{architecture}.context_length" in modelinfo:
        context_length = int(modelinfo[f"{architecture}.context_length"])
    elif "context_length" in modelinfo:
        context_length = int(modelinfo["context_length"])

    capabilities = list(_get_value(show_response, "capabilities") or [])
    supports_thinking = "thinking" in capabilities or any(
        family in model.lower() for family in THINKING_MODEL_FAMILIES
    )

    return ModelInfo(
        name=model,
        context_length=context_length,
        supports_thinking=supports_thinking,
        supports_tools="tools" in capabilities,
        capabilities=capabilities,
    )


class OllamaProvider(BaseProvider):
    """Provider streaming from an Ollama server.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(self, host: str, client: ollama.AsyncClient | None = None) -> None:
        """Initialize the provider.

        Args:
            host: The Ollama server URL
            client: Optional existing client to share
        """
        self.host = host
        self._client = client or ollama.AsyncClient(host=host)
        self._cancel_requested = False
        logger.debug(f"OllamaProvider initialized with host: {host}")

    @property
    def client(self) -> ollama.AsyncClient:
        return self._client

    def for_turn(self) -> "OllamaProvider":
        """Create a provider with its own cancellation state and a shared client."""
        return OllamaProvider(self.host, client=self._client)

    async def generate(
        self, request: GenerationRequest
    ) -> AsyncIterator[GenerationChunk]:
        """Stream chat chunks from Ollama.

        Yields:
            GenerationChunk: thinking, content and tool_call chunks as they
            arrive, then a done chunk carrying token counts. Failures and
            cancellation are yielded as an error chunk.
        """
        self._cancel_requested = False
        options = dict(request.options)
        think = options.pop("think", None)

        logger.debug(
            f"Starting chat stream with model {request.model}, "
            f"{len(request.messages)} messages, {len(request.tools or [])} tools"
        )

        stream = None
        try:
            stream = await self._client.chat(
                model=request.model,
                messages=[to_ollama_message(m) for m in request.messages],
                tools=request.tools or None,
                stream=True,
                think=think,
                options=options or None,
            )

            async for part in stream:
                if self._cancel_requested:
                    yield GenerationChunk(
                        type="error", error="Generation cancelled", cancelled=True
                    )
                    return

                data = _to_dict(part)
                message = data.get("message") or {}

                if message.get("thinking"):
                    yield GenerationChunk(type="thinking", thinking=message["thinking"])

                if message.get("content"):
                    yield GenerationChunk(type="content", content=message["content"])

                if message.get("tool_calls"):
                    yield GenerationChunk(
                        type="tool_call",
                        tool_calls=[
                            ToolCall.from_dict(_to_dict(tc))
                            for tc in message["tool_calls"]
                        ],
                    )

                if data.get("done"):
                    prompt_tokens = data.get("prompt_eval_count")
                    completion_tokens = data.get("eval_count")
                    yield GenerationChunk(
                        type="done",
                        done=True,
                        prompt_tokens=prompt_tokens,
                        completion_tokens=completion_tokens,
                        total_tokens=(prompt_tokens or 0) + (completion_tokens or 0),
                    )

            logger.debug("Chat stream completed")

        except ollama.ResponseError as e:
            logger.error(f"Ollama returned an error: {e}")
            yield GenerationChunk(
                type="error", error=f"HTTP {e.status_code}: {e.error}"
            )
        except Exception as e:
            logger.error(f"Chat stream failed: {e}")
            yield GenerationChunk(type="error", error=str(e) or "Unknown error")
        finally:
            if stream is not None and hasattr(stream, "aclose"):
                await stream.aclose()

    async def get_model_info(self, model: str) -> ModelInfo:
        """Get context length and capabilities for a model.

        Raises:
            Exception: If the Ollama API request fails
        """
        try:
            show_response = await self._client.show(model)
        except Exception as e:
            logger.warning(f"Failed to get model info for {model}: {e}")
            raise

        model_info = model_info_from_show(model, show_response)
        logger.debug(
            f"Model {model}: context={model_info.context_length}, "
            f"thinking={model_info.supports_thinking}, tools={model_info.supports_tools}"
        )
        return model_info

    async def list_models(self) -> list[str]:
        """List the names of all locally available models.

        Raises:
            Exception: If the Ollama API request fails
        """
        response = await self._client.list()
        models_list = _get_value(response, "models") or []

        names = []
        for model_obj in models_list:
            name = _get_value(model_obj, "model") or _get_value(model_obj, "name")
            if name:
                names.append(name)

        logger.debug(f"Retrieved {len(names)} models from Ollama")
        return names

    async def check_connection(self) -> bool:
        """Check if the Ollama server is reachable."""
        try:
            await self._client.list()
            logger.debug("Ollama connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    def cancel_generation(self) -> None:
        if not self._cancel_requested:
            logger.debug("Generation cancel requested")
        self._cancel_requested = True

    async def close(self) -> None:
        """Close the client.

        ollama.AsyncClient uses httpx internally which handles cleanup.
        """
        logger.debug("OllamaProvider closed")
