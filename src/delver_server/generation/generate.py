"""Provider-agnostic streaming bridge.

This module relays chunks from a provider and adds cooperative
cancellation. It does not execute tools, select context or persist
anything; those are the chat loop's and the caller's concerns.
"""

import asyncio
import logging
from typing import Any, AsyncIterator

from delver_server.providers.base import (
    BaseProvider,
    GenerationChunk,
    GenerationRequest,
)
from delver_server.sessions.types import Message

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Generation cancelled"


def _cancelled_chunk() -> GenerationChunk:
    return GenerationChunk(type="error", error=CANCELLED_MESSAGE, cancelled=True)


async def generate(
    provider: BaseProvider,
    messages: list[Message],
    model: str,
    tools: list[dict[str, Any]] | None = None,
    temperature: float | None = None,
    think: bool | None = None,
    signal: asyncio.Event | None = None,
) -> AsyncIterator[GenerationChunk]:
    """Stream a response from a provider.

    The signal is checked before every chunk is relayed. Once it is set the
    provider is told to stop, a single cancelled error chunk is yielded and
    nothing else follows. The stream also ends after a done or error chunk.

    Args:
        provider: The provider to stream from
        messages: Messages to send, system prompt first
        model: Model name
        tools: Optional tool definitions to advertise
        temperature: Optional sampling temperature
        think: Optional flag requesting reasoning output
        signal: Optional cancellation event

    Yields:
        GenerationChunk: Provider chunks, or one error chunk on failure
    """
    options: dict[str, Any] = {}
    if temperature is not None:
        options["temperature"] = temperature
    if think is not None:
        options["think"] = think

    request = GenerationRequest(
        messages=messages,
        model=model,
        tools=tools or None,
        options=options,
    )

    stream = provider.generate(request)
    try:
        async for chunk in stream:
            if signal is not None and signal.is_set():
                provider.cancel_generation()
                logger.info("Generation cancelled")
                yield _cancelled_chunk()
                return

            yield chunk

            if chunk.done or chunk.type == "error":
                return
    except Exception as e:
        if signal is not None and signal.is_set():
            yield _cancelled_chunk()
        else:
            logger.error(f"Generation failed: {e}")
            yield GenerationChunk(type="error", error=str(e) or "Unknown error")
    finally:
        if hasattr(stream, "aclose"):
            await stream.aclose()
