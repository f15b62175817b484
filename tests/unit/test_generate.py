"""Unit tests for the provider-agnostic generate() bridge."""

import asyncio

import pytest

from delver_server.generation import generate
from delver_server.providers import GenerationChunk
from delver_server.sessions import Message

MESSAGES = [Message(role="user", content="Hi", message_id="m1", timestamp="t")]


async def _collect(stream):
    return [chunk async for chunk in stream]


@pytest.mark.asyncio
async def test_relays_chunks_until_done(scripted_provider):
    scripted_provider.script(
        [
            GenerationChunk(type="content", content="Hel"),
            GenerationChunk(type="content", content="lo"),
            GenerationChunk(type="done", done=True),
            GenerationChunk(type="content", content="ignored"),
        ]
    )

    chunks = await _collect(generate(scripted_provider, MESSAGES, "llama3:8b"))

    assert [c.type for c in chunks] == ["content", "content", "done"]


@pytest.mark.asyncio
async def test_builds_request_options(scripted_provider):
    tools = [{"type": "function", "function": {"name": "echo"}}]

    await _collect(
        generate(
            scripted_provider,
            MESSAGES,
            "llama3:8b",
            tools=tools,
            temperature=0.5,
            think=True,
        )
    )

    request = scripted_provider.requests[0]
    assert request.model == "llama3:8b"
    assert request.messages == MESSAGES
    assert request.tools == tools
    assert request.options == {"temperature": 0.5, "think": True}


@pytest.mark.asyncio
async def test_empty_tools_and_options_omitted(scripted_provider):
    await _collect(generate(scripted_provider, MESSAGES, "llama3:8b", tools=[]))

    request = scripted_provider.requests[0]
    assert request.tools is None
    assert request.options == {}


@pytest.mark.asyncio
async def test_stops_after_error_chunk(scripted_provider):
    scripted_provider.script(
        [
            GenerationChunk(type="error", error="HTTP 500: boom"),
            GenerationChunk(type="content", content="ignored"),
        ]
    )

    chunks = await _collect(generate(scripted_provider, MESSAGES, "llama3:8b"))

    assert len(chunks) == 1
    assert chunks[0].error == "HTTP 500: boom"


@pytest.mark.asyncio
async def test_provider_exception_becomes_error_chunk(scripted_provider):
    scripted_provider.script(
        [GenerationChunk(type="content", content="a"), RuntimeError("socket closed")]
    )

    chunks = await _collect(generate(scripted_provider, MESSAGES, "llama3:8b"))

    assert [c.type for c in chunks] == ["content", "error"]
    assert chunks[-1].error == "socket closed"
    assert chunks[-1].cancelled is False


@pytest.mark.asyncio
async def test_signal_stops_relay_with_one_cancelled_chunk(scripted_provider):
    signal = asyncio.Event()
    scripted_provider.script(
        [
            GenerationChunk(type="content", content="one"),
            GenerationChunk(type="content", content="two"),
            GenerationChunk(type="content", content="three"),
            GenerationChunk(type="done", done=True),
        ]
    )

    chunks = []
    async for chunk in generate(scripted_provider, MESSAGES, "llama3:8b", signal=signal):
        chunks.append(chunk)
        signal.set()

    assert [c.type for c in chunks] == ["content", "error"]
    assert chunks[-1].cancelled is True
    assert chunks[-1].error == "Generation cancelled"
    assert scripted_provider.cancel_calls == 1


@pytest.mark.asyncio
async def test_signal_set_before_start(scripted_provider):
    signal = asyncio.Event()
    signal.set()
    scripted_provider.script([GenerationChunk(type="content", content="one")])

    chunks = await _collect(
        generate(scripted_provider, MESSAGES, "llama3:8b", signal=signal)
    )

    assert len(chunks) == 1
    assert chunks[0].cancelled is True
