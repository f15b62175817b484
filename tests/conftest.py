"""Pytest configuration and shared fixtures for delver-server tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup and a scripted provider.
"""

import inspect
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from delver_server import create_app
from delver_server.config import DelverServerSettings
from delver_server.providers import BaseProvider, GenerationChunk, ModelInfo


class ScriptedProvider(BaseProvider):
    """Provider that replays scripted rounds of chunks.

    Each call to generate() consumes the next round. A round is a list of
    GenerationChunk objects; a callable in the list is called (and awaited)
    instead of being yielded, which lets tests pause a stream. An exception
    instance in the list is raised.
    """

    def __init__(self) -> None:
        self.rounds: list[list] = []
        self.requests = []
        self.models = ["llama3.2:latest"]
        self.context_length = 8192
        self.supports_thinking = False
        self.model_info_error: Exception | None = None
        self.cancel_calls = 0
        self.connected = True

    def script(self, *rounds: list) -> None:
        self.rounds.extend(rounds)

    async def generate(self, request):
        self.requests.append(request)
        chunks = self.rounds.pop(0) if self.rounds else [
            GenerationChunk(type="done", done=True)
        ]
        for chunk in chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            if callable(chunk):
                result = chunk()
                if inspect.isawaitable(result):
                    await result
                continue
            yield chunk

    async def get_model_info(self, model: str) -> ModelInfo:
        if self.model_info_error is not None:
            raise self.model_info_error
        return ModelInfo(
            name=model,
            context_length=self.context_length,
            supports_thinking=self.supports_thinking,
            supports_tools=True,
            capabilities=["completion", "tools"],
        )

    async def list_models(self) -> list[str]:
        return list(self.models)

    async def check_connection(self) -> bool:
        return self.connected

    def cancel_generation(self) -> None:
        self.cancel_calls += 1


@pytest.fixture
def scripted_provider():
    """Create a ScriptedProvider with no rounds scripted."""
    return ScriptedProvider()


@pytest.fixture(autouse=True)
def mock_provider(scripted_provider):
    """Replace OllamaProvider in the app lifespan.

    The app stores the scripted provider instead of creating a real client,
    so no test talks to an Ollama server.
    """
    with patch("delver_server.app.OllamaProvider", return_value=scripted_provider):
        yield scripted_provider


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings with isolated temporary directories.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        DelverServerSettings: Settings instance configured for testing.
    """
    return DelverServerSettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        data_dir=str(tmp_path),
        sessions_dir="chat_sessions",
        vault_dir="vault",
        default_model="llama3.2:latest",
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def vault_dir(test_settings):
    """Create a small vault of notes under the test data directory."""
    vault = test_settings.resolved_vault_dir
    (vault / "projects").mkdir(parents=True)
    (vault / ".obsidian").mkdir()
    (vault / "projects" / "garden.md").write_text(
        "# Garden\nTomatoes need sun.", encoding="utf-8"
    )
    (vault / "projects" / "kitchen.md").write_text("# Kitchen", encoding="utf-8")
    (vault / "daily.md").write_text("Went to the garden today.", encoding="utf-8")
    (vault / ".obsidian" / "garden-config.json").write_text("{}", encoding="utf-8")
    return vault


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance.

    Args:
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
