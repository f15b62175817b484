"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from delver_server.config import DelverServerSettings
from delver_server.context import ContextManager
from delver_server.providers import OllamaProvider
from delver_server.routers import chat, health, models, sessions, tools
from delver_server.services import TurnRegistry
from delver_server.tools import PermissionManager, ToolRegistry, default_tools

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Objects shared across turns (the provider client, the tool registry,
    permission policies, the token estimate cache and the registry of
    running turns) are created once at startup and stored in app.state.
    Routers pass them explicitly into every turn.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: DelverServerSettings = app.state.settings
    app.state.provider = OllamaProvider(host=settings.ollama_host)
    logger.info(f"Initialized Ollama provider with host: {settings.ollama_host}")

    registry = ToolRegistry()
    for tool in default_tools():
        registry.register(tool)
    app.state.tool_registry = registry
    app.state.permission_manager = PermissionManager(dict(settings.tool_permissions))
    app.state.context_manager = ContextManager()
    app.state.turn_registry = TurnRegistry()
    logger.info(f"Registered {len(registry.get_all_tools())} tools")

    connected = await app.state.provider.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    yield

    if hasattr(app.state, "provider"):
        await app.state.provider.close()
        logger.info("Ollama provider closed")


def create_app(settings: DelverServerSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional DelverServerSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from delver_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="delver-server",
        description="Local chat assistant server with tool calling over a personal document store",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(models.router)
    app.include_router(sessions.router)
    app.include_router(tools.router)
    app.include_router(chat.router)

    return app
