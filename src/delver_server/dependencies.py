"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject settings and the objects created at startup.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from delver_server.config import DelverServerSettings
from delver_server.context import ContextManager
from delver_server.providers import BaseProvider
from delver_server.services import TurnRegistry
from delver_server.sessions import SessionManager
from delver_server.tools import PermissionManager, ToolRegistry


@lru_cache
def get_settings() -> DelverServerSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the DELVER_ prefix.

    Returns:
        DelverServerSettings: The application configuration settings.
    """
    return DelverServerSettings()


def _from_state(request: Request, name: str):
    if not hasattr(request.app.state, name):
        raise HTTPException(
            status_code=503,
            detail=f"{name} not initialized",
        )
    return getattr(request.app.state, name)


def get_app_settings(request: Request) -> DelverServerSettings:
    """Get the settings stored in app.state.

    Using app.state instead of the cached get_settings() lets tests use
    their own isolated settings.
    """
    return request.app.state.settings


def get_provider(request: Request) -> BaseProvider:
    """Get the shared model provider from app state.

    Raises:
        HTTPException: If the provider is not initialized (503 Service Unavailable).
    """
    return _from_state(request, "provider")


def get_tool_registry(request: Request) -> ToolRegistry:
    return _from_state(request, "tool_registry")


def get_permission_manager(request: Request) -> PermissionManager:
    return _from_state(request, "permission_manager")


def get_context_manager(request: Request) -> ContextManager:
    return _from_state(request, "context_manager")


def get_turn_registry(request: Request) -> TurnRegistry:
    return _from_state(request, "turn_registry")


def get_session_manager(request: Request) -> SessionManager:
    """Get a SessionManager for the configured sessions directory.

    A new SessionManager is created for each request.
    """
    settings = request.app.state.settings
    return SessionManager(sessions_dir=settings.resolved_sessions_dir)
