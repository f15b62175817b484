"""Configuration module for delver-server using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from delver_server.prompts import DEFAULT_SYSTEM_PROMPT
from delver_server.sessions.types import ContextMode
from delver_server.tools.permissions import ToolPermission


def _default_tool_permissions() -> dict[str, ToolPermission]:
    return {
        "vault_search": "ask",
        "vault_read": "ask",
        "list_references": "allow",
    }


class DelverServerSettings(BaseSettings):
    """Main configuration settings for delver-server.

    All settings can be overridden via environment variables with the DELVER_ prefix.
    For example, DELVER_OLLAMA_HOST will override the ollama_host setting.
    Dict and list settings are read from JSON, e.g.
    DELVER_TOOL_PERMISSIONS='{"vault_read": "allow"}'.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"

    # Data directories (relative to data_dir)
    data_dir: str = "."
    sessions_dir: str = "chat_sessions"
    vault_dir: str = "vault"

    # Model and generation
    default_model: str = "gpt-oss:20b"
    default_context_mode: ContextMode = "rolling"
    default_context_length: int = 8192
    temperature: float | None = None

    # Prompt
    assistant_name: str = "Delver"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Tools
    tool_permissions: dict[str, ToolPermission] = Field(
        default_factory=_default_tool_permissions
    )

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="DELVER_")

    # --- Resolved paths (computed from data_dir + relative dirs) ---

    @property
    def resolved_sessions_dir(self) -> Path:
        """Get the full path to the sessions directory."""
        return Path(self.data_dir) / self.sessions_dir

    @property
    def resolved_vault_dir(self) -> Path:
        """Get the full path to the vault directory."""
        return Path(self.data_dir) / self.vault_dir
