"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of delver-server.
        ollama_connected: Whether the Ollama server answered.
        ollama_host: The Ollama host URL.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of delver-server")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether Ollama is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Ollama host URL",
    )
