"""Pydantic models for model API responses.

This module contains response schemas for the /api/v1/models endpoints.
"""

from pydantic import BaseModel, Field


class ModelListResponse(BaseModel):
    """Response model for listing all available models.

    Attributes:
        models: Names of the locally available models
    """

    models: list[str] = Field(..., description="List of available model names")


class ModelDetailResponse(BaseModel):
    """Response model for getting details of a specific model.

    Attributes:
        name: Full model name (e.g., "qwen3:14b")
        context_length: Maximum context window size in tokens
        supports_thinking: Whether the model streams reasoning
        supports_tools: Whether the model accepts tool schemas
        capabilities: List of model capabilities (e.g., ["completion", "tools"])
    """

    name: str = Field(..., description="Full model name")
    context_length: int = Field(
        ..., description="Maximum context window size in tokens"
    )
    supports_thinking: bool = Field(
        ..., description="Whether the model can stream reasoning"
    )
    supports_tools: bool = Field(
        ..., description="Whether the model accepts tool schemas"
    )
    capabilities: list[str] = Field(
        default_factory=list,
        description="List of model capabilities (e.g., ['completion', 'tools'])",
    )
