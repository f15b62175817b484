"""Models router for listing and retrieving model information.

This module provides endpoints for querying available models and their details.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from delver_server.dependencies import get_provider
from delver_server.models.models import ModelDetailResponse, ModelListResponse
from delver_server.providers import BaseProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["models"])


@router.get("/models", response_model=ModelListResponse)
async def list_models(
    provider: BaseProvider = Depends(get_provider),
) -> ModelListResponse:
    """List all available models.

    Args:
        provider: The model provider (injected).

    Returns:
        ModelListResponse: Names of the available models.

    Raises:
        HTTPException: If the provider request fails.
    """
    try:
        models = await provider.list_models()
        logger.info(f"Listed {len(models)} models")
        return ModelListResponse(models=models)

    except Exception as e:
        logger.error(f"Failed to list models: {e}")
        raise HTTPException(
            status_code=502,
            detail=f"Failed to communicate with Ollama: {str(e)}",
        )


@router.get("/models/{model_name:path}", response_model=ModelDetailResponse)
async def get_model_detail(
    model_name: str,
    provider: BaseProvider = Depends(get_provider),
) -> ModelDetailResponse:
    """Get context length and capabilities of a specific model.

    Args:
        model_name: The name of the model to query (e.g., "qwen3:14b").
        provider: The model provider (injected).

    Returns:
        ModelDetailResponse: Detailed information about the model.

    Raises:
        HTTPException: 404 if model not found, 502 if the provider fails.
    """
    try:
        model_info = await provider.get_model_info(model_name)
    except Exception as e:
        if getattr(e, "status_code", None) == 404:
            logger.info(f"Model not found: {model_name}")
            raise HTTPException(
                status_code=404,
                detail=f"Model '{model_name}' not found",
            )
        logger.error(f"Failed to get model details for {model_name}: {e}")
        raise HTTPException(
            status_code=502,
            detail=f"Failed to communicate with Ollama: {str(e)}",
        )

    logger.debug(f"Retrieved details for model: {model_name}")
    return ModelDetailResponse(
        name=model_info.name,
        context_length=model_info.context_length,
        supports_thinking=model_info.supports_thinking,
        supports_tools=model_info.supports_tools,
        capabilities=model_info.capabilities,
    )
