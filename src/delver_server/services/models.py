"""Model capability lookups shared by routers."""

import logging

from delver_server.providers import BaseProvider

logger = logging.getLogger(__name__)


async def get_model_context_length(
    provider: BaseProvider, model: str, default: int
) -> int:
    """Get the model's context length, falling back to a default.

    Args:
        provider: The provider to query
        model: Model name
        default: Value used when the provider cannot be queried

    Returns:
        The context length in tokens
    """
    try:
        model_info = await provider.get_model_info(model)
    except Exception as e:
        logger.warning(
            f"Could not get context length for {model}, using {default}: {e}"
        )
        return default
    return model_info.context_length
