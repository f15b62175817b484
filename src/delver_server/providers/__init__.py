"""Model provider abstraction and the Ollama implementation.

All provider interactions are async and use streaming.
"""

from delver_server.providers.base import (
    BaseProvider,
    GenerationChunk,
    GenerationRequest,
    ModelInfo,
)
from delver_server.providers.ollama import OllamaProvider

__all__ = [
    "BaseProvider",
    "GenerationChunk",
    "GenerationRequest",
    "ModelInfo",
    "OllamaProvider",
]
