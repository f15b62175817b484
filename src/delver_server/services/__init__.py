"""Business logic services for delver-server.

This package contains services shared between requests, such as the
registry of running turns.
"""

from delver_server.services.models import get_model_context_length
from delver_server.services.turns import ActiveTurn, TurnRegistry

__all__ = [
    "ActiveTurn",
    "TurnRegistry",
    "get_model_context_length",
]
