"""Context window management.

This package selects which messages of a session are sent to the model
and estimates their token cost.
"""

from delver_server.context.manager import ContextManager, ContextState
from delver_server.context.token_estimation import TokenEstimator

__all__ = ["ContextManager", "ContextState", "TokenEstimator"]
