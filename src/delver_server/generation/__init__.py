"""Generation orchestration.

This package contains the streaming bridge to providers and the chat loop
that runs a full turn including tool execution.
"""

from delver_server.generation.chat_loop import ChatLoop, ChatLoopCallbacks, TurnOutcome
from delver_server.generation.generate import generate

__all__ = ["ChatLoop", "ChatLoopCallbacks", "TurnOutcome", "generate"]
