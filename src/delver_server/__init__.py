"""delver-server: local chat assistant server with tool calling.

This package provides a REST API and SSE streaming interface for chat
sessions that answer questions from a personal document store through
model-driven tool calls.
"""

from delver_server.app import create_app

__version__ = "0.1.0"

__all__ = ["create_app", "__version__"]
