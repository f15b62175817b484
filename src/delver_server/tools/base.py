"""Base class and shared types for tools.

Tools are advertised to the model through their definition and executed
by the chat loop with the structured arguments the model produced.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from delver_server.sessions.session import ChatSession


@dataclass
class ToolExecutionContext:
    """Ambient state handed to every tool execution.

    Attributes:
        vault_path: Root directory of the document store
        session_id: ID of the session running the turn
        session: The session itself, for tools that inspect the conversation
    """

    vault_path: Path
    session_id: str
    session: "ChatSession | None" = None


class BaseTool(ABC):
    """Base class for all tools.

    Subclasses set ``name``, ``description`` and a JSON schema in
    ``parameters`` and implement ``execute``.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {
        "type": "object",
        "properties": {},
        "required": [],
    }

    @abstractmethod
    async def execute(
        self, arguments: dict[str, Any], context: ToolExecutionContext
    ) -> str:
        """Run the tool and return its textual result.

        Any exception raised here is recorded as the tool call's error.
        """

    def validate_args(self, arguments: dict[str, Any]) -> bool:
        """Check that every required argument is present."""
        return all(key in arguments for key in self.parameters.get("required", []))

    def to_definition(self) -> dict[str, Any]:
        """Convert to the tool schema format sent to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
