"""Tool registry for managing available tools."""

import logging
from typing import Any

from delver_server.tools.base import BaseTool
from delver_server.tools.permissions import DEFAULT_PERMISSION, ToolPermission

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-keyed collection of tools.

    Registering a tool under an existing name replaces the old one.
    """

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.debug(f"Replacing registered tool: {tool.name}")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def get_all_tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    def get_enabled_tools(
        self, permissions: dict[str, ToolPermission]
    ) -> list[dict[str, Any]]:
        """Get the definitions of every tool the model may see.

        Tools whose policy is ask, allow or deny are advertised. Only
        disabled tools are hidden.

        Args:
            permissions: Policy map; tools missing from it default to ask

        Returns:
            Tool definitions in registration order
        """
        return [
            tool.to_definition()
            for tool in self._tools.values()
            if permissions.get(tool.name, DEFAULT_PERMISSION) != "disabled"
        ]

    def clear(self) -> None:
        self._tools.clear()
