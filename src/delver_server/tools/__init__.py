"""Tool definitions, registry and permission policies.

This package provides the tool base class, the registry that advertises
tools to the model, the per-tool permission policies, and the built-in
vault tools.
"""

from delver_server.tools.base import BaseTool, ToolExecutionContext
from delver_server.tools.permissions import (
    TOOL_PERMISSIONS,
    PermissionManager,
    ToolPermission,
)
from delver_server.tools.registry import ToolRegistry
from delver_server.tools.vault import (
    ListReferencesTool,
    VaultReadTool,
    VaultSearchTool,
    default_tools,
)

__all__ = [
    "BaseTool",
    "ToolExecutionContext",
    "ToolRegistry",
    "PermissionManager",
    "ToolPermission",
    "TOOL_PERMISSIONS",
    "VaultSearchTool",
    "VaultReadTool",
    "ListReferencesTool",
    "default_tools",
]
