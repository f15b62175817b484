"""Per-tool permission policies.

Each tool has one of four policies:

- ask: prompt the user before every execution (the default)
- allow: execute without prompting
- deny: refuse every call, but keep advertising the tool
- disabled: hide the tool from the model entirely
"""

import logging
from typing import Literal

logger = logging.getLogger(__name__)

ToolPermission = Literal["ask", "allow", "deny", "disabled"]

TOOL_PERMISSIONS = ("ask", "allow", "deny", "disabled")
DEFAULT_PERMISSION: ToolPermission = "ask"


class PermissionManager:
    """Holds the permission policy of every tool.

    Policies are looked up on every call so that changes made between
    turns take effect immediately.
    """

    def __init__(self, permissions: dict[str, ToolPermission] | None = None) -> None:
        self._permissions: dict[str, ToolPermission] = {}
        self.update_permissions(permissions or {})

    def get_permission(self, tool_name: str) -> ToolPermission:
        return self._permissions.get(tool_name, DEFAULT_PERMISSION)

    def set_permission(self, tool_name: str, permission: ToolPermission) -> None:
        """Set the policy for one tool.

        Raises:
            ValueError: If the policy is unknown
        """
        if permission not in TOOL_PERMISSIONS:
            raise ValueError(f"Unknown tool permission: {permission}")
        self._permissions[tool_name] = permission
        logger.info(f"Permission for {tool_name} set to {permission}")

    def requires_prompt(self, tool_name: str) -> bool:
        return self.get_permission(tool_name) == "ask"

    def is_allowed(self, tool_name: str) -> bool:
        return self.get_permission(tool_name) == "allow"

    def is_denied(self, tool_name: str) -> bool:
        return self.get_permission(tool_name) == "deny"

    def is_disabled(self, tool_name: str) -> bool:
        return self.get_permission(tool_name) == "disabled"

    def get_all_permissions(self) -> dict[str, ToolPermission]:
        """Return a copy of all explicitly set policies."""
        return dict(self._permissions)

    def update_permissions(self, permissions: dict[str, ToolPermission]) -> None:
        """Replace all policies.

        Raises:
            ValueError: If any policy is unknown
        """
        for tool_name, permission in permissions.items():
            if permission not in TOOL_PERMISSIONS:
                raise ValueError(
                    f"Unknown tool permission for {tool_name}: {permission}"
                )
        self._permissions = dict(permissions)
