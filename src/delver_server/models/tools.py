"""Pydantic models for tool API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field

from delver_server.tools import ToolPermission


class ToolInfo(BaseModel):
    """A registered tool and its current policy."""

    name: str = Field(..., description="Tool name as seen by the model")
    description: str = Field(..., description="Tool description")
    parameters: dict[str, Any] = Field(
        default_factory=dict, description="JSON schema of the arguments"
    )
    permission: ToolPermission = Field(..., description="ask, allow, deny or disabled")


class ToolListResponse(BaseModel):
    tools: list[ToolInfo]


class ToolPermissionsResponse(BaseModel):
    """Policies of every registered tool."""

    permissions: dict[str, ToolPermission]


class UpdateToolPermissionsRequest(BaseModel):
    """Request body replacing all tool policies."""

    permissions: dict[str, ToolPermission] = Field(
        ..., description="Policy per tool name; omitted tools fall back to ask"
    )


class UpdateToolPermissionRequest(BaseModel):
    """Request body setting the policy of one tool."""

    permission: ToolPermission
