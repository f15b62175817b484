"""Tools router for listing tools and managing their permission policies."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from delver_server.dependencies import get_permission_manager, get_tool_registry
from delver_server.models.tools import (
    ToolInfo,
    ToolListResponse,
    ToolPermissionsResponse,
    UpdateToolPermissionRequest,
    UpdateToolPermissionsRequest,
)
from delver_server.tools import PermissionManager, ToolRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def _permissions_response(
    tool_registry: ToolRegistry, permission_manager: PermissionManager
) -> ToolPermissionsResponse:
    permissions = {
        tool.name: permission_manager.get_permission(tool.name)
        for tool in tool_registry.get_all_tools()
    }
    return ToolPermissionsResponse(permissions=permissions)


@router.get("", response_model=ToolListResponse, summary="List registered tools")
async def list_tools(
    tool_registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
    permission_manager: Annotated[PermissionManager, Depends(get_permission_manager)],
) -> ToolListResponse:
    """List every registered tool with its current policy."""
    tools = [
        ToolInfo(
            name=tool.name,
            description=tool.description,
            parameters=tool.parameters,
            permission=permission_manager.get_permission(tool.name),
        )
        for tool in tool_registry.get_all_tools()
    ]
    return ToolListResponse(tools=tools)


@router.get(
    "/permissions",
    response_model=ToolPermissionsResponse,
    summary="Get all tool policies",
)
async def get_permissions(
    tool_registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
    permission_manager: Annotated[PermissionManager, Depends(get_permission_manager)],
) -> ToolPermissionsResponse:
    return _permissions_response(tool_registry, permission_manager)


@router.put(
    "/permissions",
    response_model=ToolPermissionsResponse,
    summary="Replace all tool policies",
)
async def update_permissions(
    request: UpdateToolPermissionsRequest,
    tool_registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
    permission_manager: Annotated[PermissionManager, Depends(get_permission_manager)],
) -> ToolPermissionsResponse:
    """Replace every policy at once.

    Tools missing from the request fall back to ask. Changes apply to the
    next tool call, including within a running turn.
    """
    permission_manager.update_permissions(request.permissions)
    logger.info(f"Updated tool permissions: {request.permissions}")
    return _permissions_response(tool_registry, permission_manager)


@router.put(
    "/{tool_name}/permission",
    response_model=ToolInfo,
    summary="Set the policy of one tool",
)
async def set_permission(
    tool_name: str,
    request: UpdateToolPermissionRequest,
    tool_registry: Annotated[ToolRegistry, Depends(get_tool_registry)],
    permission_manager: Annotated[PermissionManager, Depends(get_permission_manager)],
) -> ToolInfo:
    """Set the policy of a registered tool.

    Raises:
        HTTPException: 404 if the tool is not registered
    """
    tool = tool_registry.get_tool(tool_name)
    if tool is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tool {tool_name} not found",
        )

    permission_manager.set_permission(tool_name, request.permission)
    return ToolInfo(
        name=tool.name,
        description=tool.description,
        parameters=tool.parameters,
        permission=permission_manager.get_permission(tool.name),
    )
