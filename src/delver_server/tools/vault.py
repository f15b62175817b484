"""Tools operating on the local document store (the vault).

The vault is a plain directory. All paths given to and returned by these
tools are relative to its root and use forward slashes.
"""

import json
import logging
from pathlib import Path
from typing import Any

from delver_server.tools.base import BaseTool, ToolExecutionContext

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10


def iter_vault_files(vault_path: Path) -> list[str]:
    """List every non-hidden file in the vault as sorted relative paths."""
    if not vault_path.is_dir():
        return []
    files = []
    for path in vault_path.rglob("*"):
        relative = path.relative_to(vault_path)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            files.append(relative.as_posix())
    return sorted(files)


def resolve_vault_path(vault_path: Path, relative: str) -> Path | None:
    """Resolve a relative path inside the vault.

    Returns:
        The absolute path, or None if it would escape the vault root
    """
    root = vault_path.resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate


class VaultSearchTool(BaseTool):
    name = "vault_search"
    description = (
        "Search for files in the vault by name or path pattern. "
        "Returns a list of matching file paths."
    )
    parameters = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Search query or pattern to match against file names and paths",
            },
            "limit": {
                "type": "number",
                "description": "Maximum number of results to return (default: 10)",
            },
        },
        "required": ["query"],
    }

    async def execute(
        self, arguments: dict[str, Any], context: ToolExecutionContext
    ) -> str:
        if not self.validate_args(arguments):
            raise ValueError("Missing required argument: query")

        query = str(arguments["query"])
        limit = arguments.get("limit") or DEFAULT_SEARCH_LIMIT
        try:
            limit = max(1, int(limit))
        except (TypeError, ValueError):
            limit = DEFAULT_SEARCH_LIMIT

        needle = query.lower()
        matches = [
            path for path in iter_vault_files(context.vault_path)
            if needle in path.lower()
        ][:limit]
        logger.debug(f"vault_search '{query}' matched {len(matches)} files")

        if not matches:
            return f'No files found matching "{query}"'

        return json.dumps(
            {"query": query, "count": len(matches), "files": matches}, indent=2
        )


class VaultReadTool(BaseTool):
    name = "vault_read"
    description = (
        "Read the contents of a file in the vault. "
        "Provide the file path to read its contents."
    )
    parameters = {
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the file to read (relative to vault root)",
            },
        },
        "required": ["path"],
    }

    async def execute(
        self, arguments: dict[str, Any], context: ToolExecutionContext
    ) -> str:
        if not self.validate_args(arguments):
            raise ValueError("Missing required argument: path")

        relative = str(arguments["path"])
        file_path = resolve_vault_path(context.vault_path, relative)
        if file_path is None:
            raise ValueError(f"Path is outside the vault: {relative}")
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {relative}")
        if not file_path.is_file():
            raise ValueError(f"Path is not a file: {relative}")

        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise OSError(f"Failed to read file: {e}") from e


class ListReferencesTool(BaseTool):
    name = "list_references"
    description = (
        "List all file references from the current conversation. Shows files "
        "that have been searched for or read during this chat session."
    )
    parameters = {
        "type": "object",
        "properties": {
            "unique_only": {
                "type": "boolean",
                "description": "If true, only return unique file paths (default: true)",
            },
        },
        "required": [],
    }

    async def execute(
        self, arguments: dict[str, Any], context: ToolExecutionContext
    ) -> str:
        if context.session is None:
            raise RuntimeError("No active chat session")

        unique_only = arguments.get("unique_only") is not False
        references: list[str] = []
        seen: set[str] = set()

        def add(path: str) -> None:
            if not unique_only or path not in seen:
                references.append(path)
            seen.add(path)

        for message in context.session.messages:
            for tool_call in message.tool_calls or []:
                if tool_call.name == "vault_read" and tool_call.function.arguments.get("path"):
                    add(str(tool_call.function.arguments["path"]))
                elif tool_call.name == "vault_search" and tool_call.result:
                    try:
                        found = json.loads(tool_call.result).get("files")
                    except (ValueError, AttributeError):
                        continue
                    if isinstance(found, list):
                        for path in found:
                            add(str(path))

        payload: dict[str, Any] = {
            "count": len(references),
            "unique_count": len(seen),
            "files": references,
        }
        if not references:
            payload["message"] = "No file references found in this conversation."
        return json.dumps(payload, indent=2)


def default_tools() -> list[BaseTool]:
    """Instantiate the built-in vault tools."""
    return [VaultSearchTool(), VaultReadTool(), ListReferencesTool()]
