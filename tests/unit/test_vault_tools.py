"""Unit tests for the vault tools."""

import json

import pytest

from delver_server.sessions import ChatSession, Message, ToolCall, ToolFunction
from delver_server.tools import (
    ListReferencesTool,
    ToolExecutionContext,
    VaultReadTool,
    VaultSearchTool,
    default_tools,
)
from delver_server.tools.vault import iter_vault_files


@pytest.fixture
def context(vault_dir):
    return ToolExecutionContext(vault_path=vault_dir, session_id="s1")


def test_iter_vault_files_skips_hidden(vault_dir):
    assert iter_vault_files(vault_dir) == [
        "daily.md",
        "projects/garden.md",
        "projects/kitchen.md",
    ]


def test_iter_vault_files_missing_dir(tmp_path):
    assert iter_vault_files(tmp_path / "nope") == []


def test_default_tools():
    names = [tool.name for tool in default_tools()]

    assert names == ["vault_search", "vault_read", "list_references"]


class TestVaultSearch:
    @pytest.mark.asyncio
    async def test_matches_paths_case_insensitively(self, context):
        result = await VaultSearchTool().execute({"query": "GARDEN"}, context)

        assert json.loads(result) == {
            "query": "GARDEN",
            "count": 1,
            "files": ["projects/garden.md"],
        }

    @pytest.mark.asyncio
    async def test_limit(self, context):
        result = await VaultSearchTool().execute({"query": ".md", "limit": 2}, context)

        assert json.loads(result)["files"] == ["daily.md", "projects/garden.md"]

    @pytest.mark.asyncio
    async def test_no_match(self, context):
        result = await VaultSearchTool().execute({"query": "bicycle"}, context)

        assert result == 'No files found matching "bicycle"'

    @pytest.mark.asyncio
    async def test_missing_query(self, context):
        with pytest.raises(ValueError, match="query"):
            await VaultSearchTool().execute({}, context)


class TestVaultRead:
    @pytest.mark.asyncio
    async def test_reads_file(self, context):
        result = await VaultReadTool().execute({"path": "projects/garden.md"}, context)

        assert result == "# Garden\nTomatoes need sun."

    @pytest.mark.asyncio
    async def test_rejects_escape(self, context):
        with pytest.raises(ValueError, match="outside the vault"):
            await VaultReadTool().execute({"path": "../secrets.txt"}, context)

    @pytest.mark.asyncio
    async def test_missing_file(self, context):
        with pytest.raises(FileNotFoundError):
            await VaultReadTool().execute({"path": "nope.md"}, context)

    @pytest.mark.asyncio
    async def test_directory(self, context):
        with pytest.raises(ValueError, match="not a file"):
            await VaultReadTool().execute({"path": "projects"}, context)

    @pytest.mark.asyncio
    async def test_missing_path(self, context):
        with pytest.raises(ValueError, match="path"):
            await VaultReadTool().execute({}, context)


class TestListReferences:
    @staticmethod
    def _session() -> ChatSession:
        session = ChatSession(session_id="s1", model="llama3:8b")
        search = ToolCall(
            function=ToolFunction(name="vault_search", arguments={"query": "garden"})
        )
        search.set_result(
            json.dumps({"query": "garden", "count": 1, "files": ["projects/garden.md"]})
        )
        read = ToolCall(
            function=ToolFunction(
                name="vault_read", arguments={"path": "projects/garden.md"}
            )
        )
        read_other = ToolCall(
            function=ToolFunction(name="vault_read", arguments={"path": "daily.md"})
        )
        session.add_message(
            Message(role="assistant", content="", tool_calls=[search, read, read_other])
        )
        return session

    @pytest.mark.asyncio
    async def test_requires_session(self, context):
        with pytest.raises(RuntimeError, match="No active chat session"):
            await ListReferencesTool().execute({}, context)

    @pytest.mark.asyncio
    async def test_unique_references(self, vault_dir):
        context = ToolExecutionContext(
            vault_path=vault_dir, session_id="s1", session=self._session()
        )

        result = json.loads(await ListReferencesTool().execute({}, context))

        assert result == {
            "count": 2,
            "unique_count": 2,
            "files": ["projects/garden.md", "daily.md"],
        }

    @pytest.mark.asyncio
    async def test_all_references(self, vault_dir):
        context = ToolExecutionContext(
            vault_path=vault_dir, session_id="s1", session=self._session()
        )

        result = json.loads(
            await ListReferencesTool().execute({"unique_only": False}, context)
        )

        assert result["count"] == 3
        assert result["unique_count"] == 2

    @pytest.mark.asyncio
    async def test_empty_conversation(self, vault_dir):
        context = ToolExecutionContext(
            vault_path=vault_dir,
            session_id="s1",
            session=ChatSession(session_id="s1", model="llama3:8b"),
        )

        result = json.loads(await ListReferencesTool().execute({}, context))

        assert result["count"] == 0
        assert "message" in result
