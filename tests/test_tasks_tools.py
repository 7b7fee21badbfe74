"""
Tests for task tools in MCP server.
The handler is patched out; these tests cover argument coercion and the
response envelope.
"""
import threading

import pytest
from unittest.mock import patch, MagicMock

from lib.errors import ConfigurationError
from server import (
    sheet_columns,
    tasks_cleanup,
    tasks_complete,
    tasks_get,
    tasks_list,
    tasks_next_id,
    tasks_upsert,
    tasks_verify,
    tasks_verify_attachments,
    tools_help,
)


@pytest.fixture
def patched_handler():
    """Patch the client factory and TasksHandler; yields the handler instance mock."""
    with patch("server.get_smartsheet_client") as mock_get, \
         patch("server.TasksHandler") as MockHandler:
        mock_get.return_value = MagicMock()
        instance = MagicMock()
        MockHandler.return_value = instance
        yield instance


class TestTasksList:
    """Tests for tasks_list tool"""

    @pytest.mark.asyncio
    async def test_passes_filters(self, patched_handler, mock_handler_responses):
        patched_handler.list.return_value = mock_handler_responses["tasks.list"]

        result = await tasks_list(phase="1", limit=20)

        assert result["ok"] is True
        patched_handler.list.assert_called_once_with(phase=1, limit=20)

    @pytest.mark.asyncio
    async def test_config_error(self):
        with patch("server.get_smartsheet_client", side_effect=ConfigurationError("SMARTSHEET_API_TOKEN is not set")):
            result = await tasks_list()

        assert result["ok"] is False
        assert result["op"] == "tasks.list"
        assert result["error"]["code"] == "CONFIG_ERROR"
        assert "SMARTSHEET_API_TOKEN" in result["error"]["message"]


class TestTasksGet:
    """Tests for tasks_get tool"""

    @pytest.mark.asyncio
    async def test_dict_argument(self, patched_handler):
        patched_handler.get.return_value = {"ok": True, "op": "tasks.get", "data": {}}

        await tasks_get({"task_id": "1.9"})

        patched_handler.get.assert_called_once_with("1.9")

    @pytest.mark.asyncio
    async def test_numeric_key_kept(self, patched_handler):
        await tasks_get(1.9)
        patched_handler.get.assert_called_once_with(1.9)

    @pytest.mark.asyncio
    async def test_missing_key(self, patched_handler):
        result = await tasks_get("")

        assert result["error"]["code"] == "BAD_REQUEST"
        patched_handler.get.assert_not_called()


class TestTasksUpsert:
    """Tests for tasks_upsert tool"""

    @pytest.mark.asyncio
    async def test_insert_after(self, patched_handler, mock_handler_responses):
        patched_handler.upsert.return_value = mock_handler_responses["tasks.upsert"]

        result = await tasks_upsert(
            key="1.12",
            fields={"name": "X", "status": "Complete", "progress": 100},
            after="1.11",
        )

        assert result["data"]["action"] == "insert"
        patched_handler.upsert.assert_called_once_with(
            "1.12",
            {"name": "X", "status": "Complete", "progress": 100},
            after="1.11",
            before=None,
            dry_run=False,
            only_changed=False,
        )

    @pytest.mark.asyncio
    async def test_percent_string_progress(self, patched_handler):
        await tasks_upsert(key="1.3", fields={"progress": "100%"}, dry_run="true")

        args, kwargs = patched_handler.upsert.call_args
        assert args == ("1.3", {"progress": 1})
        assert kwargs["dry_run"] is True

    @pytest.mark.asyncio
    async def test_wrapped_fields(self, patched_handler):
        await tasks_upsert(key="1.3", fields={"fields": {"status": "Complete"}})
        assert patched_handler.upsert.call_args[0][1] == {"status": "Complete"}

    @pytest.mark.asyncio
    async def test_missing_fields(self, patched_handler):
        result = await tasks_upsert(key="1.3", fields=None)

        assert result["error"]["code"] == "BAD_REQUEST"
        patched_handler.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_key(self, patched_handler):
        result = await tasks_upsert(key=None, fields={"name": "X"})
        assert result["error"]["code"] == "BAD_REQUEST"


class TestTasksComplete:
    """Tests for tasks_complete and tasks_next_id tools"""

    @pytest.mark.asyncio
    async def test_complete(self, patched_handler):
        await tasks_complete("1.4")
        patched_handler.complete.assert_called_once_with("1.4")

    @pytest.mark.asyncio
    async def test_next_id_requires_phase(self, patched_handler):
        result = await tasks_next_id("abc")
        assert result["error"]["code"] == "BAD_REQUEST"

    @pytest.mark.asyncio
    async def test_next_id(self, patched_handler):
        await tasks_next_id({"phase": 2})
        patched_handler.next_id.assert_called_once_with(2)


class TestTasksCleanup:
    """Tests for tasks_cleanup tool"""

    @pytest.mark.asyncio
    async def test_preview_defaults(self, patched_handler, mock_handler_responses):
        patched_handler.cleanup.return_value = mock_handler_responses["tasks.cleanup_preview"]

        result = await tasks_cleanup()

        assert result["data"]["confirm_token"] == "cleanup-token-123"
        patched_handler.cleanup.assert_called_once_with(
            from_position=None,
            empty_keys=False,
            keys=None,
            dedupe=True,
            keep="first",
            confirm_token=None,
        )

    @pytest.mark.asyncio
    async def test_keys_string_split(self, patched_handler):
        await tasks_cleanup(keys="1.3, 1.4", dedupe="false", keep="last", from_position="12")

        kwargs = patched_handler.cleanup.call_args[1]
        assert kwargs["keys"] == ["1.3", "1.4"]
        assert kwargs["dedupe"] is False
        assert kwargs["keep"] == "last"
        assert kwargs["from_position"] == 12

    @pytest.mark.asyncio
    async def test_confirm(self, patched_handler):
        await tasks_cleanup(confirm_token="cleanup-token-123")
        assert patched_handler.cleanup.call_args[1]["confirm_token"] == "cleanup-token-123"


class TestVerifyTools:
    """Tests for tasks_verify and tasks_verify_attachments tools"""

    @pytest.mark.asyncio
    async def test_verify(self, patched_handler, mock_handler_responses):
        patched_handler.verify.return_value = mock_handler_responses["tasks.verify"]

        result = await tasks_verify(expected_keys="1.1,1.2", phase=1)

        assert result["data"]["match"] is True
        patched_handler.verify.assert_called_once_with(
            expected_keys=["1.1", "1.2"],
            expected_count=None,
            phase=1,
            low=None,
            high=None,
        )

    @pytest.mark.asyncio
    async def test_verify_attachments_defaults(self, patched_handler):
        await tasks_verify_attachments(low="1.1", high="1.8", name_suffix=".docx")

        patched_handler.verify_attachments.assert_called_once_with(
            phase=None,
            low="1.1",
            high="1.8",
            keys=None,
            expected_per_row=1,
            expected_total=None,
            name_suffix=".docx",
        )

    @pytest.mark.asyncio
    async def test_verify_attachments_runs_off_event_loop(self, patched_handler):
        loop_thread = threading.get_ident()
        seen = {}

        def record(**kwargs):
            seen["thread"] = threading.get_ident()
            return {"ok": True, "op": "tasks.verify_attachments", "data": {"match": True}}

        patched_handler.verify_attachments.side_effect = record

        result = await tasks_verify_attachments(phase=1)

        assert result["data"]["match"] is True
        assert seen["thread"] != loop_thread


class TestMiscTools:
    """Tests for sheet_columns and tools_help"""

    @pytest.mark.asyncio
    async def test_sheet_columns(self, patched_handler):
        await sheet_columns()
        patched_handler.columns.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_tools_help_lists_every_tool(self):
        result = await tools_help()

        names = {t["name"] for t in result["data"]["tools"]}
        assert result["op"] == "tools.help"
        assert {"tasks_upsert", "tasks_cleanup", "tasks_verify", "tasks_verify_attachments"} <= names
