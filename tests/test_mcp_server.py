# tests/test_mcp_server.py
"""Tests for the MCP server implementation."""
import base64
import json
from unittest.mock import MagicMock, patch

import pytest

from localnotes.exceptions import NoteNotFoundError, ValidationError
from localnotes.models.schema import NoteMeta
from localnotes.server.mcp_server import MAX_TITLE_LENGTH, LocalNotesMcpServer
from localnotes.services.note_service import NoteService


def _capture_tools(registry):
    mock_mcp = MagicMock()

    def mock_tool_decorator(*args, **kwargs):
        def tool_wrapper(func):
            registry[kwargs.get("name")] = func
            return func

        return tool_wrapper

    mock_mcp.tool = mock_tool_decorator
    return mock_mcp


class TestMcpServer:
    """Tests for the LocalNotesMcpServer class against a mocked service."""

    def setup_method(self):
        """Set up test environment before each test."""
        self.registered_tools = {}
        self.mock_mcp = _capture_tools(self.registered_tools)
        self.mock_service = MagicMock()
        self.mcp_patcher = patch(
            "localnotes.server.mcp_server.FastMCP", return_value=self.mock_mcp
        )
        self.mcp_patcher.start()
        self.server = LocalNotesMcpServer(self.mock_service)

    def teardown_method(self):
        """Clean up after each test."""
        self.mcp_patcher.stop()

    def test_server_initialization(self):
        """Storage is initialized and every tool family is registered."""
        assert self.mock_service.init_storage.called
        for name in (
            "notes_save",
            "notes_search",
            "notes_attach_clipboard",
            "notes_backlinks",
            "notes_restore_version",
            "notes_from_template",
            "notes_move_to_notebook",
            "notes_export_backup",
            "notes_status",
        ):
            assert name in self.registered_tools

    def test_save_note_tool(self):
        """notes_save creates a note and reports its id."""
        self.mock_service.save_note.return_value = NoteMeta.new("abc", "Title")
        result = self.registered_tools["notes_save"](title="Title", body="Body")
        assert "created successfully" in result
        assert "abc" in result
        self.mock_service.save_note.assert_called_with(None, "Title", "Body")

    def test_save_rejects_long_title(self):
        result = self.registered_tools["notes_save"](title="x" * (MAX_TITLE_LENGTH + 1), body="")
        assert result.startswith("Error: Invalid input")
        assert not self.mock_service.save_note.called

    def test_get_note_not_found(self):
        """Domain errors are reported with their message."""
        self.mock_service.read_note.side_effect = NoteNotFoundError("missing")
        result = self.registered_tools["notes_get"](note_id="missing")
        assert result == "Error: Note with ID 'missing' not found"

    def test_delete_single_and_batch(self):
        result = self.registered_tools["notes_delete"](note_id="a")
        assert "deleted successfully" in result
        self.mock_service.delete_note.assert_called_with("a")

        self.mock_service.batch_delete_notes.return_value = ["a", "b"]
        result = self.registered_tools["notes_delete"](note_id="a, b, ,c")
        assert result == "Deleted 2 of 3 notes."
        self.mock_service.batch_delete_notes.assert_called_with(["a", "b", "c"])

    def test_delete_without_ids(self):
        assert self.registered_tools["notes_delete"](note_id=" , ") == "Error: No note IDs provided."

    def test_star_batch(self):
        self.mock_service.batch_toggle_important.return_value = [MagicMock()]
        result = self.registered_tools["notes_star"](note_id="a,b", important=False)
        assert result == "Updated 1 of 2 notes."
        self.mock_service.batch_toggle_important.assert_called_with(["a", "b"], False)

    def test_merge_splits_ids(self):
        self.mock_service.merge_notes.return_value = NoteMeta.new("a", "Merged")
        result = self.registered_tools["notes_merge"](note_ids="a,b")
        assert "Merged 2 notes" in result
        self.mock_service.merge_notes.assert_called_with(["a", "b"])

    def test_export_invalid_format(self):
        result = self.registered_tools["notes_export"](note_id="a", format="pdf")
        assert result.startswith("Invalid format")

    def test_export_to_file(self, tmp_path):
        self.mock_service.export_note.return_value = "T\n\nB\n"
        self.mock_service.write_text_file.return_value = tmp_path / "a.txt"
        result = self.registered_tools["notes_export"](
            note_id="a", format="plain", output_path=str(tmp_path / "a.txt")
        )
        assert result.startswith("Exported note a to")
        self.mock_service.write_text_file.assert_called_with(str(tmp_path / "a.txt"), "T\n\nB\n")

    def test_search_returns_json(self):
        self.mock_service.search.return_value = [NoteMeta.new("a", "Work plan")]
        result = json.loads(self.registered_tools["notes_search"](query="tag:work"))
        assert result[0]["id"] == "a"
        assert "updatedAt" in result[0]

    def test_add_tag_empty(self):
        assert self.registered_tools["notes_add_tag"](note_id="a", tag=" ") == (
            "Error: Tag cannot be empty"
        )

    def test_move_to_notebook_empty_string_unfiles(self):
        self.mock_service.move_note_to_notebook.return_value = NoteMeta.new("a", "A")
        result = self.registered_tools["notes_move_to_notebook"](note_id="a", notebook_id="")
        assert result == "Note a moved to unfiled"
        self.mock_service.move_note_to_notebook.assert_called_with("a", None)

    def test_sync_folder_show_set_clear(self):
        self.mock_service.get_sync_folder.return_value = None
        assert self.registered_tools["notes_sync_folder"]() == "No sync folder set"
        assert self.registered_tools["notes_sync_folder"](folder="/x") == "Sync folder set to /x"
        self.mock_service.set_sync_folder.assert_called_with("/x")
        assert self.registered_tools["notes_sync_folder"](clear=True) == "Sync folder cleared"
        self.mock_service.set_sync_folder.assert_called_with(None)


class TestErrorFormatting:
    """Tests for format_error_response."""

    def setup_method(self):
        self.registered_tools = {}
        with patch(
            "localnotes.server.mcp_server.FastMCP",
            return_value=_capture_tools(self.registered_tools),
        ):
            self.server = LocalNotesMcpServer(MagicMock())

    def test_domain_error_message(self):
        error = ValidationError("Note ID cannot be empty", field="Note ID")
        assert self.server.format_error_response(error) == "Error: Note ID cannot be empty"

    def test_os_error_hides_details(self):
        result = self.server.format_error_response(OSError("/secret/path"))
        assert "/secret/path" not in result
        assert "file system error" in result

    def test_unexpected_error(self):
        result = self.server.format_error_response(RuntimeError("boom"))
        assert "unexpected error" in result


class TestToolsAgainstStorage:
    """Drive the tools end to end over a real storage root."""

    @pytest.fixture
    def tools(self, note_service):
        registry = {}
        with patch(
            "localnotes.server.mcp_server.FastMCP", return_value=_capture_tools(registry)
        ):
            LocalNotesMcpServer(note_service)
        return registry

    def _created_id(self, result):
        return result.split("ID: ", 1)[1].split("\n", 1)[0]

    def test_save_link_and_backlinks(self, tools):
        plan_id = self._created_id(tools["notes_save"](title="Project Plan", body=""))
        meeting_id = self._created_id(
            tools["notes_save"](title="Meeting Notes", body="Agenda #work\n[[Project Plan]]")
        )
        backlinks = json.loads(tools["notes_backlinks"](note_id=plan_id))
        assert [n["id"] for n in backlinks] == [meeting_id]
        meeting = json.loads(tools["notes_get"](note_id=meeting_id))
        assert meeting["meta"]["tags"] == ["meeting-notes", "work"]

    def test_versions_and_restore(self, tools, note_service: NoteService):
        note_id = self._created_id(tools["notes_save"](title="Draft", body="v1"))
        tools["notes_save"](title="Draft", body="v2", note_id=note_id)
        versions = json.loads(tools["notes_versions"](note_id=note_id))
        assert len(versions) == 1
        result = tools["notes_restore_version"](note_id=note_id, saved_at=versions[0]["savedAt"])
        assert "restored" in result
        assert note_service.read_note(note_id).body == "v1"

    def test_clipboard_attachment(self, tools, note_service: NoteService):
        note_id = self._created_id(tools["notes_save"](title="Pic", body=""))
        encoded = base64.b64encode(b"png-bytes").decode("ascii")
        result = tools["notes_attach_clipboard"](note_id=note_id, data_base64=encoded)
        assert result.startswith(f"Image attached: images/{note_id}/")
        assert len(note_service.read_note(note_id).meta.images) == 1

    def test_status(self, tools):
        tools["notes_save"](title="One", body="")
        status = json.loads(tools["notes_status"]())
        assert status["note_count"] == 1
        assert status["notebook_count"] == 0

    def test_missing_note_reports_error(self, tools):
        assert tools["notes_get"](note_id="nope") == "Error: Note with ID 'nope' not found"
