"""Tests for notebook grouping."""
import pytest

from localnotes.exceptions import NotebookNotFoundError, ValidationError


class TestNotebooks:
    """Tests for notebook operations of NoteService."""

    def test_create_and_list(self, note_service):
        work = note_service.create_notebook("  Work ")
        home = note_service.create_notebook("Home")
        assert work.name == "Work"
        assert work.archived is False
        assert [nb.id for nb in note_service.list_notebooks()] == [work.id, home.id]

    def test_empty_name_rejected(self, note_service):
        with pytest.raises(ValidationError):
            note_service.create_notebook("   ")

    def test_archived_listed_last(self, note_service):
        first = note_service.create_notebook("First")
        second = note_service.create_notebook("Second")
        note_service.archive_notebook(first.id, True)
        assert [nb.id for nb in note_service.list_notebooks()] == [second.id, first.id]
        note_service.archive_notebook(first.id, False)
        assert [nb.id for nb in note_service.list_notebooks()] == [first.id, second.id]

    def test_rename(self, note_service):
        notebook = note_service.create_notebook("Old")
        assert note_service.rename_notebook(notebook.id, " New ").name == "New"
        with pytest.raises(ValidationError):
            note_service.rename_notebook(notebook.id, "")

    def test_unknown_notebook(self, note_service):
        with pytest.raises(NotebookNotFoundError):
            note_service.archive_notebook("missing", True)
        with pytest.raises(NotebookNotFoundError):
            note_service.rename_notebook("missing", "Name")

    def test_move_note(self, note_service, make_note):
        notebook = note_service.create_notebook("Work")
        note = make_note("Task")
        moved = note_service.move_note_to_notebook(note.id, notebook.id)
        assert moved.notebook_id == notebook.id
        assert note_service.read_note(note.id).meta.notebook_id == notebook.id

        unfiled = note_service.move_note_to_notebook(note.id, None)
        assert unfiled.notebook_id is None

    def test_move_to_missing_notebook(self, note_service, make_note):
        note = make_note("Task")
        with pytest.raises(NotebookNotFoundError):
            note_service.move_note_to_notebook(note.id, "missing")
        assert note_service.read_note(note.id).meta.notebook_id is None

    def test_invalid_notebook_id(self, note_service, make_note):
        note = make_note("Task")
        with pytest.raises(ValidationError):
            note_service.move_note_to_notebook(note.id, "../x")

    def test_dangling_reference_survives(self, note_service, make_note):
        """Notes may keep a notebook id that no longer resolves."""
        notebook = note_service.create_notebook("Temp")
        note = make_note("Task")
        note_service.move_note_to_notebook(note.id, notebook.id)

        index = note_service.index_store.load()
        index.notebooks = []
        note_service.index_store.store(index)

        assert note_service.read_note(note.id).meta.notebook_id == notebook.id
        assert note_service.list_notebooks() == []
