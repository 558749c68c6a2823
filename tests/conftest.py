"""Common test fixtures for the LocalNotes store."""

import tempfile
from pathlib import Path

import pytest

from localnotes.config import config
from localnotes.services.note_service import NoteService
from localnotes.storage import StorageLayout


@pytest.fixture
def storage_root():
    """Create a temporary storage root."""
    with tempfile.TemporaryDirectory() as root:
        yield Path(root)


@pytest.fixture
def test_config(storage_root, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "storage_root", storage_root)
    monkeypatch.setattr(config, "log_dir", storage_root / "logs")
    monkeypatch.setattr(config, "clipboard_copy_dir", None)
    yield config


@pytest.fixture
def layout(storage_root):
    """Storage layout rooted in the temporary directory."""
    layout = StorageLayout(storage_root)
    layout.ensure_dirs()
    return layout


@pytest.fixture
def note_service(test_config):
    """Create a NoteService over an initialized, empty storage root."""
    service = NoteService()
    service.init_storage()
    yield service


@pytest.fixture
def make_note(note_service):
    """Factory saving a new note and returning its metadata."""

    def _make(title="Untitled", body=""):
        return note_service.save_note(None, title, body)

    return _make
