"""Tests for image attachments."""
import base64

import pytest

from localnotes.exceptions import (
    AttachmentNotFoundError,
    ErrorCode,
    NoteNotFoundError,
    ValidationError,
)
from localnotes.services.note_service import NoteService
from localnotes.storage import AttachmentStore


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "src" / "Holiday Photo.JPG"
    path.parent.mkdir()
    path.write_bytes(b"jpeg-bytes")
    return path


class TestAttachmentStore:
    """Tests for AttachmentStore."""

    def test_import_names_and_sizes(self, layout, source_file):
        refs = AttachmentStore(layout).import_files("n1", [source_file])
        assert len(refs) == 1
        ref = refs[0]
        assert ref.name == "Holiday Photo.JPG"
        assert ref.size == len(b"jpeg-bytes")
        stored = ref.path.rsplit("/", 1)[1]
        assert ref.path.startswith("images/n1/")
        assert stored.endswith("-Holiday Photo.JPG")
        assert stored.split("-", 1)[0].isdigit()

    def test_repeated_import_does_not_collide(self, layout, source_file):
        store = AttachmentStore(layout)
        refs = store.import_files("n1", [source_file, source_file])
        assert len({r.path for r in refs}) == 2

    def test_non_files_skipped(self, layout, tmp_path, source_file):
        refs = AttachmentStore(layout).import_files(
            "n1", [tmp_path / "missing.png", tmp_path, source_file]
        )
        assert [r.name for r in refs] == [source_file.name]

    def test_store_bytes_defaults(self, layout):
        ref = AttachmentStore(layout).store_bytes("n1", b"raw", "")
        assert ref.name == "paste"
        assert ref.path.endswith("-paste.png")
        assert ref.size == 3

    def test_store_bytes_lowercases_extension(self, layout):
        ref = AttachmentStore(layout).store_bytes("n1", b"raw", "Shot.PNG")
        assert ref.path.endswith("-Shot.png")

    def test_store_base64(self, layout):
        encoded = base64.b64encode(b"image").decode("ascii")
        ref = AttachmentStore(layout).store_bytes("n1", encoded, "a.gif")
        assert (layout.root / ref.path).read_bytes() == b"image"

    def test_invalid_base64(self, layout):
        with pytest.raises(ValidationError):
            AttachmentStore(layout).store_bytes("n1", "not base64!!", "a.png")

    def test_empty_data(self, layout):
        with pytest.raises(ValidationError) as exc_info:
            AttachmentStore(layout).store_bytes("n1", b"", "a.png")
        assert exc_info.value.code == ErrorCode.EMPTY_FIELD

    def test_clipboard_copy(self, layout, tmp_path):
        copy_dir = tmp_path / "Pictures"
        AttachmentStore(layout, clipboard_copy_dir=copy_dir).store_bytes("n1", b"x", "a.webp")
        copies = list(copy_dir.iterdir())
        assert len(copies) == 1
        assert copies[0].name.startswith("paste-")
        assert copies[0].suffix == ".webp"

    def test_resolve_rejects_traversal(self, layout):
        store = AttachmentStore(layout)
        for bad in ("../secret", "/etc/passwd", "images/../../x", ""):
            with pytest.raises(ValidationError):
                store.resolve(bad)

    def test_copy_all(self, layout):
        store = AttachmentStore(layout)
        ref = store.store_bytes("n1", b"x", "a.png")
        stored = ref.path.rsplit("/", 1)[1]
        assert store.copy_all("n1", "n2") == {stored: f"images/n2/{stored}"}
        assert store.copy_all("none", "n3") == {}


class TestNoteAttachments:
    """Tests for the attachment operations of NoteService."""

    def test_attach_images(self, note_service, make_note, source_file):
        note = make_note("Trip")
        updated = note_service.attach_images(note.id, [source_file])
        assert [i.name for i in updated.images] == [source_file.name]
        path = note_service.resolve_image_path(updated.images[0].path)
        assert path.read_bytes() == b"jpeg-bytes"

    def test_attach_to_missing_note_copies_nothing(self, note_service, storage_root, source_file):
        with pytest.raises(NoteNotFoundError):
            note_service.attach_images("missing", [source_file])
        assert not (storage_root / "images" / "missing").exists()

    def test_attach_base64(self, note_service, make_note):
        note = make_note("Paste")
        encoded = base64.b64encode(b"png").decode("ascii")
        updated = note_service.attach_image_bytes(note.id, encoded)
        assert updated.images[0].name == "paste.png"

    def test_remove_attachment(self, note_service, make_note, storage_root):
        note = make_note("Paste")
        ref = note_service.attach_image_bytes(note.id, b"png").images[0]
        updated = note_service.remove_attachment(note.id, ref.path)
        assert updated.images == []
        assert not (storage_root / ref.path).exists()

    def test_remove_keeps_foreign_file(self, note_service, make_note, storage_root):
        owner = make_note("Owner")
        other = make_note("Other")
        ref = note_service.attach_image_bytes(owner.id, b"png").images[0]
        note_service.remove_attachment(other.id, ref.path)
        assert (storage_root / ref.path).exists()

    def test_rename_attachment(self, note_service, make_note):
        note = make_note("Paste")
        ref = note_service.attach_image_bytes(note.id, b"png", "a.png").images[0]
        updated = note_service.rename_attachment(note.id, ref.path, " my/pic.png ")
        assert updated.images[0].name == "my_pic.png"
        assert updated.images[0].path == ref.path

    def test_rename_unknown_attachment(self, note_service, make_note):
        note = make_note("Paste")
        with pytest.raises(AttachmentNotFoundError):
            note_service.rename_attachment(note.id, f"images/{note.id}/none.png", "x")

    def test_rename_to_empty(self, note_service, make_note):
        note = make_note("Paste")
        ref = note_service.attach_image_bytes(note.id, b"png").images[0]
        with pytest.raises(ValidationError):
            note_service.rename_attachment(note.id, ref.path, "   ")

    def test_service_uses_configured_copy_dir(self, test_config, tmp_path, monkeypatch):
        monkeypatch.setattr(test_config, "clipboard_copy_dir", tmp_path / "copies")
        service = NoteService()
        service.init_storage()
        note = service.save_note(None, "Copy", "")
        service.attach_image_bytes(note.id, b"png")
        assert len(list((tmp_path / "copies").iterdir())) == 1
