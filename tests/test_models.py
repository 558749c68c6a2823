# tests/test_models.py
"""Tests for the data models used by the LocalNotes store."""
import datetime

import pytest
from pydantic import ValidationError

from localnotes.models.schema import (
    ImageRef,
    IndexFile,
    Notebook,
    NoteMeta,
    VersionSnapshot,
    generate_id,
    next_timestamp,
    utc_now_iso,
)


class TestNoteMeta:
    """Tests for the NoteMeta model."""

    def test_new_note_defaults(self):
        """A freshly created note has equal timestamps and empty sets."""
        note = NoteMeta.new("n1", "Title")
        assert note.filename == "n1.txt"
        assert note.created_at == note.updated_at
        assert note.tags == []
        assert note.links_to == []
        assert note.images == []
        assert note.important is False
        assert note.is_daily is False
        assert note.notebook_id is None

    def test_missing_optional_fields_default(self):
        """Older index entries without tags/links/daily/notebook still load."""
        note = NoteMeta.model_validate(
            {
                "id": "n1",
                "title": "Old",
                "createdAt": "2024-01-01T00:00:00+00:00",
                "updatedAt": "2024-01-01T00:00:00+00:00",
                "important": False,
                "filename": "n1.txt",
                "images": [],
            }
        )
        assert note.tags == []
        assert note.links_to == []
        assert note.is_daily is False
        assert note.notebook_id is None

    def test_serializes_with_camel_case(self):
        note = NoteMeta.new("n1", "Title", is_daily=True)
        data = note.model_dump(by_alias=True)
        assert {"createdAt", "updatedAt", "linksTo", "isDaily", "notebookId"} <= set(data)

    def test_set_tags_sorts_and_dedupes(self):
        note = NoteMeta.new("n1", "Title")
        note.set_tags(["b", "a", "b"])
        assert note.tags == ["a", "b"]

    def test_set_links_drops_self(self):
        note = NoteMeta.new("n1", "Title")
        note.set_links(["n3", "n1", "n2", "n3"])
        assert note.links_to == ["n2", "n3"]

    def test_touch_strictly_increases(self):
        note = NoteMeta.new("n1", "Title")
        stamps = [note.updated_at]
        for _ in range(50):
            note.touch()
            stamps.append(note.updated_at)
        assert stamps == sorted(stamps)
        assert len(set(stamps)) == len(stamps)


class TestTimestamps:
    """Tests for the timestamp helpers."""

    def test_iso_with_offset_and_fixed_width(self):
        stamp = utc_now_iso()
        parsed = datetime.datetime.fromisoformat(stamp)
        assert parsed.tzinfo is not None
        assert len(stamp) == len("2024-01-01T00:00:00.000000+00:00")

    def test_next_timestamp_bumps_past_future_previous(self):
        future = "2999-01-01T00:00:00.000000+00:00"
        assert next_timestamp(future) == "2999-01-01T00:00:00.000001+00:00"

    def test_next_timestamp_tolerates_garbage(self):
        assert next_timestamp("not a date")

    def test_generate_id_unique(self):
        assert len({generate_id() for _ in range(100)}) == 100


class TestIndexFile:
    """Tests for the IndexFile aggregate."""

    def test_lookup_and_remove(self):
        index = IndexFile(notes=[NoteMeta.new("a", "A"), NoteMeta.new("b", "B")])
        assert index.find_note("a").title == "A"
        assert index.find_note("zzz") is None
        assert index.remove_notes(["b", "missing"]) == ["b"]
        assert [n.id for n in index.notes] == ["a"]

    def test_dangling_notebook_lookup(self):
        index = IndexFile.empty()
        assert index.find_notebook("gone") is None

    def test_notes_key_required(self):
        with pytest.raises(ValidationError):
            IndexFile.model_validate({"notebooks": []})

    def test_round_trip(self):
        index = IndexFile(
            notes=[NoteMeta.new("a", "A", tags=["x"])],
            notebooks=[Notebook(id="nb", name="Work", created_at=utc_now_iso())],
        )
        index.notes[0].images.append(
            ImageRef(name="a.png", path="images/a/1-a.png", added_at=utc_now_iso(), size=3)
        )
        data = index.model_dump(mode="json", by_alias=True)
        assert IndexFile.model_validate(data) == index


class TestVersionSnapshot:
    """Tests for the VersionSnapshot model."""

    def test_frozen(self):
        snapshot = VersionSnapshot(saved_at="t", title="T", body="B")
        with pytest.raises(ValidationError):
            snapshot.title = "changed"

    def test_accepts_camel_case(self):
        snapshot = VersionSnapshot.model_validate({"savedAt": "t", "title": "T", "body": "B"})
        assert snapshot.saved_at == "t"
