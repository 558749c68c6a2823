"""Data models for the LocalNotes store.

The JSON files on disk use camelCase field names; the models expose
snake_case attributes and accept either spelling on input. Always dump with
``by_alias=True`` when writing to disk.
"""

import datetime
import uuid
from datetime import timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Microsecond precision keeps every timestamp the same width, so plain
# string comparison orders them chronologically.
_TIMESPEC = "microseconds"

_MODEL_CONFIG = ConfigDict(populate_by_name=True, validate_assignment=True)


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with offset."""
    return utc_now().isoformat(timespec=_TIMESPEC)


def next_timestamp(previous: Optional[str] = None) -> str:
    """Return a timestamp strictly later than ``previous``.

    Uses the current time unless the clock has not moved past ``previous``
    (coarse clocks, rapid successive saves), in which case ``previous`` is
    bumped by one microsecond. Snapshot files are named after the previous
    ``updated_at``, so two mutations must never share a timestamp.

    Args:
        previous: The last timestamp assigned to the record, if any.

    Returns:
        ISO-8601 UTC timestamp string.
    """
    now = utc_now()
    if previous:
        try:
            prev = datetime.datetime.fromisoformat(previous)
        except ValueError:
            return now.isoformat(timespec=_TIMESPEC)
        if prev.tzinfo is None:
            prev = prev.replace(tzinfo=timezone.utc)
        if now <= prev:
            now = prev.astimezone(timezone.utc) + datetime.timedelta(microseconds=1)
    return now.isoformat(timespec=_TIMESPEC)


def today_str() -> str:
    """Today's UTC date as ``YYYY-MM-DD``."""
    return utc_now().strftime("%Y-%m-%d")


def generate_id() -> str:
    """Generate a new opaque note/notebook id."""
    return str(uuid.uuid4())


class ImageRef(BaseModel):
    """An attachment owned by a single note."""

    name: str = Field(..., description="Display name")
    path: str = Field(..., description="Path relative to the storage root")
    added_at: str = Field(..., alias="addedAt")
    size: Optional[int] = Field(default=None, description="File size in bytes")

    model_config = _MODEL_CONFIG


class NoteMeta(BaseModel):
    """Metadata of one note as kept in the index. The body lives elsewhere."""

    id: str
    title: str
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    important: bool = False
    filename: str
    images: List[ImageRef] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    links_to: List[str] = Field(default_factory=list, alias="linksTo")
    is_daily: bool = Field(default=False, alias="isDaily")
    notebook_id: Optional[str] = Field(default=None, alias="notebookId")

    model_config = _MODEL_CONFIG

    @classmethod
    def new(
        cls,
        note_id: str,
        title: str,
        tags: Optional[List[str]] = None,
        links_to: Optional[List[str]] = None,
        is_daily: bool = False,
    ) -> "NoteMeta":
        """Build the metadata record of a freshly created note."""
        now = utc_now_iso()
        return cls(
            id=note_id,
            title=title,
            created_at=now,
            updated_at=now,
            filename=f"{note_id}.txt",
            tags=tags or [],
            links_to=links_to or [],
            is_daily=is_daily,
        )

    def touch(self) -> None:
        """Advance ``updated_at``; every mutation of a note calls this."""
        self.updated_at = next_timestamp(self.updated_at)

    def set_tags(self, tags) -> None:
        """Replace the tag set, de-duplicated and sorted."""
        self.tags = sorted(set(tags))

    def set_links(self, links_to) -> None:
        """Replace the outgoing links, de-duplicated, sorted, never self."""
        self.links_to = sorted({target for target in links_to if target != self.id})


class Notebook(BaseModel):
    """A named group of notes. Notes reference it weakly by id."""

    id: str
    name: str
    archived: bool = False
    created_at: str = Field(..., alias="createdAt")

    model_config = _MODEL_CONFIG


class IndexFile(BaseModel):
    """The aggregate root: every note and notebook, in insertion order."""

    notes: List[NoteMeta]
    notebooks: List[Notebook] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    @classmethod
    def empty(cls) -> "IndexFile":
        return cls(notes=[], notebooks=[])

    def find_note(self, note_id: str) -> Optional[NoteMeta]:
        """Return the note with ``note_id`` or None."""
        for note in self.notes:
            if note.id == note_id:
                return note
        return None

    def find_notebook(self, notebook_id: str) -> Optional[Notebook]:
        """Return the notebook with ``notebook_id`` or None (dangling ids are fine)."""
        for notebook in self.notebooks:
            if notebook.id == notebook_id:
                return notebook
        return None

    def remove_notes(self, note_ids) -> List[str]:
        """Drop the given notes from the index; returns the ids actually removed."""
        wanted = set(note_ids)
        removed = [n.id for n in self.notes if n.id in wanted]
        self.notes = [n for n in self.notes if n.id not in wanted]
        return removed


class NoteContent(BaseModel):
    """A note's metadata together with its body text."""

    meta: NoteMeta
    body: str

    model_config = _MODEL_CONFIG


class VersionSnapshot(BaseModel):
    """Immutable capture of a note's title and body before an overwrite."""

    saved_at: str = Field(..., alias="savedAt")
    title: str
    body: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class NoteVersionItem(BaseModel):
    """One entry of a note's edit timeline, for listings."""

    saved_at: str = Field(..., alias="savedAt")
    title: str
    body_preview: str = Field(..., alias="bodyPreview")

    model_config = _MODEL_CONFIG


class NoteTemplate(BaseModel):
    """A note template; built-ins are compiled in, customs live in a side file."""

    id: str
    name: str
    body: str
    default_title_pattern: Optional[str] = Field(
        default=None, alias="defaultTitlePattern"
    )
    is_custom: bool = Field(default=False, alias="isCustom")

    model_config = _MODEL_CONFIG


class SyncSettings(BaseModel):
    """Advisory sync location. Nothing in this package synchronises."""

    sync_folder: Optional[str] = Field(default=None, alias="syncFolder")

    model_config = _MODEL_CONFIG
