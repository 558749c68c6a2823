"""Bounded edit history of note bodies."""
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError as PydanticValidationError

from localnotes.exceptions import SerializationError, VersionNotFoundError
from localnotes.models.schema import NoteVersionItem, VersionSnapshot
from localnotes.storage.files import (
    atomic_write_text,
    dump_json,
    ensure_dir,
    read_json,
    remove_quietly,
)
from localnotes.storage.layout import StorageLayout
from localnotes.utils import sanitize_filename

logger = logging.getLogger(__name__)

# Max number of version snapshots to keep per note
MAX_VERSIONS_PER_NOTE = 30

DEFAULT_PREVIEW_LENGTH = 150
PREVIEW_ELLIPSIS = "…"

VERSION_SUFFIX = ".json"


def version_filename(saved_at: str) -> str:
    """File name of a snapshot: the timestamp with ``:`` replaced by ``-``.

    RFC 3339 timestamps sort lexicographically, so file name order is
    chronological order.
    """
    return f"{sanitize_filename(saved_at.replace(':', '-'))}{VERSION_SUFFIX}"


def body_preview(body: str, length: int = DEFAULT_PREVIEW_LENGTH) -> str:
    """First ``length`` characters of ``body``, with an ellipsis if cut."""
    if len(body) <= length:
        return body
    return body[:length] + PREVIEW_ELLIPSIS


class VersionVault:
    """Stores pre-overwrite snapshots of notes, newest 30 per note.

    One directory per note under ``versions/``; one JSON file per snapshot.
    Snapshots are never modified. They disappear through retention pruning
    or when the owning note is deleted.
    """

    def __init__(self, layout: StorageLayout, max_versions: int = MAX_VERSIONS_PER_NOTE):
        self.layout = layout
        self.max_versions = max_versions

    def capture(self, note_id: str, saved_at: str, title: str, body: str) -> VersionSnapshot:
        """Write a snapshot and prune the note's history to the retention limit.

        Args:
            note_id: Owner of the snapshot.
            saved_at: The note's ``updated_at`` before the overwrite; this is
                the snapshot's identity.
            title: Title before the overwrite.
            body: Body before the overwrite.

        Returns:
            The stored snapshot.
        """
        snapshot = VersionSnapshot(saved_at=saved_at, title=title, body=body)
        v_dir = self.layout.versions_dir(note_id)
        ensure_dir(v_dir)
        atomic_write_text(
            v_dir / version_filename(saved_at),
            dump_json(snapshot.model_dump(by_alias=True)),
        )
        logger.debug(f"Captured version {saved_at} of note {note_id}")
        self.prune(note_id)
        return snapshot

    def _snapshot_files(self, note_id: str) -> List[Path]:
        v_dir = self.layout.versions_dir(note_id)
        if not v_dir.is_dir():
            return []
        return [
            p for p in v_dir.iterdir() if p.is_file() and p.name.endswith(VERSION_SUFFIX)
        ]

    def prune(self, note_id: str) -> int:
        """Delete every snapshot beyond the newest ``max_versions``.

        Returns:
            Number of snapshot files removed.
        """
        files = sorted(self._snapshot_files(note_id), key=lambda p: p.name, reverse=True)
        removed = 0
        for path in files[self.max_versions:]:
            if remove_quietly(path):
                removed += 1
        if removed:
            logger.debug(f"Pruned {removed} old version(s) of note {note_id}")
        return removed

    def count(self, note_id: str) -> int:
        return len(self._snapshot_files(note_id))

    def list_versions(
        self, note_id: str, preview_length: int = DEFAULT_PREVIEW_LENGTH
    ) -> List[NoteVersionItem]:
        """Edit timeline of a note, newest first, with body previews.

        Unreadable snapshot files are skipped with a warning so that one bad
        file does not hide the rest of the history.
        """
        items = []
        for path in self._snapshot_files(note_id):
            try:
                snapshot = self._read(path)
            except SerializationError as e:
                logger.warning(f"Skipping unreadable version file {path.name}: {e}")
                continue
            items.append(
                NoteVersionItem(
                    saved_at=snapshot.saved_at,
                    title=snapshot.title,
                    body_preview=body_preview(snapshot.body, preview_length),
                )
            )
        items.sort(key=lambda item: item.saved_at, reverse=True)
        return items

    def get_version(self, note_id: str, saved_at: str) -> VersionSnapshot:
        """Fetch one snapshot by its exact timestamp.

        Raises:
            VersionNotFoundError: If no snapshot has that timestamp.
            SerializationError: If the snapshot file is malformed.
        """
        path = self.layout.versions_dir(note_id) / version_filename(saved_at)
        if not path.is_file():
            raise VersionNotFoundError(note_id, saved_at)
        snapshot = self._read(path)
        # File names drop the colons, so a dashed variant lands on the same file
        if snapshot.saved_at != saved_at:
            raise VersionNotFoundError(note_id, saved_at)
        return snapshot

    def delete_all(self, note_id: str) -> bool:
        """Best-effort removal of a note's whole history."""
        return remove_quietly(self.layout.versions_dir(note_id))

    @staticmethod
    def _read(path: Path) -> VersionSnapshot:
        data = read_json(path)
        try:
            return VersionSnapshot.model_validate(data)
        except PydanticValidationError as e:
            raise SerializationError(
                "Version file does not match the expected structure",
                path=str(path),
                original_error=e,
            ) from e
