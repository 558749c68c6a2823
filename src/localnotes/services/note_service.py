"""Service layer for note operations.

Every mutating operation follows the same pattern: load the whole index,
change the in-memory ``IndexFile`` and store it again atomically. The
sequence runs under one re-entrant lock, so concurrent callers inside one
process cannot lose each other's updates. Separate processes sharing a
storage root are not coordinated.
"""
import logging
import threading
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

import frontmatter
import yaml

from localnotes.backup import BackupManager
from localnotes.config import config
from localnotes.exceptions import (
    AttachmentNotFoundError,
    ErrorCode,
    NotebookNotFoundError,
    NoteNotFoundError,
    SerializationError,
    ValidationError,
)
from localnotes.models.schema import (
    ImageRef,
    IndexFile,
    Notebook,
    NoteContent,
    NoteMeta,
    NoteTemplate,
    NoteVersionItem,
    VersionSnapshot,
    generate_id,
    today_str,
    utc_now_iso,
)
from localnotes.observability import traced
from localnotes.services import query_engine
from localnotes.services.annotator import annotate
from localnotes.storage import (
    AttachmentStore,
    ContentStore,
    IndexStore,
    StorageLayout,
    SyncSettingsStore,
    TemplateStore,
    VersionVault,
)
from localnotes.storage.files import atomic_write_text, ensure_dir
from localnotes.storage.template_store import apply_placeholders
from localnotes.utils import sanitize_filename, validate_id, validate_notebook_id

logger = logging.getLogger(__name__)

DAILY_TAG = "daily"
DAILY_BODY = "# daily\n"
COPY_SUFFIX = " (copy)"
UNTITLED = "Untitled"


class NoteService:
    """All note, tag, version, template, notebook and backup operations of one storage root."""

    def __init__(
        self,
        storage_root: Optional[Union[str, Path]] = None,
        clipboard_copy_dir: Optional[Union[str, Path]] = None,
        version_preview_length: Optional[int] = None,
    ):
        """Initialize the service.

        Args:
            storage_root: Storage root directory. Defaults to the configured one.
            clipboard_copy_dir: Where pasted images get an extra copy.
                Defaults to the configured one (usually none).
            version_preview_length: Characters of body in version listings.
        """
        root = (
            Path(storage_root).expanduser().absolute()
            if storage_root
            else config.get_storage_root()
        )
        copy_dir = clipboard_copy_dir or config.clipboard_copy_dir
        self.layout = StorageLayout(root)
        self.index_store = IndexStore(self.layout)
        self.content = ContentStore(self.layout)
        self.versions = VersionVault(self.layout)
        self.attachments = AttachmentStore(
            self.layout, Path(copy_dir).expanduser() if copy_dir else None
        )
        self.templates = TemplateStore(self.layout)
        self.sync_settings = SyncSettingsStore(self.layout)
        self.backups = BackupManager(self.layout)
        self.preview_length = version_preview_length or config.version_preview_length
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self.layout.root

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self) -> IndexFile:
        return self.index_store.load()

    def _store(self, index: IndexFile) -> None:
        self.index_store.store(index)

    @staticmethod
    def _require_note(index: IndexFile, note_id: str) -> NoteMeta:
        note = index.find_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    @staticmethod
    def _require_notebook(index: IndexFile, notebook_id: str) -> Notebook:
        notebook = index.find_notebook(notebook_id)
        if notebook is None:
            raise NotebookNotFoundError(notebook_id)
        return notebook

    def _remove_note_files(self, note_id: str) -> None:
        """Best-effort cleanup of a deleted note's body, images and history."""
        self.content.delete_body(note_id)
        self.attachments.delete_all(note_id)
        self.versions.delete_all(note_id)

    def _snapshot_current(self, note: NoteMeta) -> Optional[VersionSnapshot]:
        """Capture the on-disk state of ``note`` before it is overwritten."""
        if not self.content.exists(note.id):
            return None
        body = self.content.read_body(note.id)
        return self.versions.capture(note.id, note.updated_at, note.title, body)

    # =========================================================================
    # Notes
    # =========================================================================

    def init_storage(self) -> None:
        """Create the storage folders and an empty index if none exists."""
        with self._lock:
            self.layout.ensure_dirs()
            if not self.index_store.exists():
                self._store(IndexFile.empty())
                logger.info(f"Initialized empty storage at {self.root}")

    def list_notes(self) -> List[NoteMeta]:
        """All notes in index order."""
        return self._load().notes

    def read_note(self, note_id: str) -> NoteContent:
        """Metadata and body of one note.

        Raises:
            ValidationError: If the id is malformed.
            NoteNotFoundError: If the note is not in the index.
        """
        validate_id(note_id)
        meta = self._require_note(self._load(), note_id)
        return NoteContent(meta=meta, body=self.content.read_body(note_id))

    def save_note(self, note_id: Optional[str], title: str, body: str) -> NoteMeta:
        """Create or update a note.

        Tags (``#tag`` markers plus the title slug) and ``[[Title]]`` links
        are recomputed from scratch and replace the previous sets. When an
        existing note with a body on disk is overwritten, its current title
        and body are first captured as a version snapshot.

        Args:
            note_id: Id of the note to update; None creates a new note. An
                id that is not in the index creates the note under that id.
            title: New title, stored as given.
            body: New body, stored verbatim.

        Returns:
            The saved note's metadata.
        """
        if note_id is not None:
            validate_id(note_id)
        with self._lock:
            index = self._load()
            target_id = note_id or generate_id()
            annotations = annotate(title, body, index.notes, target_id)

            note = index.find_note(target_id)
            if note is None:
                note = NoteMeta.new(target_id, title)
                index.notes.append(note)
                logger.info(f"Created note {target_id}")
            else:
                self._snapshot_current(note)
                note.title = title
                note.touch()
            note.set_tags(annotations.tags)
            note.set_links(annotations.links_to)

            self.content.write_body(target_id, body)
            self._store(index)
            logger.debug(
                f"Saved note {target_id}: {len(note.tags)} tags, {len(note.links_to)} links"
            )
            return note

    def update_note_title(self, note_id: str, title: str) -> NoteMeta:
        """Change only the title; tags, links and history are left alone."""
        validate_id(note_id)
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            note.title = title
            note.touch()
            self._store(index)
            return note

    def toggle_important(self, note_id: str, important: bool) -> NoteMeta:
        validate_id(note_id)
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            note.important = important
            note.touch()
            self._store(index)
            return note

    def batch_toggle_important(self, note_ids: List[str], important: bool) -> List[NoteMeta]:
        """Set the important flag on many notes; unknown ids are skipped.

        Returns:
            The notes that were updated, in index order.
        """
        if not note_ids:
            return []
        wanted = set(note_ids)
        with self._lock:
            index = self._load()
            updated = []
            for note in index.notes:
                if note.id in wanted:
                    note.important = important
                    note.touch()
                    updated.append(note)
            if updated:
                self._store(index)
            return updated

    def delete_note(self, note_id: str) -> None:
        """Remove a note from the index, then its body, images and versions.

        Raises:
            NoteNotFoundError: If the note is not in the index.
        """
        validate_id(note_id)
        with self._lock:
            index = self._load()
            self._require_note(index, note_id)
            index.remove_notes([note_id])
            self._store(index)
            self._remove_note_files(note_id)
        logger.info(f"Deleted note {note_id}")

    def batch_delete_notes(self, note_ids: List[str]) -> List[str]:
        """Delete many notes with one index write.

        Every id is validated before anything is changed. Ids that are not
        in the index are ignored.

        Returns:
            Ids actually removed from the index.
        """
        if not note_ids:
            return []
        for note_id in note_ids:
            validate_id(note_id)
        with self._lock:
            index = self._load()
            removed = index.remove_notes(note_ids)
            self._store(index)
            for note_id in removed:
                self._remove_note_files(note_id)
        logger.info(f"Batch deleted {len(removed)} of {len(note_ids)} notes")
        return removed

    def duplicate_note(self, note_id: str) -> NoteMeta:
        """Copy a note under a new id, titled ``"<title> (copy)"``, with its images."""
        source = self.read_note(note_id)
        with self._lock:
            copy = self.save_note(
                None, f"{source.meta.title.strip()}{COPY_SUFFIX}", source.body
            )
            if not source.meta.images:
                return copy
            copied = self.attachments.copy_all(note_id, copy.id)
            index = self._load()
            note = self._require_note(index, copy.id)
            added_at = utc_now_iso()
            for image in source.meta.images:
                stored_name = PurePosixPath(image.path).name
                if stored_name not in copied:
                    logger.warning(
                        f"Attachment {image.path} of note {note_id} missing on disk, not copied"
                    )
                    continue
                note.images.append(
                    ImageRef(
                        name=image.name,
                        path=copied[stored_name],
                        added_at=added_at,
                        size=image.size,
                    )
                )
            note.touch()
            self._store(index)
            return note

    @traced("merge_notes")
    def merge_notes(self, note_ids: List[str]) -> NoteMeta:
        """Merge several notes into the first one.

        Bodies are concatenated oldest-first by ``updated_at``, each under a
        ``## <title>`` heading, and the result is trimmed. The merged note
        keeps the first id and takes the oldest note's title; the others are
        deleted. The first note's previous content is kept as a version.

        Raises:
            ValidationError: If ``note_ids`` is empty or holds a bad id.
            NoteNotFoundError: If any note is missing; nothing is changed.
        """
        ids = list(dict.fromkeys(note_ids))
        if not ids:
            raise ValidationError(
                "No notes to merge", field="note_ids", code=ErrorCode.EMPTY_FIELD
            )
        for note_id in ids:
            validate_id(note_id)
        with self._lock:
            index = self._load()
            if len(ids) == 1:
                return self._require_note(index, ids[0])

            parts = []
            for note_id in ids:
                meta = self._require_note(index, note_id)
                parts.append((meta.updated_at, meta.title, self.content.read_body(note_id)))
            parts.sort(key=lambda part: part[0])
            merged_body = "".join(f"## {title}\n\n{body}\n\n" for _, title, body in parts)

            keep_id, remove_ids = ids[0], ids[1:]
            keep = self._require_note(index, keep_id)
            self._snapshot_current(keep)
            self.content.write_body(keep_id, merged_body.strip())
            keep.title = parts[0][1]
            keep.touch()
            index.remove_notes(remove_ids)
            self._store(index)
            for note_id in remove_ids:
                self._remove_note_files(note_id)
        logger.info(f"Merged {len(remove_ids)} notes into {keep_id}")
        return keep

    # =========================================================================
    # Export
    # =========================================================================

    def export_note(self, note_id: str) -> str:
        """Plain-text export: title, blank line, body."""
        content = self.read_note(note_id)
        return f"{content.meta.title}\n\n{content.body}\n"

    def export_note_as_markdown(self, note_id: str) -> str:
        """Markdown export with optional YAML frontmatter.

        Frontmatter (``tags``, ``created``, ``updated``) is only emitted when
        the note has tags or has been modified since creation. ``[[Title]]``
        links are left as they are.
        """
        content = self.read_note(note_id)
        meta = content.meta
        parts = []
        if meta.tags or meta.created_at != meta.updated_at:
            metadata = {}
            if meta.tags:
                metadata["tags"] = list(meta.tags)
            metadata["created"] = meta.created_at
            metadata["updated"] = meta.updated_at
            try:
                header = frontmatter.dumps(frontmatter.Post("", **metadata), sort_keys=False)
            except yaml.YAMLError as e:
                raise SerializationError(
                    f"Failed to write frontmatter for note {note_id}", original_error=e
                ) from e
            parts.append(header.strip() + "\n\n")
        parts.append(f"# {meta.title}\n\n")
        parts.append(content.body)
        if not content.body.endswith("\n"):
            parts.append("\n")
        return "".join(parts)

    @staticmethod
    def write_text_file(path: Union[str, Path], text: str) -> Path:
        """Write an export to a caller-chosen path, creating parent folders.

        Raises:
            ValidationError: If ``path`` is an existing directory.
        """
        target = Path(path).expanduser()
        if target.is_dir():
            raise ValidationError("Path is a directory", field="path", value=str(target))
        ensure_dir(target.parent)
        atomic_write_text(target, text)
        logger.info(f"Wrote {len(text)} characters to {target}")
        return target

    # =========================================================================
    # Attachments
    # =========================================================================

    def attach_images(self, note_id: str, file_paths: List[Union[str, Path]]) -> NoteMeta:
        """Copy files into the note's image folder; non-files are skipped."""
        validate_id(note_id)
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            refs = self.attachments.import_files(note_id, file_paths)
            note.images.extend(refs)
            note.touch()
            self._store(index)
            logger.info(f"Attached {len(refs)} of {len(file_paths)} files to note {note_id}")
            return note

    def attach_image_bytes(
        self, note_id: str, data: Union[bytes, str], suggested_name: str = "paste.png"
    ) -> NoteMeta:
        """Attach one pasted image given as bytes or base64 text."""
        validate_id(note_id)
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            ref = self.attachments.store_bytes(note_id, data, suggested_name)
            note.images.append(ref)
            note.touch()
            self._store(index)
            return note

    def resolve_image_path(self, relative_path: str) -> Path:
        """Absolute path of an attachment under the storage root."""
        return self.attachments.resolve(relative_path)

    def remove_attachment(self, note_id: str, relative_path: str) -> NoteMeta:
        """Drop an attachment from a note and delete its file.

        Only files inside the note's own image folder are deleted.
        """
        validate_id(note_id)
        full_path = self.attachments.resolve(relative_path)
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            if self.layout.images_dir(note_id) in full_path.parents:
                self.attachments.remove_file(relative_path)
            else:
                logger.warning(f"Not deleting {relative_path}: outside images of note {note_id}")
            note.images = [img for img in note.images if img.path != relative_path]
            note.touch()
            self._store(index)
            return note

    def rename_attachment(self, note_id: str, relative_path: str, new_name: str) -> NoteMeta:
        """Change an attachment's display name; the file on disk keeps its name.

        Raises:
            ValidationError: If the sanitized name is empty or the path is unsafe.
            AttachmentNotFoundError: If the note has no image at ``relative_path``.
        """
        validate_id(note_id)
        self.attachments.resolve(relative_path)
        name = sanitize_filename(new_name.strip())
        if not name:
            raise ValidationError(
                "Name cannot be empty", field="new_name", code=ErrorCode.EMPTY_FIELD
            )
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            for image in note.images:
                if image.path == relative_path:
                    image.name = name
                    break
            else:
                raise AttachmentNotFoundError(note_id, relative_path)
            note.touch()
            self._store(index)
            return note

    # =========================================================================
    # Tags and links
    # =========================================================================

    def list_tags(self) -> List[str]:
        """Every tag used by any note, sorted."""
        tags = set()
        for note in self._load().notes:
            tags.update(note.tags)
        return sorted(tags)

    def notes_by_tag(self, tag: str) -> List[NoteMeta]:
        """Notes carrying exactly ``tag`` (case-sensitive)."""
        return [n for n in self._load().notes if tag in n.tags]

    def add_tag_to_notes(self, note_ids: List[str], tag: str) -> List[NoteMeta]:
        """Add a tag to many notes.

        Returns:
            Only the notes that did not already carry the tag. Unknown ids
            are skipped; an empty tag or id list changes nothing.
        """
        tag = tag.strip()
        if not note_ids or not tag:
            return []
        wanted = set(note_ids)
        with self._lock:
            index = self._load()
            updated = []
            for note in index.notes:
                if note.id in wanted and tag not in note.tags:
                    note.set_tags(note.tags + [tag])
                    note.touch()
                    updated.append(note)
            if updated:
                self._store(index)
            return updated

    def remove_tag_from_note(self, note_id: str, tag: str) -> NoteMeta:
        validate_id(note_id)
        with self._lock:
            index = self._load()
            note = self._require_note(index, note_id)
            note.tags = [t for t in note.tags if t != tag]
            note.touch()
            self._store(index)
            return note

    def get_backlinks(self, note_id: str) -> List[NoteMeta]:
        """Notes whose links point at ``note_id`` (full scan)."""
        validate_id(note_id)
        return [n for n in self._load().notes if note_id in n.links_to]

    @traced("search")
    def search(self, query: str) -> List[NoteMeta]:
        """Run an operator query (see ``query_engine``) over all notes."""
        return query_engine.search(self._load(), query, self.content.read_body)

    # =========================================================================
    # Daily notes
    # =========================================================================

    def get_or_create_daily_note(self) -> NoteMeta:
        """Today's daily note (title ``YYYY-MM-DD``, UTC), created on first use."""
        today = today_str()
        with self._lock:
            index = self._load()
            for note in index.notes:
                if note.is_daily and note.title == today:
                    return note
            note = NoteMeta.new(generate_id(), today, tags=[DAILY_TAG], is_daily=True)
            self.content.write_body(note.id, DAILY_BODY)
            index.notes.append(note)
            self._store(index)
            logger.info(f"Created daily note {note.id} for {today}")
            return note

    # =========================================================================
    # Versions
    # =========================================================================

    def list_versions(self, note_id: str) -> List[NoteVersionItem]:
        """Edit timeline of a note, newest first."""
        validate_id(note_id)
        return self.versions.list_versions(note_id, self.preview_length)

    def get_version(self, note_id: str, saved_at: str) -> VersionSnapshot:
        validate_id(note_id)
        return self.versions.get_version(note_id, saved_at)

    def restore_version(self, note_id: str, saved_at: str) -> NoteMeta:
        """Save a snapshot's title and body as the note's current content.

        This is an ordinary save, so the content being replaced becomes a
        new snapshot and the restore can itself be undone.
        """
        validate_id(note_id)
        with self._lock:
            self._require_note(self._load(), note_id)
            snapshot = self.versions.get_version(note_id, saved_at)
            logger.info(f"Restoring note {note_id} to version {saved_at}")
            return self.save_note(note_id, snapshot.title, snapshot.body)

    # =========================================================================
    # Templates
    # =========================================================================

    def list_templates(self) -> List[NoteTemplate]:
        return self.templates.list_templates()

    def create_note_from_template(
        self, template_id: str, title: Optional[str] = None
    ) -> NoteMeta:
        """Create a note from a template, filling ``{{date}}`` and ``{{title}}``.

        Args:
            template_id: Built-in or custom template id.
            title: Title override; defaults to the template's title pattern.
        """
        template = self.templates.get_template(template_id)
        default_title = template.default_title_pattern or UNTITLED
        title_input = (title if title is not None else default_title).strip() or UNTITLED
        body, note_title = apply_placeholders(template.body, title_input)
        return self.save_note(None, note_title, body)

    def save_custom_template(self, name: str, body: str) -> NoteTemplate:
        with self._lock:
            return self.templates.save_custom_template(name, body)

    def delete_custom_template(self, template_id: str) -> None:
        with self._lock:
            self.templates.delete_custom_template(template_id)

    # =========================================================================
    # Notebooks
    # =========================================================================

    def list_notebooks(self) -> List[Notebook]:
        """Active notebooks first, then archived ones, each by creation time."""
        return sorted(self._load().notebooks, key=lambda nb: (nb.archived, nb.created_at))

    def create_notebook(self, name: str) -> Notebook:
        name = name.strip()
        if not name:
            raise ValidationError(
                "Notebook name cannot be empty", field="name", code=ErrorCode.EMPTY_FIELD
            )
        with self._lock:
            index = self._load()
            notebook = Notebook(
                id=validate_notebook_id(generate_id()),
                name=name,
                created_at=utc_now_iso(),
            )
            index.notebooks.append(notebook)
            self._store(index)
            logger.info(f"Created notebook {notebook.id} ({name!r})")
            return notebook

    def move_note_to_notebook(self, note_id: str, notebook_id: Optional[str]) -> NoteMeta:
        """File a note into a notebook; ``None`` makes it unfiled.

        Raises:
            NotebookNotFoundError: If ``notebook_id`` is not in the index.
        """
        validate_id(note_id)
        if notebook_id is not None:
            validate_notebook_id(notebook_id)
        with self._lock:
            index = self._load()
            if notebook_id is not None:
                self._require_notebook(index, notebook_id)
            note = self._require_note(index, note_id)
            note.notebook_id = notebook_id
            note.touch()
            self._store(index)
            return note

    def archive_notebook(self, notebook_id: str, archived: bool) -> Notebook:
        validate_notebook_id(notebook_id)
        with self._lock:
            index = self._load()
            notebook = self._require_notebook(index, notebook_id)
            notebook.archived = archived
            self._store(index)
            return notebook

    def rename_notebook(self, notebook_id: str, name: str) -> Notebook:
        name = name.strip()
        if not name:
            raise ValidationError(
                "Notebook name cannot be empty", field="name", code=ErrorCode.EMPTY_FIELD
            )
        validate_notebook_id(notebook_id)
        with self._lock:
            index = self._load()
            notebook = self._require_notebook(index, notebook_id)
            notebook.name = name
            self._store(index)
            return notebook

    # =========================================================================
    # Sync folder and backups
    # =========================================================================

    def get_sync_folder(self) -> Optional[str]:
        return self.sync_settings.get_sync_folder()

    def set_sync_folder(self, folder: Optional[str]) -> None:
        with self._lock:
            self.sync_settings.set_sync_folder(folder)

    @traced("export_backup")
    def export_backup(self, target_dir: Union[str, Path]):
        """Copy notes/, meta/ and images/ to ``target_dir``."""
        with self._lock:
            return self.backups.export_backup(target_dir)

    @traced("import_backup")
    def import_backup(self, source_dir: Union[str, Path]):
        """Copy a backup over the storage root, overwriting same-named files."""
        with self._lock:
            return self.backups.import_backup(source_dir)
