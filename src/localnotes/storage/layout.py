"""On-disk layout of a storage root."""
from pathlib import Path
from typing import Union

from localnotes.storage.files import ensure_dir
from localnotes.utils import sanitize_filename

NOTES_DIR = "notes"
META_DIR = "meta"
IMAGES_DIR = "images"
VERSIONS_DIR = "versions"

INDEX_FILE = "index.json"
TEMPLATES_FILE = "templates.json"
SYNC_SETTINGS_FILE = "sync_config.json"

BODY_SUFFIX = ".txt"


class StorageLayout:
    """Resolves every path inside one storage root.

    ::

        <root>/notes/<id>.txt            note bodies
        <root>/meta/index.json           the metadata index
        <root>/meta/templates.json       custom templates
        <root>/meta/sync_config.json     advisory sync folder
        <root>/images/<id>/...           attachments
        <root>/versions/<id>/<ts>.json   edit history

    Per-note names always go through ``sanitize_filename``.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    @property
    def notes_dir(self) -> Path:
        return self.root / NOTES_DIR

    @property
    def meta_dir(self) -> Path:
        return self.root / META_DIR

    @property
    def images_root(self) -> Path:
        return self.root / IMAGES_DIR

    @property
    def versions_root(self) -> Path:
        return self.root / VERSIONS_DIR

    @property
    def index_path(self) -> Path:
        return self.meta_dir / INDEX_FILE

    @property
    def templates_path(self) -> Path:
        return self.meta_dir / TEMPLATES_FILE

    @property
    def sync_settings_path(self) -> Path:
        return self.meta_dir / SYNC_SETTINGS_FILE

    def note_path(self, note_id: str) -> Path:
        return self.notes_dir / f"{sanitize_filename(note_id)}{BODY_SUFFIX}"

    def images_dir(self, note_id: str) -> Path:
        return self.images_root / sanitize_filename(note_id)

    def versions_dir(self, note_id: str) -> Path:
        return self.versions_root / sanitize_filename(note_id)

    def image_relative_path(self, note_id: str, stored_name: str) -> str:
        """Path of an attachment relative to the root, with forward slashes."""
        return f"{IMAGES_DIR}/{sanitize_filename(note_id)}/{stored_name}"

    def ensure_dirs(self) -> None:
        """Create notes/, meta/ and images/ if missing."""
        for directory in (self.notes_dir, self.meta_dir, self.images_root):
            ensure_dir(directory)
