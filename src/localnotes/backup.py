"""Backup utilities for the LocalNotes store.

A backup is a plain directory mirroring the storage root's ``notes/``,
``meta/`` and ``images/`` folders. Export and import are recursive file
copies that overwrite existing files; neither is atomic as a whole.
Version history (``versions/``) is not part of a backup.
"""
import logging
from pathlib import Path
from threading import Lock
from typing import Dict, Union

from localnotes.exceptions import ErrorCode, StorageError, ValidationError
from localnotes.storage.files import copy_tree, ensure_dir
from localnotes.storage.layout import IMAGES_DIR, META_DIR, NOTES_DIR, StorageLayout

logger = logging.getLogger(__name__)

# Top-level folders mirrored by export and import, in copy order
BACKUP_DIRS = (NOTES_DIR, META_DIR, IMAGES_DIR)


class BackupManager:
    """Copies a storage root to and from a backup directory."""

    def __init__(self, layout: StorageLayout):
        self.layout = layout
        self._lock = Lock()

    @staticmethod
    def _mirror(src_root: Path, dest_root: Path) -> Dict[str, int]:
        copied = {}
        for name in BACKUP_DIRS:
            src = src_root / name
            dest = dest_root / name
            ensure_dir(dest)
            copied[name] = copy_tree(src, dest) if src.is_dir() else 0
        return copied

    def export_backup(self, target_dir: Union[str, Path]) -> Dict[str, int]:
        """Copy notes/, meta/ and images/ into ``target_dir`` (created if needed).

        Returns:
            Number of files copied per folder.

        Raises:
            StorageError: If the storage root does not exist or a copy fails.
        """
        root = self.layout.root
        if not root.exists():
            raise StorageError(
                "App storage does not exist",
                operation="export_backup",
                path=str(root),
                code=ErrorCode.STORAGE_READ_FAILED,
            )
        target = Path(target_dir).expanduser()
        with self._lock:
            copied = self._mirror(root, target)
        logger.info(f"Exported backup to {target}: {copied}")
        return copied

    def import_backup(self, source_dir: Union[str, Path]) -> Dict[str, int]:
        """Copy a backup's notes/, meta/ and images/ over the storage root.

        Existing files with the same names are overwritten; other files are
        left in place. Missing folders in the backup are skipped.

        Raises:
            ValidationError: If ``source_dir`` is not an existing directory.
            StorageError: If a copy fails (earlier copies are not rolled back).
        """
        source = Path(source_dir).expanduser()
        if not source.is_dir():
            raise ValidationError(
                "Source backup directory does not exist",
                field="source_dir",
                value=str(source),
            )
        with self._lock:
            copied = self._mirror(source, self.layout.root)
        logger.info(f"Imported backup from {source}: {copied}")
        return copied
