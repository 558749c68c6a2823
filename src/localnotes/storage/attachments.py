"""Attachment files stored under ``images/<note id>/``."""
import base64
import binascii
import logging
import shutil
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from localnotes.exceptions import ErrorCode, StorageError, ValidationError
from localnotes.models.schema import ImageRef, utc_now, utc_now_iso
from localnotes.storage.files import ensure_dir, remove_quietly
from localnotes.storage.layout import StorageLayout
from localnotes.utils import resolve_under_root, sanitize_filename

logger = logging.getLogger(__name__)

DEFAULT_PASTE_STEM = "paste"
DEFAULT_PASTE_EXT = "png"


def _millis() -> int:
    return int(time.time() * 1000)


class AttachmentStore:
    """Copies attachment bytes into the storage root and removes them again.

    Stored files are named ``<epoch millis>-<sanitized stem>[.<ext>]`` so
    repeated attachments of the same file never collide. The index entries
    (``ImageRef``) are built here but persisted by the caller.
    """

    def __init__(self, layout: StorageLayout, clipboard_copy_dir: Optional[Path] = None):
        self.layout = layout
        self.clipboard_copy_dir = clipboard_copy_dir

    def _unique_destination(self, note_id: str, stem: str, ext: str) -> Path:
        img_dir = self.layout.images_dir(note_id)
        stamp = _millis()
        while True:
            name = f"{stamp}-{stem}.{ext}" if ext else f"{stamp}-{stem}"
            dest = img_dir / name
            if not dest.exists():
                return dest
            stamp += 1

    def import_files(self, note_id: str, file_paths: List[Union[str, Path]]) -> List[ImageRef]:
        """Copy files into the note's image directory.

        Paths that are not existing regular files are skipped.

        Returns:
            One ``ImageRef`` per copied file, in input order.

        Raises:
            StorageError: If an existing file cannot be copied.
        """
        img_dir = self.layout.images_dir(note_id)
        ensure_dir(img_dir)
        added_at = utc_now_iso()
        refs = []
        for raw in file_paths:
            src = Path(raw)
            if not src.is_file():
                logger.warning(f"Skipping attachment source that is not a file: {src}")
                continue
            stem = sanitize_filename(src.stem) or "file"
            ext = src.suffix[1:] if src.suffix else ""
            dest = self._unique_destination(note_id, stem, ext)
            try:
                shutil.copyfile(src, dest)
                size = dest.stat().st_size
            except OSError as e:
                raise StorageError(
                    f"Failed to copy attachment {src.name}",
                    operation="copy",
                    path=str(src),
                    code=ErrorCode.STORAGE_COPY_FAILED,
                    original_error=e,
                ) from e
            refs.append(
                ImageRef(
                    name=src.name or "file",
                    path=self.layout.image_relative_path(note_id, dest.name),
                    added_at=added_at,
                    size=size,
                )
            )
        return refs

    @staticmethod
    def decode_base64(data: str) -> bytes:
        """Decode clipboard image data sent as base64 text."""
        try:
            return base64.b64decode(data.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(
                f"Invalid base64 image: {e}", field="data", code=ErrorCode.VALIDATION_FAILED
            ) from e

    def store_bytes(self, note_id: str, data: Union[bytes, str], suggested_name: str) -> ImageRef:
        """Store one pasted image.

        Args:
            note_id: Owner note.
            data: Raw bytes, or base64 text.
            suggested_name: Name offered by the clipboard; its extension is
                kept (lower-cased), defaulting to ``png``.

        Raises:
            ValidationError: If the data is empty or not valid base64.
            StorageError: If the file cannot be written.
        """
        if isinstance(data, str):
            data = self.decode_base64(data)
        if not data:
            raise ValidationError(
                "Image data is empty", field="data", code=ErrorCode.EMPTY_FIELD
            )

        suggested = Path(suggested_name or "")
        stem = sanitize_filename(suggested.stem) or DEFAULT_PASTE_STEM
        ext = (suggested.suffix[1:] or DEFAULT_PASTE_EXT).lower()

        ensure_dir(self.layout.images_dir(note_id))
        dest = self._unique_destination(note_id, stem, ext)
        try:
            dest.write_bytes(data)
        except OSError as e:
            raise StorageError(
                "Failed to write pasted image",
                operation="write",
                path=str(dest),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        self._copy_to_clipboard_dir(data, ext)

        return ImageRef(
            name=suggested.name or DEFAULT_PASTE_STEM,
            path=self.layout.image_relative_path(note_id, dest.name),
            added_at=utc_now_iso(),
            size=len(data),
        )

    def _copy_to_clipboard_dir(self, data: bytes, ext: str) -> None:
        """Extra copy of a pasted image for the user; failures only logged."""
        if self.clipboard_copy_dir is None:
            return
        name = f"paste-{utc_now().strftime('%Y-%m-%d-%H%M%S')}.{ext}"
        try:
            self.clipboard_copy_dir.mkdir(parents=True, exist_ok=True)
            (self.clipboard_copy_dir / name).write_bytes(data)
        except OSError as e:
            logger.warning(f"Could not copy pasted image to {self.clipboard_copy_dir}: {e}")

    def resolve(self, relative_path: str) -> Path:
        """Absolute path of an attachment; rejects traversal."""
        return resolve_under_root(self.layout.root, relative_path)

    def remove_file(self, relative_path: str) -> bool:
        """Delete one attachment file if present (best effort)."""
        return remove_quietly(self.resolve(relative_path))

    def copy_all(self, src_note_id: str, dest_note_id: str) -> Dict[str, str]:
        """Copy every file of one note's image directory to another note's.

        Returns:
            Mapping of stored file name to the new relative path.
        """
        src_dir = self.layout.images_dir(src_note_id)
        if not src_dir.is_dir():
            return {}
        dest_dir = self.layout.images_dir(dest_note_id)
        ensure_dir(dest_dir)
        copied = {}
        for entry in sorted(src_dir.iterdir()):
            if not entry.is_file():
                continue
            try:
                shutil.copyfile(entry, dest_dir / entry.name)
            except OSError as e:
                raise StorageError(
                    f"Failed to copy attachment {entry.name}",
                    operation="copy",
                    path=str(entry),
                    code=ErrorCode.STORAGE_COPY_FAILED,
                    original_error=e,
                ) from e
            copied[entry.name] = self.layout.image_relative_path(dest_note_id, entry.name)
        return copied

    def delete_all(self, note_id: str) -> bool:
        """Best-effort removal of a note's image directory."""
        return remove_quietly(self.layout.images_dir(note_id))
