"""Note body files."""
import logging

from localnotes.storage.files import atomic_write_text, ensure_dir, read_text, remove_quietly
from localnotes.storage.layout import StorageLayout

logger = logging.getLogger(__name__)


class ContentStore:
    """Reads and writes the plain UTF-8 body file of each note.

    Bodies are stored verbatim under ``notes/<sanitized id>.txt``; this
    class applies no normalisation of its own.
    """

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    def exists(self, note_id: str) -> bool:
        return self.layout.note_path(note_id).is_file()

    def read_body(self, note_id: str) -> str:
        """Return the body text, or an empty string if no body file exists yet."""
        path = self.layout.note_path(note_id)
        if not path.is_file():
            return ""
        return read_text(path)

    def write_body(self, note_id: str, text: str) -> None:
        """Replace the body file (atomically, like the index)."""
        ensure_dir(self.layout.notes_dir)
        atomic_write_text(self.layout.note_path(note_id), text)
        logger.debug(f"Wrote body of note {note_id} ({len(text)} chars)")

    def delete_body(self, note_id: str) -> bool:
        """Best-effort removal of the body file."""
        return remove_quietly(self.layout.note_path(note_id))
