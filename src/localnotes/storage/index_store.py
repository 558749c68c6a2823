"""Persistence of the metadata index (all notes and notebooks)."""
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError as PydanticValidationError

from localnotes.exceptions import ErrorCode, SerializationError
from localnotes.models.schema import IndexFile
from localnotes.storage.files import atomic_write_text, dump_json, read_json
from localnotes.storage.layout import StorageLayout

logger = logging.getLogger(__name__)


class IndexStore:
    """Loads and stores the single authoritative index file.

    The index is always rewritten whole: callers load it, mutate the
    in-memory ``IndexFile`` and store it again. Writes go through a
    temporary file, fsync and rename, so the file on disk is always a
    complete, valid JSON document.
    """

    def __init__(self, layout: Union[StorageLayout, Path, str]):
        self.layout = layout if isinstance(layout, StorageLayout) else StorageLayout(layout)

    @property
    def path(self) -> Path:
        return self.layout.index_path

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> IndexFile:
        """Read the index.

        Returns:
            The parsed index, or an empty one if the file does not exist.

        Raises:
            SerializationError: If the file exists but is not a valid index.
            StorageError: If the file cannot be read.
        """
        if not self.path.exists():
            logger.debug(f"No index at {self.path}, starting empty")
            return IndexFile.empty()

        data = read_json(self.path)
        try:
            return IndexFile.model_validate(data)
        except PydanticValidationError as e:
            raise SerializationError(
                "Index file does not match the expected structure",
                path=str(self.path),
                code=ErrorCode.INDEX_CORRUPTED,
                original_error=e,
            ) from e

    def store(self, index: IndexFile) -> None:
        """Atomically replace the index file with ``index``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = dump_json(index.model_dump(mode="json", by_alias=True))
        atomic_write_text(self.path, text)
        logger.debug(
            f"Stored index: {len(index.notes)} notes, {len(index.notebooks)} notebooks"
        )
