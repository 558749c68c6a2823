"""Low-level file helpers shared by the storage components."""
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

from localnotes.exceptions import ErrorCode, SerializationError, StorageError

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` so readers never see a partial file.

    The data goes to a temporary file beside the destination, is flushed and
    fsynced, and is then renamed onto the destination. A crash leaves either
    the old complete file or the new complete file.

    Raises:
        StorageError: If any step fails; the temporary file is removed.
    """
    temp_path = path.with_name(path.name + TEMP_SUFFIX)
    try:
        with open(temp_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except OSError as e:
        try:
            temp_path.unlink()
        except OSError:
            pass
        raise StorageError(
            f"Failed to write {path.name}",
            operation="write",
            path=str(path),
            code=ErrorCode.STORAGE_WRITE_FAILED,
            original_error=e,
        ) from e


def read_text(path: Path) -> str:
    """Read a UTF-8 text file, wrapping OS errors."""
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(
            f"Failed to read {path.name}",
            operation="read",
            path=str(path),
            code=ErrorCode.STORAGE_READ_FAILED,
            original_error=e,
        ) from e


def read_json(path: Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        StorageError: If the file cannot be read.
        SerializationError: If the content is not valid JSON.
    """
    raw = read_text(path)
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SerializationError(
            f"Malformed JSON in {path.name}", path=str(path), original_error=e
        ) from e


def dump_json(data: Any) -> str:
    """Serialize plain data the way every JSON file of the store is written."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def ensure_dir(path: Path) -> None:
    """Create a directory (and parents), wrapping OS errors."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(
            f"Failed to create directory {path.name}",
            operation="mkdir",
            path=str(path),
            code=ErrorCode.STORAGE_WRITE_FAILED,
            original_error=e,
        ) from e


def remove_quietly(path: Path) -> bool:
    """Best-effort removal of a file or directory tree.

    Cleanup after a delete must never fail the operation, so errors are
    logged and reported through the return value only.

    Returns:
        True if something was removed.
    """
    try:
        if path.is_dir():
            shutil.rmtree(path)
            return True
        if path.exists():
            path.unlink()
            return True
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
    return False


def copy_tree(src: Path, dest: Path) -> int:
    """Recursively copy ``src`` into ``dest``, overwriting existing files.

    Returns:
        Number of files copied.

    Raises:
        StorageError: On the first file that cannot be copied.
    """
    copied = 0
    ensure_dir(dest)
    for entry in sorted(src.iterdir()):
        target = dest / entry.name
        if entry.is_dir():
            copied += copy_tree(entry, target)
            continue
        try:
            shutil.copyfile(entry, target)
        except OSError as e:
            raise StorageError(
                f"Failed to copy {entry.name}",
                operation="copy",
                path=str(entry),
                code=ErrorCode.STORAGE_COPY_FAILED,
                original_error=e,
            ) from e
        copied += 1
    return copied
