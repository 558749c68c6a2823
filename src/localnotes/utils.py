"""Path sandboxing helpers shared by every storage component.

Every identifier that becomes part of a filesystem path goes through
``validate_id`` and every file name built from user input goes through
``sanitize_filename``. Relative paths coming back from callers (attachment
paths) are resolved with ``resolve_under_root``.
"""
import os
import unicodedata
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Union

from localnotes.exceptions import ErrorCode, ValidationError

MAX_FILENAME_LENGTH = 200

# Path separators, the drive/volume separator, quoting/glob characters and NUL
_UNSAFE_FILENAME_CHARS = frozenset('/\\:*?"<>|\0')


def _is_control(char: str) -> bool:
    return unicodedata.category(char) == "Cc"


def sanitize_filename(name: str) -> str:
    """Map any string to a filesystem-safe file name.

    Replaces path separators, ``:*?"<>|``, NUL and all control characters
    with ``_``, trims surrounding whitespace and truncates to 200 characters.
    Sanitizing an already-safe name returns it unchanged.

    Examples:
        "a/b" -> "a_b"
        "a*b?c" -> "a_b_c"
        "  foo  " -> "foo"

    Args:
        name: Arbitrary input, typically a note id or a user supplied name.

    Returns:
        The sanitized name, possibly empty.
    """
    if not name:
        return ""

    replaced = "".join(
        "_" if c in _UNSAFE_FILENAME_CHARS or _is_control(c) else c for c in name
    )
    # Strip again after truncation so a cut at a space stays idempotent
    return replaced.strip()[:MAX_FILENAME_LENGTH].strip()


def validate_id(value: str, field_name: str = "Note ID") -> str:
    """Validate that an id is a single, safe path component.

    Rejects empty ids, ``.``, ``..``, any path separator and any control
    character. Used identically for note ids and notebook ids.

    Args:
        value: The id to validate.
        field_name: Name of the field for error messages.

    Returns:
        The validated id (unchanged).

    Raises:
        ValidationError: If the id is unsafe.
    """
    if not value:
        raise ValidationError(
            f"{field_name} cannot be empty", field=field_name, code=ErrorCode.INVALID_ID
        )
    if value in (".", ".."):
        raise ValidationError(
            f"{field_name} cannot be '.' or '..'",
            field=field_name,
            value=value,
            code=ErrorCode.INVALID_ID,
        )
    if "/" in value or "\\" in value:
        raise ValidationError(
            f"{field_name} cannot contain path separators",
            field=field_name,
            value=value,
            code=ErrorCode.INVALID_ID,
        )
    if any(_is_control(c) for c in value):
        raise ValidationError(
            f"{field_name} cannot contain control characters",
            field=field_name,
            value=value,
            code=ErrorCode.INVALID_ID,
        )
    return value


def validate_notebook_id(value: str) -> str:
    """Validate a notebook id with the same rules as note ids."""
    return validate_id(value, field_name="Notebook ID")


def _looks_absolute(relative_path: str) -> bool:
    return (
        relative_path.startswith(("/", "\\"))
        or PurePosixPath(relative_path).is_absolute()
        or PureWindowsPath(relative_path).is_absolute()
        or bool(PureWindowsPath(relative_path).drive)
    )


def resolve_under_root(root: Union[str, Path], relative_path: str) -> Path:
    """Resolve a caller supplied relative path against the storage root.

    Two independent checks guard against traversal: the raw string may not
    contain ``..`` or look absolute, and the joined path must still lexically
    be a descendant of ``root`` after normalisation.

    Args:
        root: The storage root directory.
        relative_path: Path relative to the root (e.g. ``images/<id>/a.png``).

    Returns:
        The absolute path under ``root``.

    Raises:
        ValidationError: If the path escapes the root.
    """
    if not relative_path or ".." in relative_path or _looks_absolute(relative_path):
        raise ValidationError(
            "Invalid path",
            field="path",
            value=relative_path,
            code=ErrorCode.PATH_TRAVERSAL_DETECTED,
        )

    root_norm = Path(os.path.normpath(os.path.abspath(root)))
    full = Path(os.path.normpath(root_norm / relative_path))
    if full == root_norm or root_norm not in full.parents:
        raise ValidationError(
            "Invalid path",
            field="path",
            value=relative_path,
            code=ErrorCode.PATH_TRAVERSAL_DETECTED,
        )
    return full
