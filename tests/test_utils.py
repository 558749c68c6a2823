"""Tests for the path sandboxing helpers."""
from pathlib import Path

import pytest

from localnotes.exceptions import ErrorCode, ValidationError
from localnotes.utils import (
    MAX_FILENAME_LENGTH,
    resolve_under_root,
    sanitize_filename,
    validate_id,
    validate_notebook_id,
)

FORBIDDEN = '/\\:*?"<>|'


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    @pytest.mark.parametrize(
        "raw",
        [
            "a/b",
            "C:\\Users\\x",
            'what?*"<>|',
            "tab\there\nnewline\x00nul\x7fdel",
            "  padded  ",
            "x" * 500,
            " " + "y" * 199 + " z",
        ],
    )
    def test_output_is_safe_and_idempotent(self, raw):
        """Output never holds forbidden or control characters and is a fixed point."""
        safe = sanitize_filename(raw)
        assert not any(c in FORBIDDEN for c in safe)
        assert not any(ord(c) < 32 or ord(c) == 127 for c in safe)
        assert len(safe) <= MAX_FILENAME_LENGTH
        assert sanitize_filename(safe) == safe

    def test_replaces_with_underscore(self):
        assert sanitize_filename("a/b") == "a_b"
        assert sanitize_filename("a*b?c") == "a_b_c"

    def test_trims_whitespace(self):
        assert sanitize_filename("  foo  ") == "foo"

    def test_safe_name_unchanged(self):
        assert sanitize_filename("note-123") == "note-123"

    def test_empty(self):
        assert sanitize_filename("") == ""


class TestValidateId:
    """Tests for validate_id."""

    @pytest.mark.parametrize("bad", ["", ".", "..", "a/b", "a\\b", "a\nb", "a\x00b"])
    def test_rejects_unsafe_ids(self, bad):
        with pytest.raises(ValidationError) as exc_info:
            validate_id(bad)
        assert exc_info.value.code == ErrorCode.INVALID_ID

    def test_accepts_plain_id(self):
        assert validate_id("note-123") == "note-123"

    def test_notebook_ids_use_same_rules(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_notebook_id("..")
        assert exc_info.value.field == "Notebook ID"
        assert validate_notebook_id("nb-1") == "nb-1"


class TestResolveUnderRoot:
    """Tests for resolve_under_root."""

    def test_resolves_descendant(self, tmp_path):
        resolved = resolve_under_root(tmp_path, "images/n1/a.png")
        assert resolved == Path(tmp_path).absolute() / "images" / "n1" / "a.png"

    @pytest.mark.parametrize(
        "bad",
        ["", "../etc/passwd", "images/../../x", "/etc/passwd", "\\server\\share", "C:\\x"],
    )
    def test_rejects_traversal(self, tmp_path, bad):
        with pytest.raises(ValidationError) as exc_info:
            resolve_under_root(tmp_path, bad)
        assert exc_info.value.code == ErrorCode.PATH_TRAVERSAL_DETECTED

    def test_rejects_root_itself(self, tmp_path):
        with pytest.raises(ValidationError):
            resolve_under_root(tmp_path, ".")
