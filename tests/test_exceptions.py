"""Tests for the structured exception hierarchy."""
from localnotes.exceptions import (
    ErrorCode,
    NotesError,
    NotFoundError,
    NoteNotFoundError,
    SerializationError,
    StorageError,
    ValidationError,
)


class TestExceptions:
    def test_not_found_hierarchy(self):
        error = NoteNotFoundError("n1")
        assert isinstance(error, NotFoundError)
        assert isinstance(error, NotesError)
        assert error.code == ErrorCode.NOTE_NOT_FOUND
        assert str(error) == "[NOTE_NOT_FOUND] Note with ID 'n1' not found (note_id=n1)"

    def test_to_dict(self):
        data = ValidationError("bad", field="title", code=ErrorCode.EMPTY_FIELD).to_dict()
        assert data["error"] == "ValidationError"
        assert data["code"] == ErrorCode.EMPTY_FIELD.value
        assert data["details"] == {"field": "title"}

    def test_storage_error_keeps_only_file_name(self):
        error = StorageError(
            "write failed",
            operation="write",
            path="/home/user/secret/index.json",
            original_error=OSError("disk full"),
        )
        assert error.details["path_hint"] == "index.json"
        assert "secret" not in str(error)
        assert error.path == "/home/user/secret/index.json"

    def test_serialization_is_storage_error(self):
        error = SerializationError("Malformed JSON", path="a/b.json")
        assert isinstance(error, StorageError)
        assert error.operation == "parse"
        assert error.code == ErrorCode.SERIALIZATION_FAILED
