"""Custom exceptions for the LocalNotes store.

Provides a structured exception hierarchy with error codes and
machine-readable error information. The four top-level categories are
validation, not-found, storage (filesystem) and serialization errors.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Not-found errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTEBOOK_NOT_FOUND = 1002
    TEMPLATE_NOT_FOUND = 1003
    VERSION_NOT_FOUND = 1004
    ATTACHMENT_NOT_FOUND = 1005

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003
    STORAGE_COPY_FAILED = 4004

    # Serialization errors (5xxx)
    SERIALIZATION_FAILED = 5001
    INDEX_CORRUPTED = 5002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_ID = 7002
    EMPTY_FIELD = 7003
    PATH_TRAVERSAL_DETECTED = 7005
    TEMPLATE_NOT_CUSTOM = 7006


class NotesError(Exception):
    """Base exception for all LocalNotes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ValidationError(NotesError):
    """Raised for malformed or forbidden ids, paths and empty required fields."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class NotFoundError(NotesError):
    """Raised when a note, notebook, template, version or attachment is absent."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOTE_NOT_FOUND,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)


class NoteNotFoundError(NotFoundError):
    """Raised when a note cannot be found in the index."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class NotebookNotFoundError(NotFoundError):
    """Raised when a notebook cannot be found in the index."""

    def __init__(self, notebook_id: str):
        super().__init__(
            f"Notebook with ID '{notebook_id}' not found",
            code=ErrorCode.NOTEBOOK_NOT_FOUND,
            details={"notebook_id": notebook_id},
        )
        self.notebook_id = notebook_id


class TemplateNotFoundError(NotFoundError):
    """Raised when neither a built-in nor a custom template matches."""

    def __init__(self, template_id: str):
        super().__init__(
            f"Template '{template_id}' not found",
            code=ErrorCode.TEMPLATE_NOT_FOUND,
            details={"template_id": template_id},
        )
        self.template_id = template_id


class VersionNotFoundError(NotFoundError):
    """Raised when a note has no snapshot with the requested timestamp."""

    def __init__(self, note_id: str, saved_at: str):
        super().__init__(
            f"Version '{saved_at}' of note '{note_id}' not found",
            code=ErrorCode.VERSION_NOT_FOUND,
            details={"note_id": note_id, "saved_at": saved_at},
        )
        self.note_id = note_id
        self.saved_at = saved_at


class AttachmentNotFoundError(NotFoundError):
    """Raised when a note has no attachment at the given relative path."""

    def __init__(self, note_id: str, relative_path: str):
        super().__init__(
            f"Attachment '{relative_path}' not found on note '{note_id}'",
            code=ErrorCode.ATTACHMENT_NOT_FOUND,
            details={"note_id": note_id, "path": relative_path},
        )
        self.note_id = note_id
        self.relative_path = relative_path


class StorageError(NotesError):
    """Raised for filesystem failures on read, write, remove or copy."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if path:
            # Don't expose full paths in error messages
            details["path_hint"] = str(path).replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.path = path
        self.original_error = original_error


class SerializationError(StorageError):
    """Raised when a file that must hold valid JSON fails to parse."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.SERIALIZATION_FAILED,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            operation="parse",
            path=path,
            code=code,
            original_error=original_error,
        )
