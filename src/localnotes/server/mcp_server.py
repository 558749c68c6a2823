"""MCP server exposing the LocalNotes store."""

import json
import logging
import uuid
from typing import Any, List, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel

from localnotes.config import config
from localnotes.exceptions import NotesError
from localnotes.observability import metrics, timed_operation
from localnotes.services.note_service import NoteService

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_BODY_LENGTH = 1_000_000  # 1 MB

INSTRUCTIONS = (
    "Local, single-user notes. Bodies are plain text; #tags and [[Title]] links "
    "are derived on every save. Search understands tag:, is:starred, date:today|week|month, "
    "has:attachments, has:tasks, is:completed and is:uncompleted plus free text."
)


def _validate_input_lengths(title: Optional[str] = None, body: Optional[str] = None) -> None:
    """Validate input string lengths at the MCP boundary."""
    if title and len(title) > MAX_TITLE_LENGTH:
        raise ValueError(f"Title exceeds maximum length of {MAX_TITLE_LENGTH} characters")
    if body and len(body) > MAX_BODY_LENGTH:
        raise ValueError(f"Body exceeds maximum length of {MAX_BODY_LENGTH} characters")


def _split_ids(value: str) -> List[str]:
    """Comma-separated ids to a list, blanks dropped."""
    return [part.strip() for part in value.split(",") if part.strip()]


def _to_json(value: Any) -> str:
    """Serialize models (or lists of models) with their on-disk field names."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    elif isinstance(value, list):
        value = [
            v.model_dump(mode="json", by_alias=True) if isinstance(v, BaseModel) else v
            for v in value
        ]
    return json.dumps(value, indent=2, ensure_ascii=False)


class LocalNotesMcpServer:
    """MCP server for the LocalNotes store."""

    def __init__(self, service: Optional[NoteService] = None):
        """Initialize the MCP server.

        Args:
            service: Note service to expose. Created from the global config
                when None.
        """
        self.mcp = FastMCP(config.server_name, instructions=INSTRUCTIONS)
        self.service = service or NoteService()
        self.initialize()
        self._register_tools()

    def initialize(self) -> None:
        """Create the storage folders and index if needed."""
        self.service.init_storage()
        logger.info(f"LocalNotes MCP server initialized (storage: {self.service.root})")

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        # Generate a unique error ID for traceability in logs
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, NotesError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, (IOError, OSError)):
            # File system errors - don't expose paths or detailed error messages
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""
        self._register_note_tools()
        self._register_attachment_tools()
        self._register_tag_tools()
        self._register_version_tools()
        self._register_template_tools()
        self._register_notebook_tools()
        self._register_maintenance_tools()

    # ========== Notes ==========

    def _register_note_tools(self) -> None:
        @self.mcp.tool(name="notes_list")
        def notes_list() -> str:
            """List every note's metadata in stored order."""
            with timed_operation("notes_list") as op:
                try:
                    notes = self.service.list_notes()
                    op["result_count"] = len(notes)
                    return _to_json(notes)
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_get")
        def notes_get(note_id: str) -> str:
            """Read a note's metadata and body.
            Args:
                note_id: The ID of the note
            """
            with timed_operation("notes_get", note_id=note_id):
                try:
                    return _to_json(self.service.read_note(note_id))
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_save")
        def notes_save(title: str, body: str, note_id: Optional[str] = None) -> str:
            """Create or update a note. Tags and links are derived from the text.
            Args:
                title: The note title
                body: The full body text (replaces the previous body)
                note_id: ID of the note to update; omit to create a new note
            """
            with timed_operation("notes_save", note_id=note_id) as op:
                try:
                    _validate_input_lengths(title=title, body=body)
                    note = self.service.save_note(note_id, title, body)
                    op["note_id"] = note.id
                    verb = "updated" if note_id else "created"
                    return f"Note {verb} successfully with ID: {note.id}\n{_to_json(note)}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_rename")
        def notes_rename(note_id: str, title: str) -> str:
            """Change only a note's title.
            Args:
                note_id: The ID of the note
                title: The new title
            """
            try:
                _validate_input_lengths(title=title)
                note = self.service.update_note_title(note_id, title)
                return f"Note {note.id} renamed to '{note.title}'"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_delete")
        def notes_delete(note_id: str) -> str:
            """Delete one or more notes with their bodies, images and history.
            Args:
                note_id: The ID of the note, or comma-separated IDs for batch mode
            """
            with timed_operation("notes_delete", note_id=note_id[:40]) as op:
                try:
                    ids = _split_ids(note_id)
                    if not ids:
                        return "Error: No note IDs provided."
                    if len(ids) > 1:
                        removed = self.service.batch_delete_notes(ids)
                        op["deleted_count"] = len(removed)
                        return f"Deleted {len(removed)} of {len(ids)} notes."
                    self.service.delete_note(ids[0])
                    return f"Note {ids[0]} deleted successfully"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_star")
        def notes_star(note_id: str, important: bool = True) -> str:
            """Mark one or more notes as important (starred) or clear the mark.
            Args:
                note_id: The ID of the note, or comma-separated IDs for batch mode
                important: True to star, False to unstar
            """
            try:
                ids = _split_ids(note_id)
                if not ids:
                    return "Error: No note IDs provided."
                if len(ids) > 1:
                    updated = self.service.batch_toggle_important(ids, important)
                    return f"Updated {len(updated)} of {len(ids)} notes."
                note = self.service.toggle_important(ids[0], important)
                state = "starred" if note.important else "unstarred"
                return f"Note {note.id} {state}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_duplicate")
        def notes_duplicate(note_id: str) -> str:
            """Copy a note, its body and its images under a new ID.
            Args:
                note_id: The ID of the note to copy
            """
            try:
                note = self.service.duplicate_note(note_id)
                return f"Note duplicated as '{note.title}' (ID: {note.id})"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_merge")
        def notes_merge(note_ids: str) -> str:
            """Merge notes into the first one, oldest content first.
            Args:
                note_ids: Comma-separated note IDs; the first ID is kept
            """
            with timed_operation("notes_merge") as op:
                try:
                    ids = _split_ids(note_ids)
                    note = self.service.merge_notes(ids)
                    op["merged_count"] = len(ids)
                    return f"Merged {len(ids)} notes into '{note.title}' (ID: {note.id})"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_export")
        def notes_export(
            note_id: str, format: str = "markdown", output_path: Optional[str] = None
        ) -> str:
            """Export a note as plain text or Markdown.
            Args:
                note_id: The ID of the note
                format: "markdown" (default, with frontmatter) or "plain"
                output_path: Optional file to write the export to
            """
            try:
                if format == "plain":
                    text = self.service.export_note(note_id)
                elif format == "markdown":
                    text = self.service.export_note_as_markdown(note_id)
                else:
                    return f"Invalid format: {format}. Valid formats are: markdown, plain"
                if output_path:
                    path = self.service.write_text_file(output_path, text)
                    return f"Exported note {note_id} to {path}"
                return text
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_daily")
        def notes_daily() -> str:
            """Get today's daily note, creating it on first use."""
            try:
                return _to_json(self.service.get_or_create_daily_note())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_search")
        def notes_search(query: str = "") -> str:
            """Search notes; all terms must match.
            Args:
                query: Free text plus operators: tag:<name>, is:starred,
                    date:today|week|month, has:attachments, has:tasks,
                    is:completed, is:uncompleted
            """
            with timed_operation("notes_search", query=query[:50]) as op:
                try:
                    results = self.service.search(query)
                    op["result_count"] = len(results)
                    return _to_json(results)
                except Exception as e:
                    return self.format_error_response(e)

    # ========== Attachments ==========

    def _register_attachment_tools(self) -> None:
        @self.mcp.tool(name="notes_attach_files")
        def notes_attach_files(note_id: str, file_paths: str) -> str:
            """Copy files into a note's attachments. Missing files are skipped.
            Args:
                note_id: The ID of the note
                file_paths: Comma-separated absolute file paths
            """
            with timed_operation("notes_attach_files", note_id=note_id) as op:
                try:
                    paths = _split_ids(file_paths)
                    before = len(self.service.read_note(note_id).meta.images)
                    note = self.service.attach_images(note_id, paths)
                    added = len(note.images) - before
                    op["attached_count"] = added
                    return f"Attached {added} of {len(paths)} files to note {note.id}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_attach_clipboard")
        def notes_attach_clipboard(
            note_id: str, data_base64: str, suggested_name: str = "paste.png"
        ) -> str:
            """Attach a pasted image given as base64 text.
            Args:
                note_id: The ID of the note
                data_base64: Base64-encoded image bytes
                suggested_name: File name to derive the stem and extension from
            """
            try:
                note = self.service.attach_image_bytes(note_id, data_base64, suggested_name)
                return f"Image attached: {note.images[-1].path}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_remove_attachment")
        def notes_remove_attachment(note_id: str, path: str) -> str:
            """Remove an attachment from a note and delete its file.
            Args:
                note_id: The ID of the note
                path: The attachment path relative to the storage root
            """
            try:
                self.service.remove_attachment(note_id, path)
                return f"Attachment {path} removed from note {note_id}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_rename_attachment")
        def notes_rename_attachment(note_id: str, path: str, new_name: str) -> str:
            """Change an attachment's display name.
            Args:
                note_id: The ID of the note
                path: The attachment path relative to the storage root
                new_name: The new display name
            """
            try:
                note = self.service.rename_attachment(note_id, path, new_name)
                name = next(img.name for img in note.images if img.path == path)
                return f"Attachment renamed to '{name}'"
            except Exception as e:
                return self.format_error_response(e)

    # ========== Tags and links ==========

    def _register_tag_tools(self) -> None:
        @self.mcp.tool(name="notes_list_tags")
        def notes_list_tags() -> str:
            """List every tag in use, sorted."""
            try:
                return _to_json(self.service.list_tags())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_by_tag")
        def notes_by_tag(tag: str) -> str:
            """List notes carrying exactly this tag.
            Args:
                tag: The tag name (case-sensitive)
            """
            try:
                return _to_json(self.service.notes_by_tag(tag))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_add_tag")
        def notes_add_tag(note_id: str, tag: str) -> str:
            """Add a tag to one or more notes.

            Derived tags are recomputed on the next save, so a manually added
            tag lasts until the note is saved again.

            Args:
                note_id: The ID of the note, or comma-separated IDs for batch mode
                tag: The tag to add
            """
            try:
                ids = _split_ids(note_id)
                if not ids:
                    return "Error: No note IDs provided."
                if not tag.strip():
                    return "Error: Tag cannot be empty"
                updated = self.service.add_tag_to_notes(ids, tag)
                return f"Added tag '{tag.strip()}' to {len(updated)} notes."
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_remove_tag")
        def notes_remove_tag(note_id: str, tag: str) -> str:
            """Remove a tag from a note.
            Args:
                note_id: The ID of the note
                tag: The tag to remove
            """
            try:
                note = self.service.remove_tag_from_note(note_id, tag)
                return f"Tag '{tag}' removed from note '{note.title}' (ID: {note.id})"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_backlinks")
        def notes_backlinks(note_id: str) -> str:
            """List notes whose [[links]] point at this note.
            Args:
                note_id: The ID of the note
            """
            try:
                return _to_json(self.service.get_backlinks(note_id))
            except Exception as e:
                return self.format_error_response(e)

    # ========== Versions ==========

    def _register_version_tools(self) -> None:
        @self.mcp.tool(name="notes_versions")
        def notes_versions(note_id: str) -> str:
            """List a note's saved versions, newest first.
            Args:
                note_id: The ID of the note
            """
            try:
                return _to_json(self.service.list_versions(note_id))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_get_version")
        def notes_get_version(note_id: str, saved_at: str) -> str:
            """Read one saved version in full.
            Args:
                note_id: The ID of the note
                saved_at: The version timestamp as listed by notes_versions
            """
            try:
                return _to_json(self.service.get_version(note_id, saved_at))
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_restore_version")
        def notes_restore_version(note_id: str, saved_at: str) -> str:
            """Restore a saved version. The replaced content becomes a new version.
            Args:
                note_id: The ID of the note
                saved_at: The version timestamp as listed by notes_versions
            """
            with timed_operation("notes_restore_version", note_id=note_id):
                try:
                    note = self.service.restore_version(note_id, saved_at)
                    return f"Note {note.id} restored to version {saved_at}"
                except Exception as e:
                    return self.format_error_response(e)

    # ========== Templates ==========

    def _register_template_tools(self) -> None:
        @self.mcp.tool(name="notes_templates")
        def notes_templates() -> str:
            """List built-in and custom templates."""
            try:
                return _to_json(self.service.list_templates())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_from_template")
        def notes_from_template(template_id: str, title: Optional[str] = None) -> str:
            """Create a note from a template ({{date}} and {{title}} are filled in).
            Args:
                template_id: The template ID
                title: Optional title; defaults to the template's title pattern
            """
            try:
                note = self.service.create_note_from_template(template_id, title)
                return f"Note created successfully with ID: {note.id} ('{note.title}')"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_save_template")
        def notes_save_template(name: str, body: str) -> str:
            """Save a custom template.
            Args:
                name: Template name, also used as the default note title
                body: Template body; may contain {{date}} and {{title}}
            """
            try:
                template = self.service.save_custom_template(name, body)
                return f"Template saved with ID: {template.id}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_delete_template")
        def notes_delete_template(template_id: str) -> str:
            """Delete a custom template. Built-in templates cannot be deleted.
            Args:
                template_id: The ID of a custom template
            """
            try:
                self.service.delete_custom_template(template_id)
                return f"Template {template_id} deleted"
            except Exception as e:
                return self.format_error_response(e)

    # ========== Notebooks ==========

    def _register_notebook_tools(self) -> None:
        @self.mcp.tool(name="notes_notebooks")
        def notes_notebooks() -> str:
            """List notebooks, active ones first."""
            try:
                return _to_json(self.service.list_notebooks())
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_create_notebook")
        def notes_create_notebook(name: str) -> str:
            """Create a notebook.
            Args:
                name: The notebook name
            """
            try:
                notebook = self.service.create_notebook(name)
                return f"Notebook '{notebook.name}' created with ID: {notebook.id}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_move_to_notebook")
        def notes_move_to_notebook(note_id: str, notebook_id: Optional[str] = None) -> str:
            """Move a note into a notebook, or out of any notebook.
            Args:
                note_id: The ID of the note
                notebook_id: Target notebook ID; omit to make the note unfiled
            """
            try:
                note = self.service.move_note_to_notebook(note_id, notebook_id or None)
                where = f"notebook {note.notebook_id}" if note.notebook_id else "unfiled"
                return f"Note {note.id} moved to {where}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_archive_notebook")
        def notes_archive_notebook(notebook_id: str, archived: bool = True) -> str:
            """Archive or unarchive a notebook.
            Args:
                notebook_id: The ID of the notebook
                archived: True to archive, False to restore
            """
            try:
                notebook = self.service.archive_notebook(notebook_id, archived)
                state = "archived" if notebook.archived else "active"
                return f"Notebook '{notebook.name}' is now {state}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_rename_notebook")
        def notes_rename_notebook(notebook_id: str, name: str) -> str:
            """Rename a notebook.
            Args:
                notebook_id: The ID of the notebook
                name: The new name
            """
            try:
                notebook = self.service.rename_notebook(notebook_id, name)
                return f"Notebook {notebook.id} renamed to '{notebook.name}'"
            except Exception as e:
                return self.format_error_response(e)

    # ========== Sync, backup and status ==========

    def _register_maintenance_tools(self) -> None:
        @self.mcp.tool(name="notes_sync_folder")
        def notes_sync_folder(folder: Optional[str] = None, clear: bool = False) -> str:
            """Show or set the preferred sync folder (stored only, nothing is synced).
            Args:
                folder: New folder path; omit to show the current one
                clear: True to forget the folder
            """
            try:
                if clear:
                    self.service.set_sync_folder(None)
                    return "Sync folder cleared"
                if folder:
                    self.service.set_sync_folder(folder)
                    return f"Sync folder set to {folder}"
                current = self.service.get_sync_folder()
                return f"Sync folder: {current}" if current else "No sync folder set"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="notes_export_backup")
        def notes_export_backup(target_dir: str) -> str:
            """Copy notes/, meta/ and images/ into a backup directory.
            Args:
                target_dir: Directory to write the backup to (created if needed)
            """
            with timed_operation("notes_export_backup") as op:
                try:
                    copied = self.service.export_backup(target_dir)
                    op["file_count"] = sum(copied.values())
                    return f"Backup exported to {target_dir}: {_to_json(copied)}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_import_backup")
        def notes_import_backup(source_dir: str) -> str:
            """Copy a backup over the current storage, overwriting same-named files.
            Args:
                source_dir: Backup directory containing notes/, meta/ and images/
            """
            with timed_operation("notes_import_backup") as op:
                try:
                    copied = self.service.import_backup(source_dir)
                    op["file_count"] = sum(copied.values())
                    return f"Backup imported from {source_dir}: {_to_json(copied)}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="notes_status")
        def notes_status() -> str:
            """Storage location, note count and operation metrics."""
            try:
                summary = metrics.get_summary()
                status = {
                    "storage_root": str(self.service.root),
                    "note_count": len(self.service.list_notes()),
                    "notebook_count": len(self.service.list_notebooks()),
                    "uptime_seconds": round(summary["uptime_seconds"], 1),
                    "total_operations": summary["total_operations"],
                    "total_errors": summary["total_errors"],
                    "operations": metrics.get_metrics(),
                }
                return _to_json(status)
            except Exception as e:
                return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
