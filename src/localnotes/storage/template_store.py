"""Built-in and custom note templates."""
import logging
from typing import List, Optional, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from localnotes.exceptions import (
    ErrorCode,
    SerializationError,
    TemplateNotFoundError,
    ValidationError,
)
from localnotes.models.schema import NoteTemplate, generate_id, today_str
from localnotes.storage.files import atomic_write_text, dump_json, ensure_dir, read_json
from localnotes.storage.layout import StorageLayout

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom-"
DATE_PLACEHOLDER = "{{date}}"
TITLE_PLACEHOLDER = "{{title}}"

_TEMPLATE_LIST = TypeAdapter(List[NoteTemplate])

BUILTIN_TEMPLATES: Tuple[NoteTemplate, ...] = (
    NoteTemplate(
        id="daily-journal",
        name="Daily journal",
        body=(
            "# Daily Journal — {{date}}\n\n"
            "## What happened today\n- \n\n"
            "## Thoughts & reflections\n- \n\n"
            "## Tomorrow\n- \n"
        ),
        default_title_pattern="Journal {{date}}",
    ),
    NoteTemplate(
        id="meeting-notes",
        name="Meeting notes",
        body=(
            "# Meeting: {{title}}\n\n"
            "**Date:** {{date}}\n"
            "**Attendees:** \n"
            "**Agenda:**\n- \n\n"
            "**Notes:**\n- \n\n"
            "**Action items:**\n- [ ] \n- [ ] \n"
        ),
        default_title_pattern="Meeting {{date}}",
    ),
    NoteTemplate(
        id="project-planning",
        name="Project planning",
        body=(
            "# Project: {{title}}\n\n"
            "## Overview\n- **Goal:** \n- **Timeline:** \n\n"
            "## Tasks\n- [ ] \n- [ ] \n\n"
            "## Notes\n- \n"
        ),
        default_title_pattern="Project",
    ),
)


def apply_placeholders(body: str, title: str, date: Optional[str] = None) -> Tuple[str, str]:
    """Substitute ``{{date}}`` and ``{{title}}`` in a template.

    Args:
        body: Template body.
        title: Title pattern or the caller's title override.
        date: ``YYYY-MM-DD``; defaults to today (UTC).

    Returns:
        ``(body, title)`` with placeholders replaced.
    """
    date = date or today_str()
    body_out = body.replace(DATE_PLACEHOLDER, date).replace(TITLE_PLACEHOLDER, title)
    title_out = title.replace(DATE_PLACEHOLDER, date).replace(TITLE_PLACEHOLDER, title)
    return body_out, title_out


class TemplateStore:
    """Template catalogue: fixed built-ins plus customs kept in ``meta/templates.json``."""

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    @staticmethod
    def builtin_templates() -> List[NoteTemplate]:
        return [t.model_copy() for t in BUILTIN_TEMPLATES]

    def read_custom(self) -> List[NoteTemplate]:
        """Custom templates; an absent file means none."""
        path = self.layout.templates_path
        if not path.exists():
            return []
        data = read_json(path)
        try:
            return _TEMPLATE_LIST.validate_python(data)
        except PydanticValidationError as e:
            raise SerializationError(
                "Template file does not match the expected structure",
                path=str(path),
                original_error=e,
            ) from e

    def write_custom(self, templates: List[NoteTemplate]) -> None:
        ensure_dir(self.layout.meta_dir)
        payload = [t.model_dump(by_alias=True) for t in templates]
        atomic_write_text(self.layout.templates_path, dump_json(payload))

    def list_templates(self) -> List[NoteTemplate]:
        """Built-ins first, then customs in creation order."""
        return self.builtin_templates() + self.read_custom()

    def get_template(self, template_id: str) -> NoteTemplate:
        for template in self.list_templates():
            if template.id == template_id:
                return template
        raise TemplateNotFoundError(template_id)

    def save_custom_template(self, name: str, body: str) -> NoteTemplate:
        """Create a custom template; its name doubles as the default title."""
        if not name.strip():
            raise ValidationError(
                "Template name cannot be empty", field="name", code=ErrorCode.EMPTY_FIELD
            )
        custom = self.read_custom()
        template = NoteTemplate(
            id=f"{CUSTOM_PREFIX}{generate_id()}",
            name=name,
            body=body,
            default_title_pattern=name,
            is_custom=True,
        )
        custom.append(template)
        self.write_custom(custom)
        logger.info(f"Saved custom template {template.id} ({name!r})")
        return template

    def delete_custom_template(self, template_id: str) -> None:
        """Delete a custom template. Built-ins cannot be deleted.

        Raises:
            ValidationError: If the id is not a custom template id.
            TemplateNotFoundError: If no custom template has that id.
        """
        if not template_id.startswith(CUSTOM_PREFIX):
            raise ValidationError(
                "Can only delete custom templates",
                field="template_id",
                value=template_id,
                code=ErrorCode.TEMPLATE_NOT_CUSTOM,
            )
        custom = self.read_custom()
        remaining = [t for t in custom if t.id != template_id]
        if len(remaining) == len(custom):
            raise TemplateNotFoundError(template_id)
        self.write_custom(remaining)
        logger.info(f"Deleted custom template {template_id}")
