"""Advisory sync folder setting (``meta/sync_config.json``)."""
import json
import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from localnotes.models.schema import SyncSettings
from localnotes.storage.files import atomic_write_text, dump_json, ensure_dir, read_text
from localnotes.storage.layout import StorageLayout

logger = logging.getLogger(__name__)


class SyncSettingsStore:
    """Remembers where the user would like their notes synced.

    Purely a stored preference: nothing here copies or watches files.
    """

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    def load(self) -> SyncSettings:
        """Current settings; a missing or unreadable file yields defaults."""
        path = self.layout.sync_settings_path
        if not path.exists():
            return SyncSettings()
        try:
            return SyncSettings.model_validate(json.loads(read_text(path)))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"Ignoring malformed sync settings in {path.name}: {e}")
            return SyncSettings()

    def get_sync_folder(self) -> Optional[str]:
        return self.load().sync_folder

    def set_sync_folder(self, folder: Optional[str]) -> SyncSettings:
        """Store ``folder`` (None clears it)."""
        settings = self.load()
        settings.sync_folder = folder
        ensure_dir(self.layout.meta_dir)
        atomic_write_text(
            self.layout.sync_settings_path, dump_json(settings.model_dump(by_alias=True))
        )
        return settings
