"""Storage layer for the LocalNotes store."""

from localnotes.storage.attachments import AttachmentStore
from localnotes.storage.content_store import ContentStore
from localnotes.storage.index_store import IndexStore
from localnotes.storage.layout import StorageLayout
from localnotes.storage.sync_settings import SyncSettingsStore
from localnotes.storage.template_store import TemplateStore
from localnotes.storage.version_vault import VersionVault

__all__ = [
    "StorageLayout",
    "IndexStore",
    "ContentStore",
    "VersionVault",
    "AttachmentStore",
    "TemplateStore",
    "SyncSettingsStore",
]
