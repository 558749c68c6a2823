"""Configuration module for the LocalNotes store."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from localnotes import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, survives reinstalls
_USER_ENV = Path.home() / ".localnotes" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

STORAGE_DIR_NAME = "LocalPrivateNotes"


def default_storage_root() -> Path:
    """Platform data directory holding the ``LocalPrivateNotes`` folder.

    macOS: ``~/Library/Application Support``; Windows: ``%APPDATA%``;
    elsewhere ``$XDG_DATA_HOME`` (default ``~/.local/share``).
    """
    home = Path.home()
    if sys.platform == "darwin":
        base = home / "Library" / "Application Support"
    elif os.name == "nt":
        base = Path(os.environ.get("APPDATA", home / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", home / ".local" / "share"))
    return base / STORAGE_DIR_NAME


class NotesConfig(BaseModel):
    """Configuration for the notes store and its command layer."""

    # Storage root holding notes/, meta/, images/ and versions/
    storage_root: Path = Field(
        default_factory=lambda: (
            Path(os.environ["LOCALNOTES_STORAGE_ROOT"])
            if os.getenv("LOCALNOTES_STORAGE_ROOT")
            else default_storage_root()
        )
    )
    # Logging configuration
    log_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("LOCALNOTES_LOG_DIR", str(Path.home() / ".localnotes" / "logs"))
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("LOCALNOTES_LOG_LEVEL", "INFO")
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("LOCALNOTES_SERVER_NAME", "localnotes"))
    server_version: str = Field(default=__version__)
    # Optional second copy of every clipboard-pasted image (e.g. ~/Images)
    clipboard_copy_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.environ["LOCALNOTES_CLIPBOARD_COPY_DIR"])
            if os.getenv("LOCALNOTES_CLIPBOARD_COPY_DIR")
            else None
        )
    )
    # Characters of body shown per entry in the version timeline
    version_preview_length: int = Field(
        default_factory=lambda: int(
            os.getenv("LOCALNOTES_VERSION_PREVIEW_LENGTH", "150")
        )
    )

    model_config = {"validate_assignment": True}

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("version_preview_length")
    @classmethod
    def _validate_preview_length(cls, v: int) -> int:
        if v < 1:
            raise ValueError("version_preview_length must be >= 1")
        return v

    def get_storage_root(self) -> Path:
        """Absolute path of the storage root (not created here)."""
        return self.storage_root.expanduser().absolute()


# Create a global config instance
config = NotesConfig()
