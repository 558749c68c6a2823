"""Tests for configuration and the command line entry point."""
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from localnotes import main as main_module
from localnotes.config import STORAGE_DIR_NAME, NotesConfig, default_storage_root


class TestNotesConfig:
    """Tests for NotesConfig."""

    def test_default_storage_root_name(self):
        assert default_storage_root().name == STORAGE_DIR_NAME

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOCALNOTES_STORAGE_ROOT", str(tmp_path / "store"))
        monkeypatch.setenv("LOCALNOTES_LOG_LEVEL", "debug")
        monkeypatch.setenv("LOCALNOTES_VERSION_PREVIEW_LENGTH", "40")
        monkeypatch.setenv("LOCALNOTES_CLIPBOARD_COPY_DIR", str(tmp_path / "pics"))
        cfg = NotesConfig()
        assert cfg.get_storage_root() == (tmp_path / "store").absolute()
        assert cfg.log_level == "DEBUG"
        assert cfg.version_preview_length == 40
        assert cfg.clipboard_copy_dir == tmp_path / "pics"

    def test_no_clipboard_copy_by_default(self, monkeypatch):
        monkeypatch.delenv("LOCALNOTES_CLIPBOARD_COPY_DIR", raising=False)
        assert NotesConfig().clipboard_copy_dir is None

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            NotesConfig(log_level="LOUD")

    def test_invalid_preview_length(self):
        with pytest.raises(ValidationError):
            NotesConfig(version_preview_length=0)


class TestMain:
    """Tests for argument handling in main."""

    def test_parse_args(self):
        args = main_module.parse_args(["--storage-root", "/tmp/notes", "--log-level", "DEBUG"])
        assert args.storage_root == "/tmp/notes"
        assert args.log_level == "DEBUG"

    def test_update_config(self, test_config, tmp_path):
        args = main_module.parse_args(
            ["--storage-root", str(tmp_path / "s"), "--log-dir", str(tmp_path / "l")]
        )
        main_module.update_config(args)
        assert test_config.storage_root == Path(tmp_path / "s")
        assert test_config.log_dir == Path(tmp_path / "l")

    def test_main_starts_server(self, test_config, tmp_path):
        with patch.object(main_module, "LocalNotesMcpServer") as server_cls, patch.object(
            main_module, "configure_logging", return_value=tmp_path / "x.log"
        ), patch.object(main_module.atexit, "register"):
            main_module.main(["--storage-root", str(tmp_path / "store")])
        server_cls.assert_called_once()
        service = server_cls.call_args.args[0]
        assert service.root == (tmp_path / "store").absolute()
        server_cls.return_value.run.assert_called_once()

    def test_main_exits_on_server_error(self, test_config, tmp_path):
        with patch.object(
            main_module, "LocalNotesMcpServer", side_effect=RuntimeError("boom")
        ), patch.object(
            main_module, "configure_logging", return_value=tmp_path / "x.log"
        ), patch.object(main_module.atexit, "register"):
            with pytest.raises(SystemExit):
                main_module.main([])
