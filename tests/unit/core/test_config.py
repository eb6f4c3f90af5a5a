# tests/unit/core/test_config.py
"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from stepwise.core.config import StepwiseSettings, load_settings


class TestDefaults:
    def test_everything_has_defaults(self) -> None:
        settings = StepwiseSettings()

        assert settings.library.object_info_path is None
        assert settings.virtual_links.resolve_aliases is True
        assert settings.virtual_links.resolve_broadcasts is True
        assert settings.prompt.client_id is None
        assert settings.logging.level == "INFO"

    def test_frozen(self) -> None:
        settings = StepwiseSettings()

        with pytest.raises(ValidationError):
            settings.logging = settings.logging  # type: ignore[misc]


class TestLoadSettings:
    def test_loads_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "stepwise.yaml"
        config.write_text(
            "library:\n"
            "  object_info_path: /srv/object_info.json\n"
            "virtual_links:\n"
            "  resolve_broadcasts: false\n"
            "logging:\n"
            "  level: debug\n"
        )

        settings = load_settings(config)

        assert settings.library.object_info_path == Path("/srv/object_info.json")
        assert settings.virtual_links.resolve_broadcasts is False
        assert settings.virtual_links.resolve_aliases is True
        assert settings.logging.level == "DEBUG"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_invalid_value(self, tmp_path: Path) -> None:
        config = tmp_path / "stepwise.yaml"
        config.write_text("logging:\n  level: LOUD\n")

        with pytest.raises(ValidationError):
            load_settings(config)

    def test_environment_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "stepwise.yaml"
        config.write_text("prompt:\n  client_id: from-file\n")
        monkeypatch.setenv("STEPWISE_PROMPT__CLIENT_ID", "from-env")

        assert load_settings(config).prompt.client_id == "from-env"

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "stepwise.yaml"
        config.write_text("library:\n  object_info_path: ${OBJECT_INFO_DIR:-/opt}/object_info.json\n")
        monkeypatch.delenv("OBJECT_INFO_DIR", raising=False)

        assert load_settings(config).library.object_info_path == Path("/opt/object_info.json")
