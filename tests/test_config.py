"""
Settings loading tests.
"""

import logging
from pathlib import Path

import pytest

from coursegate.config import Settings, load_settings, setup_logging
from coursegate.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory with no COURSEGATE_* variables set."""
    monkeypatch.chdir(tmp_path)
    for name in Settings.model_fields:
        monkeypatch.delenv(f"COURSEGATE_{name.upper()}", raising=False)


class TestLoadSettings:
    """Test defaults, YAML and environment layering."""

    def test_defaults(self, tmp_path):
        settings = load_settings(env_file=tmp_path / "missing.env")
        assert settings.certificate_prefix == "CERT"
        assert settings.watch_complete_percent == 90
        assert settings.timer_complete_ratio == 0.8
        assert settings.default_media_minutes == 3
        assert settings.progress_db == Path.home() / ".coursegate" / "progress.db"

    def test_yaml_file(self, tmp_path):
        config = tmp_path / "custom.yaml"
        config.write_text("certificate_prefix: ACME\ncontent_db: /srv/content.db\n", encoding="utf-8")

        settings = load_settings(config, env_file=tmp_path / "missing.env")

        assert settings.certificate_prefix == "ACME"
        assert settings.content_db == Path("/srv/content.db")

    def test_default_yaml_in_working_directory(self, tmp_path):
        (tmp_path / "coursegate.yaml").write_text("certificate_retries: 5\n", encoding="utf-8")
        assert load_settings(env_file=tmp_path / "missing.env").certificate_retries == 5

    def test_environment_overrides_yaml(self, tmp_path, monkeypatch):
        config = tmp_path / "custom.yaml"
        config.write_text("certificate_prefix: ACME\n", encoding="utf-8")
        monkeypatch.setenv("COURSEGATE_CERTIFICATE_PREFIX", "ENV")
        monkeypatch.setenv("COURSEGATE_WATCH_COMPLETE_PERCENT", "75")

        settings = load_settings(config, env_file=tmp_path / "missing.env")

        assert settings.certificate_prefix == "ENV"
        assert settings.watch_complete_percent == 75.0

    def test_dotenv_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("COURSEGATE_LOG_LEVEL=DEBUG\n", encoding="utf-8")
        # registered with monkeypatch so the value load_dotenv sets is removed afterwards
        monkeypatch.setenv("COURSEGATE_LOG_LEVEL", "")
        monkeypatch.delenv("COURSEGATE_LOG_LEVEL")

        assert load_settings(env_file=env_file).log_level == "DEBUG"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml")

    def test_empty_yaml_uses_defaults(self, tmp_path):
        config = tmp_path / "empty.yaml"
        config.write_text("", encoding="utf-8")
        assert load_settings(config, env_file=tmp_path / "missing.env").certificate_prefix == "CERT"

    def test_non_mapping_yaml(self, tmp_path):
        config = tmp_path / "list.yaml"
        config.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_settings(config, env_file=tmp_path / "missing.env")

    def test_invalid_value(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COURSEGATE_TIMER_COMPLETE_RATIO", "1.5")
        with pytest.raises(ConfigurationError):
            load_settings(env_file=tmp_path / "missing.env")


class TestLogging:
    def test_setup_logging_level(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
        setup_logging("debug")
        assert calls["level"] == logging.DEBUG
        assert calls["format"] == "%(asctime)s - %(levelname)s - %(message)s"
