"""Tests for configuration loading (config.py) and logging setup (logging_config.py)."""

from __future__ import annotations

import json
import logging
import os

import pytest

from greeting_card.config import AppConfig, env_setting, load_config, load_toml_config
from greeting_card.logging_config import _JSONFormatter, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("GREETING_CARD_"):
            monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config == AppConfig()
        assert config.backend_url == "http://localhost:3000"
        assert config.retry_attempts == 3
        assert config.sample_rate == 24_000

    def test_toml_card_table(self, tmp_path):
        path = tmp_path / "card.toml"
        path.write_text(
            '[card]\nbackend_url = "http://cards.internal:8080"\nretry_attempts = 5\n'
            "success_display_seconds = 2.5\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.backend_url == "http://cards.internal:8080"
        assert config.retry_attempts == 5
        assert config.success_display_seconds == 2.5

    def test_env_overrides_toml(self, tmp_path, monkeypatch):
        path = tmp_path / "card.toml"
        path.write_text("[card]\nretry_attempts = 5\n", encoding="utf-8")
        monkeypatch.setenv("GREETING_CARD_RETRY_ATTEMPTS", "2")
        monkeypatch.setenv("GREETING_CARD_HTTP_TIMEOUT", "15")

        config = load_config(path)
        assert config.retry_attempts == 2
        assert config.http_timeout == 15.0

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_toml_config(tmp_path / "nope.toml") == {}
        assert load_config(tmp_path / "nope.toml") == AppConfig()

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "card.toml"
        path.write_text('[card]\ncolour = "red"\n', encoding="utf-8")
        assert load_config(path) == AppConfig()

    def test_bad_value_raises(self, monkeypatch):
        monkeypatch.setenv("GREETING_CARD_RETRY_ATTEMPTS", "many")
        with pytest.raises(ValueError, match="retry_attempts"):
            load_config()

    def test_validation(self):
        with pytest.raises(ValueError):
            AppConfig(retry_attempts=0)
        with pytest.raises(ValueError):
            AppConfig(http_timeout=0)

    def test_env_setting(self, monkeypatch):
        monkeypatch.setenv("GREETING_CARD_BACKEND_URL", "http://x")
        assert env_setting("backend_url") == "http://x"
        assert env_setting("missing", "d") == "d"


class TestLogging:
    def test_resolve_level_priority(self, monkeypatch):
        assert resolve_level(debug=True) == logging.DEBUG
        assert resolve_level("warning") == logging.WARNING
        assert resolve_level() == logging.INFO

        monkeypatch.setenv("GREETING_CARD_LOG_LEVEL", "ERROR")
        assert resolve_level() == logging.ERROR
        monkeypatch.setenv("GREETING_CARD_DEBUG", "true")
        assert resolve_level() == logging.DEBUG

    def test_json_formatter_includes_extra(self):
        record = logging.LogRecord(
            "greeting_card.test", logging.INFO, __file__, 1, "Status %s", ("changed",), None
        )
        record.epoch = 3
        record.recipient = "家人"

        payload = json.loads(_JSONFormatter().format(record))
        assert payload["msg"] == "Status changed"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "greeting_card.test"
        assert payload["epoch"] == 3
        assert payload["recipient"] == "家人"

    def test_setup_logging_is_idempotent(self):
        setup_logging("DEBUG")
        setup_logging("INFO")
        logger = logging.getLogger("greeting_card")
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

    def test_json_formatter_stack_and_location(self):
        record = logging.LogRecord(
            "greeting_card.test", logging.WARNING, __file__, 42, "careful", (), None
        )
        record.stack_info = "Stack (most recent call last):\n  frame"

        payload = json.loads(_JSONFormatter().format(record))
        assert payload["stack"].startswith("Stack (most recent call last)")
        assert payload["where"].endswith(":42")

    def test_json_formatter_omits_location_below_warning(self):
        record = logging.LogRecord("greeting_card.test", logging.INFO, __file__, 7, "ok", (), None)
        assert "where" not in json.loads(_JSONFormatter().format(record))
