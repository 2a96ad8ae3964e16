"""
Unit tests for MessageConfig.
"""

import json
import logging
from pathlib import Path

import pytest

from httpmessage.config import JsonFormatter, MessageConfig
from httpmessage.http.media_type import HTML


class TestMessageConfig:
    """Tests for defaults, environment loading and validation."""

    def test_defaults(self):
        config = MessageConfig()

        assert config.charset == "utf-8"
        assert config.locale == "en-US"
        assert config.default_media_type == HTML
        assert config.tmpdir.name == "httpmessage"
        config.validate()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HTTPMSG_CHARSET", "iso-8859-1")
        monkeypatch.setenv("HTTPMSG_TMPDIR", str(tmp_path))
        monkeypatch.setenv("HTTPMSG_DEFAULT_TYPE", "application/json")
        monkeypatch.setenv("HTTPMSG_MAX_REQUEST_SIZE", "2048")
        monkeypatch.setenv("HTTPMSG_LOG_LEVEL", "DEBUG")

        config = MessageConfig.from_env()

        assert config.charset == "iso-8859-1"
        assert config.tmpdir == tmp_path
        assert config.default_type == "application/json"
        assert config.max_request_size == 2048
        assert config.log_level == "DEBUG"

    def test_tmpdir_coerced_to_path(self):
        assert isinstance(MessageConfig(tmpdir="/tmp/x").tmpdir, Path)

    @pytest.mark.parametrize("kwargs", [
        {"charset": "no-such-charset"},
        {"default_type": "html"},
        {"default_type": "*/*"},
        {"max_request_size": 10},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, kwargs):
        """Bad values fail fast with ValueError."""
        with pytest.raises(ValueError):
            MessageConfig(**kwargs).validate()


class TestLogging:
    """Tests for logging setup."""

    def test_setup_logging_sets_package_level(self):
        MessageConfig(log_level="DEBUG").setup_logging()

        assert logging.getLogger("httpmessage").level == logging.DEBUG

    def test_json_formatter(self):
        record = logging.LogRecord("httpmessage.engine", logging.INFO, __file__, 1, "hello %s", ("x",), None)

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "httpmessage.engine"
        assert entry["message"] == "hello x"
