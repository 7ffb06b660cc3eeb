"""Tests for ~/.converge/configuration.json loading and EngineConfig."""

import json
import logging

import pytest

import converge.config as config_module
from converge.config import (
    EngineConfig,
    get_converge_config,
    get_log_format,
    get_log_level,
    get_log_trace_events,
)
from converge.observability.logging import HumanReadableFormatter


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setattr(config_module, "CONVERGE_CONFIG_FILE", path)
    monkeypatch.delenv("CONVERGE_LOG_LEVEL", raising=False)
    return path


def test_missing_file_yields_defaults(config_file):
    assert get_converge_config() == {}
    assert get_log_level() == "INFO"
    assert get_log_format() == "auto"
    assert get_log_trace_events() is True


def test_invalid_json_is_ignored(config_file):
    config_file.write_text("{not json", encoding="utf-8")

    assert get_converge_config() == {}


def test_values_read_from_file(config_file):
    config_file.write_text(
        json.dumps({"logging": {"level": "debug", "format": "json", "trace_events": False}}),
        encoding="utf-8",
    )

    config = EngineConfig()

    assert config.log_level == "DEBUG"
    assert config.log_format == "json"
    assert config.log_trace_events is False


def test_environment_overrides_level(config_file, monkeypatch):
    config_file.write_text(json.dumps({"logging": {"level": "DEBUG"}}), encoding="utf-8")
    monkeypatch.setenv("CONVERGE_LOG_LEVEL", "warning")

    assert get_log_level() == "WARNING"


def test_configure_logging_applies_settings(config_file):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        EngineConfig(log_level="WARNING", log_format="human").configure_logging()

        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, HumanReadableFormatter)
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
