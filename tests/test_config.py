"""Tests for environment-driven configuration and logging setup."""

import json
import logging

from coachwire.core.config import (
    AnalysisConfig,
    CoachwireConfig,
    CredentialConfig,
    SessionConfig,
    TransportConfig,
)
from coachwire.core.logging import ColorFormatter, StructuredFormatter, setup_logging


def test_defaults():
    cfg = CoachwireConfig()
    assert cfg.analysis.cooldown_s == 15.0
    assert cfg.analysis.max_transcripts == 40
    assert cfg.analysis.min_transcripts == 4
    assert cfg.analysis.suppression_window_s == 120.0
    assert cfg.session.connect_fallback_s == 1.0
    assert cfg.closure.disconnect_grace_s == 1.5
    assert cfg.transport.model == "gpt-realtime"


def test_from_env_overrides(monkeypatch):
    monkeypatch.setenv("COACHWIRE_TOKEN_ENDPOINT", "https://coach.example/api/generate-token")
    monkeypatch.setenv("COACHWIRE_REALTIME_MODEL", "gpt-4o-realtime-preview")
    monkeypatch.setenv("COACHWIRE_LANGUAGE", "en")
    monkeypatch.setenv("COACHWIRE_ANALYSIS_COOLDOWN_S", "30")
    monkeypatch.setenv("COACHWIRE_DIMENSION_SET", "modes")
    monkeypatch.setenv("COACHWIRE_AUTO_SUMMARY", "off")

    assert CredentialConfig.from_env().endpoint == "https://coach.example/api/generate-token"
    assert TransportConfig.from_env().model == "gpt-4o-realtime-preview"
    assert SessionConfig.from_env().language == "en"
    analysis = AnalysisConfig.from_env()
    assert analysis.cooldown_s == 30.0
    assert analysis.dimension_set == "modes"
    assert analysis.auto_summary is False


def test_auto_summary_env_values(monkeypatch):
    for raw, expected in (("1", True), ("yes", True), ("false", False), ("", False)):
        monkeypatch.setenv("COACHWIRE_AUTO_SUMMARY", raw)
        assert AnalysisConfig.from_env().auto_summary is expected
    monkeypatch.delenv("COACHWIRE_AUTO_SUMMARY")
    assert AnalysisConfig.from_env().auto_summary is True


def test_structured_formatter_includes_extra_fields():
    record = logging.LogRecord("coachwire.test", logging.INFO, __file__, 1, "sent %s", ("x",), None)
    record.purpose = "progress-score"
    entry = json.loads(StructuredFormatter().format(record))
    assert entry["msg"] == "sent x"
    assert entry["purpose"] == "progress-score"
    assert entry["level"] == "INFO"


def test_color_formatter_restores_record():
    record = logging.LogRecord("coachwire.test", logging.WARNING, __file__, 1, "careful", (), None)
    output = ColorFormatter(use_color=True).format(record)
    assert "careful" in output
    assert record.levelname == "WARNING"
    assert record.name == "coachwire.test"


def test_color_formatter_tags_side_channel_records():
    record = logging.LogRecord("coachwire.test", logging.INFO, __file__, 1, "sent", (), None)
    record.purpose = "progress-score"
    record.response_id = "resp_1"
    assert ColorFormatter(use_color=False).format(record).endswith("INFO: sent {progress-score resp_1}")

    plain = logging.LogRecord("coachwire.test", logging.INFO, __file__, 1, "ready", (), None)
    assert ColorFormatter(use_color=False).format(plain).endswith("INFO: ready")


def test_setup_logging_json(monkeypatch):
    monkeypatch.setenv("COACHWIRE_LOG_FORMAT", "json")
    monkeypatch.setenv("COACHWIRE_LOG_LEVEL", "DEBUG")
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        setup_logging()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

        setup_logging(level="warning", log_format="text")
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, ColorFormatter)
    finally:
        root.setLevel(saved[0])
        root.handlers[:] = saved[1]
