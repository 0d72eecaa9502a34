"""
Tests for structured logging helpers.
"""
import sys

import pytest
from loguru import logger

from src.utils.observability import configure_logging, log_business_event, log_score_computation


@pytest.fixture
def records():
    """Capture loguru records emitted during the test."""
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


class TestScoreLogging:

    def test_binds_score_fields(self, records):
        log_score_computation(
            deal_id="rec-123",
            trigger_source="invite_opened",
            confidence_score=72,
            base_score=82,
            total_penalties=10.0,
            total_bonus=0,
            duration_ms=3.14159,
            rep_id="rep-7",
        )

        record = records[-1]
        assert record["extra"]["event_type"] == "score_computed"
        assert record["extra"]["deal_id"] == "rec-123"
        assert record["extra"]["duration_ms"] == 3.14
        assert record["extra"]["rep_id"] == "rep-7"
        assert "score=72" in record["message"]

    def test_duration_optional(self, records):
        log_score_computation("rec-1", "manual", 50, 50, 0.0, 0.0)

        assert "duration_ms" not in records[-1]["extra"]


class TestBusinessEvents:

    def test_success_level(self, records):
        log_business_event("deal_archived", "rec-123", reason="chose_competitor")

        record = records[-1]
        assert record["level"].name == "SUCCESS"
        assert record["extra"]["reason"] == "chose_competitor"
        assert record["message"] == "Business Event: deal_archived"


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def restore_default_sink(self):
        yield
        logger.remove()
        logger.add(sys.stderr)

    def test_structured_output(self, monkeypatch, capsys):
        monkeypatch.setattr("src.utils.observability.get_settings", lambda: _StubSettings(True))

        configure_logging()
        logger.info("hello")

        err = capsys.readouterr().err
        assert '"message": "hello' in err

    def test_human_output(self, monkeypatch, capsys):
        monkeypatch.setattr("src.utils.observability.get_settings", lambda: _StubSettings(False))

        configure_logging()
        logger.info("hello")

        err = capsys.readouterr().err
        assert "hello" in err
        assert "\"message\"" not in err


class _StubSettings:
    log_level = "INFO"

    def __init__(self, structured: bool):
        self.enable_structured_logging = structured
