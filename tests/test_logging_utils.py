"""Tests for structured logging helpers."""

import io
import json
import logging

from dashboard_sync.logging_utils import (
    StructuredJsonFormatter,
    SyncLoggerAdapter,
    configure_structured_logging,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="dashboard_sync.sync.store",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Remote save failed for %s",
        args=("settings",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    """Tests for StructuredJsonFormatter."""

    def test_basic_fields(self):
        output = json.loads(StructuredJsonFormatter().format(make_record()))

        assert output["level"] == "WARNING"
        assert output["logger"] == "dashboard_sync.sync.store"
        assert output["message"] == "Remote save failed for settings"
        assert "timestamp" in output

    def test_extra_fields(self):
        output = json.loads(StructuredJsonFormatter().format(make_record(attempt=2, owner_id="user-1", sync_key="settings")))

        assert list(output)[4:7] == ["sync_key", "owner_id", "attempt"]
        assert output["sync_key"] == "settings"
        assert output["owner_id"] == "user-1"

    def test_unserializable_extra(self):
        output = json.loads(StructuredJsonFormatter().format(make_record(payload=object())))
        assert output["payload"].startswith("<object")


class TestLoggerHelpers:
    """Tests for logger configuration helpers."""

    def test_configure_replaces_handlers(self):
        stream = io.StringIO()
        logger = configure_structured_logging(logging.DEBUG, logger_name="dashboard_sync.test_configure", stream=stream)
        configure_structured_logging(logging.DEBUG, logger_name="dashboard_sync.test_configure", stream=stream)

        logger.debug("cache miss")

        assert len(logger.handlers) == 1
        assert json.loads(stream.getvalue())["message"] == "cache miss"
        logger.handlers.clear()

    def test_adapter_adds_context(self, caplog):
        adapter = SyncLoggerAdapter.for_store(logging.getLogger("dashboard_sync.test_adapter"), "settings", "user-1")

        with caplog.at_level(logging.INFO, logger="dashboard_sync.test_adapter"):
            adapter.info("saved", extra={"attempt": 1, "sync_key": "other"})

        record = caplog.records[-1]
        assert record.sync_key == "settings"
        assert record.owner_id == "user-1"
        assert record.attempt == 1
