from __future__ import annotations

import json
import logging
import sys

import pytest

from scripts.okta_ingestion.logging_config import JsonFormatter, configure_logging


def make_record(**extra):
    record = logging.LogRecord(
        "ingestion.okta.rate_governor", logging.INFO, __file__, 1, "throttling %s", ("now",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_base_fields(self):
        line = json.loads(JsonFormatter().format(make_record()))
        assert line["level"] == "INFO"
        assert line["logger"] == "ingestion.okta.rate_governor"
        assert line["message"] == "throttling now"
        assert "timestamp" in line

    def test_rate_limit_extras_are_kept(self):
        line = json.loads(JsonFormatter().format(make_record(
            minimum_rate_limit_remaining=599,
            request_after=1_600_000_001_000,
            url="https://acme.okta.com/api/v1/users",
            unlisted="dropped",
        )))
        assert line["minimum_rate_limit_remaining"] == 599
        assert line["request_after"] == 1_600_000_001_000
        assert line["url"] == "https://acme.okta.com/api/v1/users"
        assert "unlisted" not in line

    def test_exception_is_formatted(self):
        try:
            raise ValueError("bad header")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()
        line = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad header" in line["exception"]


@pytest.fixture
def restore_ingestion_logger():
    logger = logging.getLogger("ingestion")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield logger
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


def test_configure_logging(restore_ingestion_logger):
    configure_logging("debug")
    logger = restore_ingestion_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)
    assert logger.propagate is False
