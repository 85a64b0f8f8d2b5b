"""
Tests for structured logging setup
"""

import json
import logging

import structlog

from api_gateway.logging_config import configure_logging


def test_json_logging(capsys):
    configure_logging("INFO", "json")
    logger = structlog.get_logger("api_gateway.tests.json")

    logger.info("Request proxied", service="users", status_code=200)

    record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert record["event"] == "Request proxied"
    assert record["service"] == "users"
    assert record["status_code"] == 200
    assert record["level"] == "info"
    assert record["logger"] == "api_gateway.tests.json"
    assert "timestamp" in record


def test_log_level_filters(capsys):
    configure_logging("warning", "json")
    logger = structlog.get_logger("api_gateway.tests.level")

    logger.info("hidden")
    logger.warning("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out
    assert logging.getLogger().level == logging.WARNING
