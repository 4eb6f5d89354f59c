"""
Tests for incident-scoped logging.
"""
import asyncio
import json
import logging

import pytest

from ghost_operator.logging_config import reset_logging_config, setup_logging
from ghost_operator.logging_context import (
    JSONFormatter,
    LoggingContext,
    clear_context,
    get_context,
    get_logger,
    set_context,
)


@pytest.fixture(autouse=True)
def fresh_context():
    clear_context()
    yield
    clear_context()


def test_logging_context_binds_and_restores() -> None:
    with LoggingContext(run_id="run-1"):
        with LoggingContext(incident_id="inc-1"):
            assert get_context() == {"run_id": "run-1", "incident_id": "inc-1"}
        assert get_context() == {"run_id": "run-1"}
    assert get_context() == {}


def test_set_context_merges() -> None:
    set_context(run_id="a")
    set_context(stage="remediator")

    assert get_context() == {"run_id": "a", "stage": "remediator"}


def test_contextual_logger_injects_fields(caplog) -> None:
    logger = get_logger("ghost_operator.test")

    with caplog.at_level(logging.INFO, logger="ghost_operator.test"):
        with LoggingContext(run_id="run-1", incident_id="abcdef1234"):
            logger.info("Remediating")

    record = caplog.records[-1]
    assert record.run_id == "run-1"
    assert record.incident_id == "abcdef1234"
    assert record.getMessage() == "[abcdef12] Remediating"


@pytest.mark.asyncio
async def test_context_follows_awaited_tasks() -> None:
    async def read_context():
        await asyncio.sleep(0)
        return get_context()

    with LoggingContext(incident_id="inc-2"):
        ctx = await asyncio.create_task(read_context())

    assert ctx == {"incident_id": "inc-2"}


def test_json_formatter_includes_context() -> None:
    record = logging.LogRecord("ghost_operator", logging.WARNING, __file__, 1, "escalating", None, None)
    record.incident_id = "inc-3"

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["message"] == "escalating"
    assert data["incident_id"] == "inc-3"
    assert "run_id" not in data


def test_setup_logging_with_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "ghost.log"
    reset_logging_config()
    try:
        setup_logging(level="DEBUG", log_file=log_file, json_format=True)
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JSONFormatter) for h in root.handlers)

        setup_logging(level="ERROR")
        assert root.level == logging.ERROR
        assert len(root.handlers) == 2
    finally:
        reset_logging_config()
