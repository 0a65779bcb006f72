"""Tests for structured logging module."""

import asyncio
import logging

import pytest
from loguru import logger

from src.core.logger import (
    InterceptHandler,
    log_session,
    session_id_ctx,
    setup_structured_logging,
)


@pytest.fixture
def restore_logging():
    """Undo global logging configuration after the test."""
    yield
    logger.remove()
    logging.basicConfig(handlers=[], level=logging.WARNING, force=True)


class TestSetupStructuredLogging:
    """Tests for setup_structured_logging."""

    def test_console_only_without_logs_dir(self, tmp_path, restore_logging):
        setup_structured_logging(level="DEBUG")

        assert list(tmp_path.iterdir()) == []
        assert isinstance(logging.root.handlers[0], InterceptHandler)
        assert logging.root.level == logging.DEBUG

    def test_json_file_sink(self, tmp_path, restore_logging):
        setup_structured_logging(level="INFO", json_format=True, logs_dir=tmp_path / "logs")
        logger.info("Booking stored")
        logger.complete()

        assert (tmp_path / "logs" / "booking_core.jsonl").exists()
        content = (tmp_path / "logs" / "booking_core.jsonl").read_text()
        assert "Booking stored" in content

    def test_third_party_loggers_are_quietened(self, restore_logging):
        setup_structured_logging(level="DEBUG")

        assert logging.getLogger("aiohttp").level == logging.WARNING
        assert logging.getLogger("aiosmtplib").level == logging.WARNING


class TestInterceptHandler:
    """Tests for InterceptHandler."""

    def test_stdlib_records_reach_loguru(self, log_messages):
        stdlib_logger = logging.getLogger("test.intercept")
        stdlib_logger.addHandler(InterceptHandler())
        stdlib_logger.setLevel(logging.INFO)
        stdlib_logger.propagate = False
        try:
            stdlib_logger.warning("Routing slow")
        finally:
            stdlib_logger.handlers.clear()

        assert ("WARNING", "Routing slow") in log_messages

    def test_session_id_is_attached(self, restore_logging):
        records = []
        setup_structured_logging(level="INFO")
        logger.add(lambda message: records.append(message.record), level="INFO")

        token = session_id_ctx.set("wizard-42")
        try:
            logger.info("Step changed")
        finally:
            session_id_ctx.reset(token)

        assert records[-1]["extra"]["session_id"] == "wizard-42"


class TestLogSession:
    """Tests for log_session."""

    def test_sets_and_restores_session_id(self):
        assert session_id_ctx.get() is None

        with log_session("wizard-7"):
            assert session_id_ctx.get() == "wizard-7"

        assert session_id_ctx.get() is None

    @pytest.mark.asyncio
    async def test_tasks_created_inside_inherit_session_id(self):
        async def current():
            return session_id_ctx.get()

        with log_session("wizard-7"):
            task = asyncio.create_task(current())

        assert await task == "wizard-7"
