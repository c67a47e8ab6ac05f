"""Unit tests for structured logging functionality."""

import json
import logging

import pytest

from delivery_ops.shared.exceptions import StoreError
from delivery_ops.shared.logging_utils import (
    StructuredLogger,
    get_structured_logger,
)
from delivery_ops.simulation.scheduler import SimulationScheduler


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_generate_correlation_id(self):
        logger = get_structured_logger("test")
        corr_id = logger.generate_correlation_id("SIM")

        assert corr_id.startswith("SIM_")
        assert len(corr_id) == 16  # SIM_ + 12 hex chars

    def test_set_and_clear_correlation_id(self):
        logger = get_structured_logger("test")
        assert logger._correlation_id is None

        logger.set_correlation_id("SIM_123")
        assert logger._correlation_id == "SIM_123"

        logger.clear_correlation_id()
        assert logger._correlation_id is None

    def test_structured_log_format(self, caplog):
        """Logs are JSON with level, message, correlation id and context."""
        logger = get_structured_logger("test.module")
        logger.set_correlation_id("SIM_abc")

        with caplog.at_level(logging.INFO):
            logger.info("Resolved delivery", delivery_id="d-1", count=2)

        assert len(caplog.records) == 1
        log_data = json.loads(caplog.records[0].message)

        assert log_data["level"] == "INFO"
        assert log_data["message"] == "Resolved delivery"
        assert log_data["correlation_id"] == "SIM_abc"
        assert "timestamp" in log_data
        assert log_data["context"] == {"delivery_id": "d-1", "count": 2}

    def test_log_without_correlation_id(self, caplog):
        logger = get_structured_logger("test.module")

        with caplog.at_level(logging.INFO):
            logger.info("No session")

        log_data = json.loads(caplog.records[0].message)
        assert log_data["correlation_id"] == "none"
        assert "context" not in log_data

    def test_different_log_levels(self, caplog):
        logger = get_structured_logger("test.module")

        with caplog.at_level(logging.DEBUG):
            logger.debug("Debug message")
            logger.info("Info message")
            logger.warning("Warning message")
            logger.error("Error message")

        levels = [json.loads(r.message)["level"] for r in caplog.records]
        assert levels == ["DEBUG", "INFO", "WARNING", "ERROR"]

    def test_non_json_values_stringified(self, caplog, fixed_now):
        logger = get_structured_logger("test.module")

        with caplog.at_level(logging.INFO):
            logger.info("Tick", last_tick_at=fixed_now)

        log_data = json.loads(caplog.records[0].message)
        assert log_data["context"]["last_tick_at"] == str(fixed_now)

    def test_bound_context_merged(self, caplog):
        logger = get_structured_logger("test.module", component="simulation")
        bound = logger.bind(delivery_id="d-1")

        with caplog.at_level(logging.INFO):
            bound.info("Resolved delivery", status="missed")
            logger.info("Unbound")

        first, second = (json.loads(r.message) for r in caplog.records)
        assert first["context"] == {
            "component": "simulation",
            "delivery_id": "d-1",
            "status": "missed",
        }
        assert second["context"] == {"component": "simulation"}

    def test_bind_keeps_correlation_id(self):
        logger = get_structured_logger("test.module")
        logger.set_correlation_id("SIM_1")

        assert logger.bind(x=1)._correlation_id == "SIM_1"

    def test_exception_attaches_traceback(self, caplog):
        logger = get_structured_logger("test.module")

        with caplog.at_level(logging.ERROR):
            try:
                raise StoreError("database is locked")
            except StoreError:
                logger.exception("Write failed")

        [record] = caplog.records
        assert record.exc_info is not None
        assert json.loads(record.message)["level"] == "ERROR"

    def test_disabled_level_skipped(self, caplog):
        logger = get_structured_logger("test.quiet")

        with caplog.at_level(logging.WARNING, logger="test.quiet"):
            logger.debug("hidden")

        assert caplog.records == []

    def test_logger_name_preserved(self):
        logger = get_structured_logger("my.custom.module")
        assert logger.logger.name == "my.custom.module"


class TestSchedulerStructuredLogging:
    """The simulation scheduler reports through the structured logger."""

    def test_scheduler_has_structured_logger(self, store):
        scheduler = SimulationScheduler(store)

        assert isinstance(scheduler.log, StructuredLogger)

    @pytest.mark.asyncio
    async def test_failed_tick_logged_as_json(self, store, caplog, monkeypatch):
        scheduler = SimulationScheduler(store)

        async def failing_tick():
            raise StoreError("database is locked")

        monkeypatch.setattr(scheduler, "_tick", failing_tick)

        with caplog.at_level(logging.ERROR, logger="delivery_ops.simulation.scheduler"):
            await scheduler.tick()

        [record] = [r for r in caplog.records if r.name == scheduler.log.logger.name]
        log_data = json.loads(record.message)
        assert log_data["message"] == "Simulation tick failed"
        assert log_data["context"]["error_type"] == "StoreError"

    @pytest.mark.asyncio
    async def test_start_sets_session_correlation_id(
        self, store, fast_simulation_config, caplog
    ):
        scheduler = SimulationScheduler(store, fast_simulation_config)

        with caplog.at_level(logging.INFO, logger="delivery_ops.simulation.scheduler"):
            await scheduler.start()
            await scheduler.stop()

        entries = [
            json.loads(r.message)
            for r in caplog.records
            if r.name == scheduler.log.logger.name
        ]
        started = [e for e in entries if e["message"] == "Simulation started"]
        assert len(started) == 1
        assert started[0]["correlation_id"].startswith("SIM_")
        assert scheduler.log._correlation_id is None


class TestLoggingConfiguration:
    def test_configure_structured_logging(self):
        from delivery_ops.shared.logging_config import configure_structured_logging

        configure_structured_logging(level="INFO")

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_configure_with_different_levels(self):
        from delivery_ops.shared.logging_config import configure_structured_logging

        configure_structured_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

        configure_structured_logging(level="warning")
        assert logging.getLogger().level == logging.WARNING
