"""Structured JSON logging with correlation ids and bound context."""
import json
import logging
import uuid
from datetime import UTC, datetime
from typing import Any


class StructuredLogger:
    """
    Logger emitting one JSON object per record.

    Context bound with ``bind()`` is merged into every entry; keyword
    arguments given to a single call take precedence.
    """

    def __init__(self, logger_name: str, context: dict[str, Any] | None = None):
        self.logger = logging.getLogger(logger_name)
        self.context: dict[str, Any] = dict(context or {})
        self._correlation_id: str | None = None

    def bind(self, **context) -> "StructuredLogger":
        """Return a logger for the same name carrying additional context."""
        bound = StructuredLogger(self.logger.name, {**self.context, **context})
        bound._correlation_id = self._correlation_id
        return bound

    def set_correlation_id(self, correlation_id: str):
        self._correlation_id = correlation_id

    def clear_correlation_id(self):
        self._correlation_id = None

    def generate_correlation_id(self, prefix: str = "CORR") -> str:
        """Generate a new id such as ``SIM_1a2b3c4d5e6f``."""
        return f"{prefix}_{uuid.uuid4().hex[:12]}"

    def _format_message(self, level: str, message: str, **kwargs) -> dict:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level,
            "message": message,
            "correlation_id": self._correlation_id or "none",
        }

        context = {**self.context, **kwargs}
        if context:
            log_entry["context"] = context

        return log_entry

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        entry = self._format_message(logging.getLevelName(level), message, **kwargs)
        self.logger.log(level, json.dumps(entry, default=str), exc_info=exc_info)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log at ERROR with the active exception's traceback attached."""
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


def get_structured_logger(name: str, **context) -> StructuredLogger:
    """Get a structured logger, optionally with bound context."""
    return StructuredLogger(name, context)
