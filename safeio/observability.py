"""Logging setup for safeio.

Provides:
- JSON structured log formatter (carries denial kind and path)
- setup_logging() driven by the [safeio.logging] config section
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging

from safeio.config import LoggingConfig


class JsonLogFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Fields attached by ErrorReporter.report()
        if getattr(record, "kind", None):
            log_data["kind"] = record.kind
        if getattr(record, "path", None):
            log_data["path"] = record.path

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data, separators=(",", ":"))


def setup_logging(config: LoggingConfig, logger_name: str = "safeio") -> logging.Logger:
    """Configure the safeio logger hierarchy.

    Args:
        config: Logging configuration
        logger_name: Name of logger to configure

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Clear existing handlers
    logger.handlers.clear()

    level = getattr(logging, config.level.upper(), logging.INFO)
    logger.setLevel(level)

    # stderr handler
    handler = logging.StreamHandler()
    handler.setLevel(level)

    if config.format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    logger.addHandler(handler)

    return logger
