# allocgov/logging.py
"""
Structured logging for the allocation governance service.

Provides JSON-formatted logging with consistent fields:
- timestamp: ISO 8601
- level: DEBUG/INFO/WARNING/ERROR/CRITICAL
- logger: Module name
- message: Log message
- **kwargs: Additional structured fields

Usage:
    from allocgov.logging import get_logger
    logger = get_logger(__name__)
    logger.info("application_transitioned", application_id="42", event="propose")

Set LOG_FILE to also append the JSON lines to a file.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredLogFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs each log line as a JSON object with consistent fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "structured_data"):
            log_data.update(record.structured_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Source location for errors
        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """
    Wrapper around Python logger that supports structured logging.

    Fields bound with bind() are added to every line the returned logger
    writes; keyword fields passed to a call override them.

    Example:
        log = get_logger(__name__).bind(application_id="42", ref="Application/42")
        log.warning("version_conflict", expected_version="3b18e51")
    """

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self._logger = logging.getLogger(name)
        self._context: Dict[str, Any] = dict(context or {})

    def bind(self, **fields) -> "StructuredLogger":
        return StructuredLogger(self._logger.name, {**self._context, **fields})

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        extra = {"structured_data": {**self._context, **kwargs}}
        self._logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs):
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with structured data (includes traceback)."""
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


# Global configuration state
_configured = False


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_file: Optional[str] = None,
    force: bool = False,
):
    """
    Configure logging for the service.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON format (True) or plain text (False) on stdout
        log_file: Also append JSON lines to this file (LOG_FILE)
        force: Replace an earlier configuration
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    if json_output:
        console_handler.setFormatter(StructuredLogFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root_logger.addHandler(console_handler)

    # The file always gets JSON lines, whatever the console format
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredLogFormatter())
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger, configuring logging from settings on first use.

    Args:
        name: Logger name (typically __name__)
    """
    if not _configured:
        from .settings import settings
        configure_logging(
            level=settings.log_level,
            json_output=settings.log_json,
            log_file=settings.log_file,
        )
    return StructuredLogger(name)
