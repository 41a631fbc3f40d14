"""Structured logging configuration for the uploader."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


class JSONFormatter:
    """JSON formatter for structured logging.

    Loguru treats the return value of a format callable as a template, so the
    serialized record is stashed in ``extra`` and referenced from the template.
    """

    def __call__(self, record: dict[str, Any]) -> str:
        log_data = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name,
            "message": record["message"],
            "module": record.get("module", ""),
            "function": record.get("function", ""),
            "line": record.get("line", 0),
        }

        exception = record.get("exception")
        if exception is not None:
            log_data["exception"] = {
                "type": exception.type.__name__ if exception.type else None,
                "value": str(exception.value) if exception.value else None,
            }

        extra = {key: value for key, value in record["extra"].items() if key != "serialized"}
        log_data.update(extra)

        record["extra"]["serialized"] = json.dumps(log_data, ensure_ascii=False, default=str)
        return "{extra[serialized]}\n"


def setup_logging(
    *,
    level: str = "INFO",
    json_format: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Whether to use JSON formatting (useful for production).
        log_file: Optional path to log file. If None, logs only to stderr.
    """
    logger.remove()

    formatter: Any = JSONFormatter() if json_format else CONSOLE_FORMAT

    logger.add(
        sys.stderr,
        format=formatter,
        level=level.upper(),
        colorize=not json_format,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=formatter,
            level=level.upper(),
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )


def setup_logging_from_env(default_level: str = "INFO") -> None:
    """Configure logging from ``LOG_LEVEL``, ``JSON_LOGGING`` and ``LOG_FILE``."""
    json_logging = os.getenv("JSON_LOGGING", "false").lower() in {"true", "1", "yes"}
    log_file = os.getenv("LOG_FILE")
    setup_logging(
        level=os.getenv("LOG_LEVEL", default_level),
        json_format=json_logging,
        log_file=Path(log_file) if log_file else None,
    )


__all__ = ["JSONFormatter", "setup_logging", "setup_logging_from_env"]
