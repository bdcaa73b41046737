"""
Antisnipe - Structured Logging Configuration

Configures structured JSON logging:
- JSON format for easy parsing and aggregation
- Optional rotating file handler
- Structured fields passed through ``extra={...}`` end up in the JSON record

Usage:
    from antisnipe import setup_logging

    logger = setup_logging(name="antisnipe", level="DEBUG")
    logger.info("Position opened", extra={"event": "ledger.position_opened"})

or, for a host process configured through its environment:

    from antisnipe import setup_logging_from_env

    setup_logging_from_env()
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from pythonjsonlogger import jsonlogger

ENV_LOG_LEVEL = "ANTISNIPE_LOG_LEVEL"
ENV_LOG_FILE = "ANTISNIPE_LOG_FILE"
ENV_ENVIRONMENT = "ANTISNIPE_ENVIRONMENT"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with timestamp, environment and source location fields.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        environment: str | None = None,
        service_name: str = "antisnipe",
    ):
        super().__init__(fmt=fmt)
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()

        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def setup_logging(
    name: str = "antisnipe",
    log_file: str | None = None,
    level: str = "INFO",
    environment: str = "production",
    enable_console: bool = True,
    max_bytes: int = 50 * 1024 * 1024,  # 50MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Setup structured JSON logging.

    Args:
        name: Logger name (typically the package name)
        log_file: Path to JSON log file (optional)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment identifier (dev, staging, prod)
        enable_console: Whether to log to stdout
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    formatter = CustomJsonFormatter(
        environment=environment,
        service_name=name.split(".")[0],
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_env(environ: Mapping[str, str] | None = None) -> logging.Logger:
    """
    Configure the package logger from environment variables.

    - ANTISNIPE_LOG_LEVEL: logging level (default INFO)
    - ANTISNIPE_LOG_FILE: JSON log file path (default: console only)
    - ANTISNIPE_ENVIRONMENT: environment field of every record (default production)

    Every ``antisnipe.*`` module logger propagates to the configured logger.
    """
    env = os.environ if environ is None else environ
    level = env.get(ENV_LOG_LEVEL, "").strip() or "INFO"
    if not isinstance(logging.getLevelName(level.upper()), int):
        raise ValueError(f"{ENV_LOG_LEVEL} is not a logging level: {level!r}")
    return setup_logging(
        name="antisnipe",
        log_file=env.get(ENV_LOG_FILE, "").strip() or None,
        level=level,
        environment=env.get(ENV_ENVIRONMENT, "").strip() or "production",
    )
