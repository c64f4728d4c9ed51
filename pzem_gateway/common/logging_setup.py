"""
Structured Logging Setup

Consistent logging configuration for the client library and the CLI.
Uses JSON format for structured logs by default.
"""

import logging
import sys
import os
from datetime import datetime, timezone
from typing import Any
import json


# LogRecord attributes that are not caller-supplied extras
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "service"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; extras such as slave_id become top-level keys"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds service name to all logs"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs.setdefault("extra", {})
        kwargs["extra"]["service"] = self.extra.get("service", "unknown")
        return msg, kwargs


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """Configure the pzem.<service_name> logger: one stderr handler, JSON or plain text"""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"pzem.{service_name}")
    logger.setLevel(numeric_level)

    logger.handlers.clear()

    # Logs go to stderr; stdout carries the CLI's JSON results
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    Level and format come from PZEM_LOG_LEVEL and PZEM_LOG_FORMAT.
    """
    log_level = os.environ.get("PZEM_LOG_LEVEL", "INFO")
    json_format = os.environ.get("PZEM_LOG_FORMAT", "json").lower() == "json"

    logger = setup_logging(service_name, log_level, json_format)
    return ServiceLoggerAdapter(logger, {"service": service_name})


def log_device_read(
    logger: logging.Logger,
    slave_id: int,
    register: str,
    value: Any,
    success: bool = True,
) -> None:
    """Log a meter register read operation"""
    if success:
        logger.debug(
            f"Read slave {slave_id}.{register} = {value}",
            extra={"slave_id": slave_id, "register": register, "value": value},
        )
    else:
        logger.warning(
            f"Failed to read slave {slave_id}.{register}: {value}",
            extra={"slave_id": slave_id, "register": register, "error": value},
        )


def log_device_write(
    logger: logging.Logger,
    slave_id: int | None,
    register: str,
    value: Any,
    success: bool = True,
) -> None:
    """Log a meter register write operation"""
    if success:
        logger.info(
            f"Write slave {slave_id}.{register} = {value}",
            extra={"slave_id": slave_id, "register": register, "value": value},
        )
    else:
        logger.error(
            f"Failed to write slave {slave_id}.{register} = {value}",
            extra={"slave_id": slave_id, "register": register, "value": value},
        )
