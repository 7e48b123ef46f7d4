"""
Structured Logging Setup

Consistent logging configuration across the engine, API and CLI.
Uses JSON format for structured logs in production.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord attributes that are not user supplied extras
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "service",
    "message", "taskName",
))

# Set by configure_root; take precedence over the environment
_overrides: dict[str, Any] = {}


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging"""

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
            if key not in _RESERVED_ATTRS:
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
    """
    Set up structured logging for a service.

    Args:
        service_name: Name of the service (e.g., "engine", "api.books")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (True for production, False for dev)

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(f"ome.{service_name}")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
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

    # Don't propagate to root logger
    logger.propagate = False

    return logger


def configure_root(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Apply level and format to every ome.* logger, existing and future.

    Module loggers are created at import time from the environment; the CLI
    calls this after parsing --verbose or the config file.
    """
    _overrides["log_level"] = log_level
    _overrides["json_format"] = json_format

    for name in list(logging.root.manager.loggerDict):
        if name.startswith("ome."):
            setup_logging(name[len("ome."):], log_level, json_format)


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    Args:
        service_name: Name of the service

    Returns:
        Logger adapter with service name in all logs
    """
    log_level = _overrides.get("log_level") or os.environ.get("OME_LOG_LEVEL", "INFO")
    json_format = _overrides.get(
        "json_format",
        os.environ.get("OME_LOG_FORMAT", "json").lower() == "json",
    )

    logger = setup_logging(service_name, log_level, json_format)
    return ServiceLoggerAdapter(logger, {"service": service_name})


def log_order_event(
    logger: logging.LoggerAdapter,
    event: str,
    order: Any,
    **fields: Any,
) -> None:
    """Log an order lifecycle event (submitted, placed, cancelled, ...)"""
    logger.info(
        f"{event.capitalize()} {order}",
        extra={
            "event": event,
            "order_id": order.id,
            "market": order.market,
            "side": str(order.side),
            **fields,
        },
    )


def log_fill(logger: logging.LoggerAdapter, market: str, fill: Any) -> None:
    """Log a single fill produced by the matching engine"""
    logger.info(
        f"Fill {fill.quantity} @ {fill.price} maker={fill.maker} taker={fill.taker}",
        extra={
            "event": "fill",
            "market": market,
            "maker": fill.maker,
            "taker": fill.taker,
            "quantity": str(fill.quantity),
            "price": str(fill.price),
        },
    )
