"""
Structured logging utilities with JSON formatting and context injection.

This module provides structured logging capabilities with:
- JSON formatted log output for machine-readable logs
- Context injection (channel, ts, repository, branch) via LoggerAdapter
- A single explicit severity threshold applied once at startup
- Integration with Python's standard logging module
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, MutableMapping, Union
from logging import LogRecord

from vibedeploy.models.deployment import StatusMutation


# Context fields promoted to the top level of each JSON record
CONTEXT_FIELDS = ("channel", "ts", "repository", "branch", "reaction")

_STANDARD_RECORD_FIELDS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
}

_LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def parse_log_level(level: Optional[str]) -> int:
    """
    Convert a level name to a logging level.

    Accepts DEBUG, INFO, WARN/WARNING and ERROR in any case.
    Unknown or empty values fall back to INFO.

    Args:
        level: Level name, typically from LOG_LEVEL

    Returns:
        Standard logging level integer
    """
    if not level:
        return logging.INFO
    return _LEVEL_NAMES.get(level.strip().upper(), logging.INFO)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with standard fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - channel/ts/repository/branch/reaction: Slack and deployment context
    - context: Any other extra fields
    - error: Error details when exception info is attached
    """

    def format(self, record: LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_FIELDS and key not in CONTEXT_FIELDS:
                extra_fields[key] = value

        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info))
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that injects context fields into all log records.

    This adapter allows setting context fields (channel, ts, repository)
    that will be automatically included in all log entries.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        """
        Process log message and inject context.

        Args:
            msg: Log message
            kwargs: Log kwargs

        Returns:
            Tuple of (message, kwargs) with context injected
        """
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Create a new logger adapter with additional context.

        Args:
            **context: Additional context fields

        Returns:
            New logger adapter with merged context
        """
        new_extra = dict(self.extra)
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: Union[int, str] = logging.INFO) -> None:
    """
    Configure structured logging for the process.

    Called once at startup with the configured severity. The threshold
    lives on the root logger and its handler only.

    Args:
        log_level: Level as an int or a name accepted by parse_log_level
    """
    if isinstance(log_level, str):
        log_level = parse_log_level(log_level)

    formatter = JSONFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("slack_sdk").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Args:
        name: Logger name (typically __name__)
        **context: Initial context fields (channel, ts, repository, etc.)

    Returns:
        Context logger adapter

    Example:
        logger = get_logger(__name__, channel="C123", ts="1700000000.000100")
        logger.info("Resolving metadata")  # Will include channel and ts
    """
    base_logger = logging.getLogger(name)
    return ContextLoggerAdapter(base_logger, context)


def log_reaction_event(
    logger: logging.LoggerAdapter,
    channel: str,
    ts: str,
    reaction: str,
    user: str
) -> None:
    """
    Log acceptance of a reaction event for processing.

    Args:
        logger: Logger to use
        channel: Slack channel ID
        ts: Message timestamp
        reaction: Reaction name
        user: Reacting user ID
    """
    logger.info(
        f"Processing {reaction} reaction on message {ts} in channel {channel}",
        extra={
            "channel": channel,
            "ts": ts,
            "reaction": reaction,
            "user": user,
        }
    )


def log_status_mutation(logger: logging.LoggerAdapter, mutation: StatusMutation) -> None:
    """Log a published reaction mutation."""
    action = "Removed" if mutation.remove else "Published"
    logger.info(
        f"{action} {mutation.reaction.value} reaction for channel {mutation.channel}, message {mutation.ts}",
        extra={
            "channel": mutation.channel,
            "ts": mutation.ts,
            "reaction": mutation.reaction.value,
            "remove": mutation.remove,
        }
    )


def log_api_call(
    logger: logging.LoggerAdapter,
    service: str,
    endpoint: str,
    method: str,
    duration_ms: Optional[float] = None,
    error: Optional[str] = None
) -> None:
    """
    Log an external API call.

    Args:
        logger: Logger to use
        service: Service name (e.g., 'slack')
        endpoint: API method or endpoint
        method: HTTP method
        duration_ms: Request duration in milliseconds (if available)
        error: Error message (if request failed)
    """
    extra: Dict[str, Any] = {
        "service": service,
        "endpoint": endpoint,
        "method": method,
    }

    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
    if error is not None:
        extra["error"] = error

    if error:
        logger.error(f"API call failed: {method} {endpoint}", extra=extra)
    else:
        logger.debug(f"API call: {method} {endpoint}", extra=extra)


def log_error_with_context(
    logger: logging.LoggerAdapter,
    message: str,
    error: Exception,
    **context: Any
) -> None:
    """
    Log error with full stack trace and context.

    Args:
        logger: Logger to use
        message: Error message
        error: Exception object
        **context: Additional context fields
    """
    logger.error(
        f"{message}: {error}",
        extra=context,
        exc_info=error
    )
