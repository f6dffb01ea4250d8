"""Structured logging configuration for the menu auditor.

Provides:
- Structured logging with structlog
- Scoped context (page URL, menu id) via contextvars
- Operation start/end logging for pipeline stages
- Audit event tracking with collected warnings
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Optional

import structlog


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Output logs as JSON
        include_timestamp: Include timestamps in logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, **context) -> structlog.BoundLogger:
    """Get a configured logger with optional context.

    Args:
        name: Logger name
        **context: Additional context to bind

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger


class LogContext:
    """Context manager for scoped logging context.

    Usage:
        with LogContext(url="https://example.com", viewport="mobile"):
            logger.info("Probing menu")
            # All logs within this block carry url and viewport
    """

    def __init__(self, **context):
        self.context = context
        self._tokens = None

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._tokens is not None:
            structlog.contextvars.reset_contextvars(**self._tokens)
            self._tokens = None


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Context manager for logging operation start/end.

    Args:
        operation: Name of the operation
        logger: Optional logger to use
        **context: Additional context

    Yields:
        Dict to store operation results

    Example:
        with log_operation("discover_menus", url=url) as op:
            nav_info = await discoverer.discover()
            op["menus"] = nav_info.total
    """
    log = logger or get_logger()
    log = log.bind(operation=operation, **context)

    log.info(f"{operation} started")
    result: dict[str, Any] = {"success": False, "error": None}

    try:
        yield result
        result["success"] = True
        log.info(f"{operation} completed", **result)
    except Exception as e:
        result["error"] = str(e)
        log.error(f"{operation} failed", **result)
        raise


class AuditLogger:
    """Logger specialized for one page audit.

    Tracks:
    - Menus and toggles found
    - Probe steps and their outcomes
    - Warnings that must reach the report
    """

    def __init__(self, url: str):
        self.log = get_logger().bind(url=url)
        self.url = url
        self.warnings: list[str] = []
        self.step_count = 0
        self.failed_steps = 0

    def menu_discovered(self, menu_id: str, name: str, **details) -> None:
        self.log.debug("Menu discovered", menu_id=menu_id, name=name, **details)

    def toggle_discovered(self, toggle_id: str, **details) -> None:
        self.log.debug("Toggle discovered", toggle_id=toggle_id, **details)

    def step(self, action: str, target: Optional[str] = None, **details) -> None:
        """Log a probe step."""
        self.step_count += 1
        self.log.debug("Probe step", action=action, target=target, **details)

    def step_failed(self, action: str, target: Optional[str], error: BaseException | str) -> None:
        """Log a transient probe failure. Never raises."""
        self.failed_steps += 1
        self.log.warning(
            "Probe step failed",
            action=action,
            target=target,
            error=str(error),
            error_type=type(error).__name__ if isinstance(error, BaseException) else None,
        )

    def outcome(self, subject: str, result: str, **details) -> None:
        self.log.info("Probe outcome", subject=subject, result=result, **details)

    def criterion(self, criterion: str, passed: bool, **details) -> None:
        """Log a criterion verdict."""
        level = self.log.info if passed else self.log.warning
        level("Criterion evaluated", criterion=criterion, passed=passed, **details)

    def warning(self, message: str, **context) -> None:
        """Log a warning and keep it for the report."""
        self.warnings.append(message)
        self.log.warning(message, **context)
