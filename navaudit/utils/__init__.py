"""Utility modules for the menu auditor.

Provides:
- Structured logging configuration
- Scoped log context and operation logging
- Audit event tracking
"""

from .logging import AuditLogger, LogContext, configure_logging, get_logger, log_operation

__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
    "log_operation",
    "AuditLogger",
]
