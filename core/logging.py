# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across executor, queue and browser
# CREATED: 19 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted logging for the claim workflow orchestrator.

Features:
- Contextual fields (execution_id, node_id, submission_id, carrier)
- JSON output for log aggregation
- Credential fields masked wherever they appear in log data
- Named checkpoints for tracing execution and submission lifecycles

Context is stored in a ContextVar so concurrently running executions and
queue ticks on the same event loop never see each other's fields.

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("orchestrator.executor")

    with log_context(execution_id="exec-123", node_id="file_claim"):
        logger.info("Running node")
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union


@dataclass
class LogContext:
    """
    Context for structured logging.

    Task-local storage for contextual fields.
    """
    execution_id: Optional[str] = None
    workflow_id: Optional[str] = None
    node_id: Optional[str] = None
    step_id: Optional[str] = None
    submission_id: Optional[str] = None
    case_id: Optional[str] = None
    carrier: Optional[str] = None
    trigger_source: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


# Fields a log_context() call may override
_CONTEXT_FIELDS = (
    "execution_id",
    "workflow_id",
    "node_id",
    "step_id",
    "submission_id",
    "case_id",
    "carrier",
    "trigger_source",
)

# Task-local context stack
_context_stack: ContextVar[Tuple[LogContext, ...]] = ContextVar(
    "log_context_stack", default=()
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _context_stack.get()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Args:
        **kwargs: Context fields to add (unknown keys go to `extra`)

    Example:
        with log_context(submission_id="sub-1", carrier="UPS"):
            logger.info("Driving portal")
    """
    # Merge with parent context
    parent = get_current_context()
    values = {
        name: kwargs.get(name, getattr(parent, name))
        for name in _CONTEXT_FIELDS
    }
    unknown = {k: v for k, v in kwargs.items() if k not in _CONTEXT_FIELDS and k != "extra"}
    new_context = LogContext(
        **values,
        extra={**parent.extra, **kwargs.get("extra", {}), **unknown},
    )

    token = _context_stack.set(_context_stack.get() + (new_context,))
    try:
        yield new_context
    finally:
        _context_stack.reset(token)


# ============================================================================
# REDACTION
# ============================================================================

# Keys whose values never reach a log line, at any nesting depth
SENSITIVE_KEYS = frozenset({
    "password",
    "username",
    "account_number",
    "security_questions",
    "two_factor_phone",
    "two_factor_email",
    "encryption_key",
})

REDACTED = "***"


def redact(value: Any) -> Any:
    """Copy of a log payload with credential fields masked."""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS and v is not None else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def _record_data(record: logging.LogRecord) -> Dict[str, Any]:
    data = getattr(record, "extra", None)
    return redact(data) if data else {}


# ============================================================================
# FORMATTERS
# ============================================================================

class StructuredFormatter(logging.Formatter):
    """One JSON object per line (LOG_FORMAT=json)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context_dict = get_current_context().to_dict()
        if context_dict:
            log_data["context"] = redact(context_dict)

        data = _record_data(record)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = f"{record.filename}:{record.lineno}"
        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Single-line development format.

        2026-10-19 08:00:00 INFO     services.submission_queue [sub=3f2a9c1e, carrier=UPS]: Claimed
    """

    _SHORT = (
        ("execution_id", "exec", 8),
        ("node_id", "node", None),
        ("submission_id", "sub", 8),
        ("carrier", "carrier", None),
    )

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

        context = get_current_context()
        parts = []
        for attr, label, width in self._SHORT:
            value = getattr(context, attr)
            if value:
                parts.append(f"{label}={value[:width] if width else value}")
        context_str = f" [{', '.join(parts)}]" if parts else ""

        data = _record_data(record)
        data_str = f" {data}" if data else ""

        line = f"{timestamp} {record.levelname:<8} {record.name}{context_str}: {record.getMessage()}{data_str}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


class ContextLogger(logging.LoggerAdapter):
    """Adapter that copies the active log_context() fields onto each record."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra", {}))
        extra.update(get_current_context().to_dict())
        kwargs["extra"] = {"extra": extra}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (for production)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # psycopg pool is chatty at DEBUG
    logging.getLogger("psycopg.pool").setLevel(max(level, logging.INFO))


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named checkpoint.

    Checkpoints are named markers ("execution_started", "submission_claimed")
    that can be queried to reconstruct what happened to an execution or a
    queue item.

    Args:
        name: Checkpoint name
        data: Optional checkpoint data
        logger: Optional specific logger to use
    """
    if logger is None:
        logger = logging.getLogger("claimflow.checkpoint")

    checkpoint_data: Dict[str, Any] = {
        "checkpoint": name,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }

    context = get_current_context()
    for key in ("execution_id", "node_id", "submission_id", "carrier"):
        value = getattr(context, key)
        if value:
            checkpoint_data[key] = value

    if data:
        checkpoint_data["data"] = data

    logger.info(f"CHECKPOINT: {name}", extra={"extra": checkpoint_data})


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "SENSITIVE_KEYS",
    "redact",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
