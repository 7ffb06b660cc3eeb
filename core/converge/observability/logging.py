"""
Structured logging with automatic trace context propagation.

Key Features:
- Standard logger.info() calls pick up the current run's trace context
- ContextVar-based propagation: async-safe across concurrent node executions
- Dual output modes: JSON for production, human-readable for development
- Trace scopes: events emitted by a Trace carry their scope path

Architecture:
    ExecutionGraph.start() → sets trace_id once for the run
        ↓ (automatic propagation via ContextVar)
    NodeExecution activation → node.execute()
        ↓
    Trace.push("Config is loaded") → Trace.log("start")
        ↓
    log_trace_event() → logger.info(...) with scopes + trace context
"""

import json
import logging
import os
import re
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from typing import Any

# Context variable for trace propagation
trace_context: ContextVar[dict[str, Any] | None] = ContextVar("trace_context", default=None)

# ANSI escape code pattern (matches \033[...m or \x1b[...m)
ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m|\033\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape codes from text for clean JSON logging."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Produces machine-parseable log entries with:
    - Standard fields (timestamp, level, logger, message)
    - Trace context (trace_id and anything else set for the run)
    - Custom fields from extra (event, scopes, node, latency_ms)
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        context = trace_context.get() or {}

        message = strip_ansi_codes(record.getMessage())

        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": message,
        }

        log_entry.update(context)

        event = getattr(record, "event", None)
        if event is not None:
            if isinstance(event, str):
                log_entry["event"] = strip_ansi_codes(event)
            else:
                log_entry["event"] = event

        # A Trace may carry its own id; it wins over the ambient context
        trace_id = getattr(record, "trace_id", None)
        if trace_id is not None:
            log_entry["trace_id"] = trace_id

        scopes = getattr(record, "scopes", None)
        if scopes is not None:
            log_entry["scopes"] = list(scopes)

        node = getattr(record, "node", None)
        if node is not None:
            log_entry["node"] = node

        latency_ms = getattr(record, "latency_ms", None)
        if latency_ms is not None:
            log_entry["latency_ms"] = latency_ms

        if record.exc_info:
            exception_text = self.formatException(record.exc_info)
            log_entry["exception"] = strip_ansi_codes(exception_text)

        return json.dumps(log_entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Colorized level, trace prefix and the scope path of trace events:

        [INFO    ] [trace:1f2e3d4c] Config is loaded > get: start
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable string."""
        context = trace_context.get() or {}
        trace_id = getattr(record, "trace_id", None) or context.get("trace_id", "")

        prefix_parts = []
        if trace_id:
            prefix_parts.append(f"trace:{trace_id[:8]}")
        node = getattr(record, "node", None)
        if node:
            prefix_parts.append(f"node:{node}")

        context_prefix = f"[{' | '.join(prefix_parts)}] " if prefix_parts else ""

        scopes = getattr(record, "scopes", None)
        scope_path = f"{' > '.join(scopes)}: " if scopes else ""

        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET

        level = f"{record.levelname:<8}"

        return f"{color}[{level}]{reset} {context_prefix}{scope_path}{record.getMessage()}"


def configure_logging(
    level: str = "INFO",
    format: str = "auto",  # "json", "human", or "auto"
) -> None:
    """
    Configure structured logging for the application.

    Call once at startup (a demo script, a test fixture or the host
    application's entry point).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format:
            - "json": Machine-parseable JSON (for production)
            - "human": Human-readable with colors (for development)
            - "auto": JSON if LOG_FORMAT=json or ENV=production, else human

    Examples:
        configure_logging(level="DEBUG", format="human")
        configure_logging(level="INFO", format="json")
    """
    if format == "auto":
        log_format_env = os.getenv("LOG_FORMAT", "").lower()
        env = os.getenv("ENV", "development").lower()

        if log_format_env == "json" or env == "production":
            format = "json"
        else:
            format = "human"

    if format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())


def set_trace_context(**kwargs: Any) -> Token:
    """
    Set trace context for current execution.

    Context is stored in a ContextVar and propagates through async calls
    (and into tasks spawned by asyncio.gather) within the same execution.

    Called by ExecutionGraph.start() with the run's trace_id.

    Args:
        **kwargs: Context fields (trace_id, run labels, etc.)

    Returns:
        Token that restores the previous context via trace_context.reset().
    """
    current = trace_context.get() or {}
    return trace_context.set({**current, **kwargs})


def get_trace_context() -> dict:
    """
    Get current trace context.

    Returns:
        Dict with trace_id etc. Empty dict if no context set.
    """
    context = trace_context.get() or {}
    return context.copy()


def clear_trace_context() -> None:
    """
    Clear trace context.

    Useful for cleanup between test runs or when starting a completely new
    execution context.
    """
    trace_context.set(None)
