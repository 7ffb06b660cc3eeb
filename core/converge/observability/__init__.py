"""
Observability module for trace correlation and structured logging.

- Trace: scoped event emission and timing threaded through node execution
- Automatic trace context propagation via ContextVar
- Structured JSON logging for production
- Human-readable logging for development
"""

from converge.observability.logging import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)
from converge.observability.trace import (
    Trace,
    TraceEvent,
    TraceEventHandler,
    default_trace,
    log_trace_event,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
    "Trace",
    "TraceEvent",
    "TraceEventHandler",
    "default_trace",
    "log_trace_event",
]
