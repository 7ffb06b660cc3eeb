"""
Trace - hierarchical, scoped event sink threaded through node execution.

A Trace is immutable: push() hands the wrapped action a child trace whose
scope path has one more entry. Events go to every registered handler; the
default handler forwards them to the stdlib logger so they pick up the
structured/human formatters configured in converge.observability.logging.

    trace = default_trace()
    await trace.push("Config is loaded", lambda t: t.measure(load_config))
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from converge.config import EngineConfig

logger = logging.getLogger("converge.trace")

T = TypeVar("T")


class TraceEvent(BaseModel):
    """A single message emitted through a Trace."""

    trace_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    scopes: list[str] = Field(default_factory=list)
    message: str


TraceEventHandler = Callable[[TraceEvent], Any]


class Trace:
    """Scoped event emitter with timing helpers."""

    __slots__ = ("_id", "_handlers", "_scopes")

    def __init__(
        self,
        id: str | None = None,
        handlers: Iterable[TraceEventHandler] = (),
        scopes: Iterable[str] = (),
    ) -> None:
        self._id = id or uuid.uuid4().hex
        self._handlers = tuple(handlers)
        self._scopes = tuple(scopes)

    @property
    def id(self) -> str:
        return self._id

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._scopes

    @property
    def handlers(self) -> tuple[TraceEventHandler, ...]:
        return self._handlers

    async def push(self, scope: str, action: Callable[[Trace], Awaitable[T]]) -> T:
        """Run ``action`` with a child trace nested under ``scope``."""
        child = Trace(self._id, self._handlers, (*self._scopes, scope))
        return await action(child)

    async def measure(self, action: Callable[[Trace], Awaitable[T]]) -> T:
        """Run ``action`` between start/stop markers, logging elapsed seconds."""
        self.log("start")
        started = time.perf_counter()
        result = await action(self)
        elapsed = time.perf_counter() - started
        self.log(f"stop - {elapsed:.3f}secs")
        return result

    def log(self, message: str) -> None:
        event = TraceEvent(trace_id=self._id, scopes=list(self._scopes), message=message)
        for handler in self._handlers:
            handler(event)

    def log_state(self, in_desired_state: bool) -> None:
        self.log(f"In desired state: {in_desired_state}")

    def __repr__(self) -> str:
        return f"Trace(id={self._id[:8]!r}, scopes={list(self._scopes)!r})"


def log_trace_event(event: TraceEvent) -> None:
    """Handler that forwards trace events to the ``converge.trace`` logger."""
    logger.info(
        event.message,
        extra={"event": "trace", "scopes": event.scopes, "trace_id": event.trace_id},
    )


def default_trace(config: EngineConfig | None = None) -> Trace:
    """Fresh trace for a run; forwards events to logging unless disabled."""
    if config is None:
        from converge.config import EngineConfig

        config = EngineConfig()
    handlers = [log_trace_event] if config.log_trace_events else []
    return Trace(handlers=handlers)
