"""Shared fixtures and test nodes for the converge test suite."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from converge.graph.node import ExecContext, Node
from converge.observability import Trace, TraceEvent, clear_trace_context

# --- Test nodes ---


class StaticNode(Node):
    """Returns a fixed output (None means "did not converge")."""

    def __init__(self, output: Any, label: str | None = None):
        super().__init__()
        self._output = output
        self._label = label
        self.calls: list[Any] = []

    @property
    def name(self) -> str:
        return self._label or super().name

    async def execute(self, ctx: ExecContext) -> Any:
        self.calls.append(ctx.state)
        return self._output


class PassThroughNode(Node):
    """Returns its input unchanged."""

    def __init__(self, label: str | None = None):
        super().__init__()
        self._label = label
        self.calls = 0

    @property
    def name(self) -> str:
        return self._label or super().name

    async def execute(self, ctx: ExecContext) -> Any:
        self.calls += 1
        return ctx.state


class GatedNode(StaticNode):
    """Blocks until its gate is opened, then returns a fixed output."""

    def __init__(self, output: Any, label: str | None = None):
        super().__init__(output, label)
        self.gate = asyncio.Event()

    async def execute(self, ctx: ExecContext) -> Any:
        self.calls.append(ctx.state)
        await self.gate.wait()
        return self._output


class Scripted:
    """Async callback returning scripted results in order, counting calls."""

    def __init__(self, *results: Any):
        self.results = list(results)
        self.calls: list[Any] = []

    async def __call__(self, state: Any) -> Any:
        self.calls.append(state)
        return self.results.pop(0) if self.results else None


async def settle(rounds: int = 20) -> None:
    """Let pending tasks on the event loop make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# --- Fixtures ---


@pytest.fixture(autouse=True)
def _clean_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def events() -> list[TraceEvent]:
    return []


@pytest.fixture
def trace(events: list[TraceEvent]) -> Trace:
    return Trace(handlers=[events.append])
