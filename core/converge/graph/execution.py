"""
Execution engine - runs a static node graph once.

The engine:
1. Freezes the graph reachable from a root into NodeExecution instances,
   one per Node (diamonds share a single instance)
2. Starts the root with the caller's input
3. On every completion, notifies dependents; a dependent activates when the
   last of its dependencies reports in, with their outputs merged as input
4. Leaves dependents of a failed node waiting (failure propagates by omission)

Lifecycle per instance (monotonic):

    waiting ──▶ active ──▶ completed
                      └──▶ failed
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from converge.graph.errors import DependencyNotMetError, GraphError
from converge.graph.node import ExecContext, Node
from converge.observability import default_trace, set_trace_context
from converge.observability.logging import trace_context
from converge.observability.trace import Trace

logger = logging.getLogger(__name__)


class ExecutionLifecycle(StrEnum):
    """Lifecycle state of one NodeExecution."""

    WAITING = "waiting"  # Dependencies outstanding
    ACTIVE = "active"  # Node computation in flight
    COMPLETED = "completed"  # Produced an output, dependents notified
    FAILED = "failed"  # Produced no output, dependents starved


class NodeExecution:
    """
    One run-instance of a Node.

    Tracks the dependency instances still outstanding (waiting_on), the
    dependents to notify on completion (awaited_by) and the input accumulated
    from completed dependencies. References to the node and the trace are
    non-owning; the visited map passed to build() owns the instances.
    """

    def __init__(self, node: Node, trace: Trace) -> None:
        self._node = node
        self._trace = trace
        self._lifecycle = ExecutionLifecycle.WAITING
        self._waiting_on: dict[NodeExecution, None] = {}
        self._awaited_by: dict[NodeExecution, None] = {}
        self._input: Any = None
        self._output: Any = None

    @property
    def node(self) -> Node:
        return self._node

    @property
    def trace(self) -> Trace:
        return self._trace

    @property
    def lifecycle(self) -> ExecutionLifecycle:
        return self._lifecycle

    @property
    def input(self) -> Any:
        return self._input

    @property
    def output(self) -> Any:
        return self._output

    @property
    def waiting_on(self) -> frozenset["NodeExecution"]:
        return frozenset(self._waiting_on)

    @property
    def awaited_by(self) -> frozenset["NodeExecution"]:
        return frozenset(self._awaited_by)

    async def start(self, initial: Any) -> None:
        """
        Start this instance with an explicit input.

        Raises:
            DependencyNotMetError: if dependencies are still outstanding.
            GraphError: if the instance has already left the waiting state.
        """
        if self._waiting_on:
            raise DependencyNotMetError(
                f"Node {self._node.name!r} cannot start: "
                f"{len(self._waiting_on)} unmet dependencies"
            )
        if self._lifecycle != ExecutionLifecycle.WAITING:
            raise GraphError(f"Node {self._node.name!r} already {self._lifecycle}")
        self._input = initial
        await self._transition_to_active()

    async def on_dependency_complete(self, dependency: "NodeExecution") -> None:
        """Record a completed dependency; activate once none are outstanding."""
        # No await before the emptiness check: the countdown is atomic
        # with respect to other completions on the event loop.
        if dependency not in self._waiting_on:
            logger.debug(
                "Ignoring completion of %s: not a pending dependency of %s",
                dependency.node.name,
                self._node.name,
                extra={"node": self._node.name},
            )
            return
        del self._waiting_on[dependency]
        self._input = self._node.merge_input(self._input, dependency.output, dependency.node)

        if not self._waiting_on:
            await self._transition_to_active()

    async def _transition_to_active(self) -> None:
        self._lifecycle = ExecutionLifecycle.ACTIVE
        logger.debug("Node %s active", self._node.name, extra={"node": self._node.name})

        output = await self._node.execute(ExecContext(state=self._input, trace=self._trace))

        if output is not None:
            await self._transition_to_completed(output)
        else:
            self._transition_to_failed()

    async def _transition_to_completed(self, output: Any) -> None:
        self._output = output
        self._lifecycle = ExecutionLifecycle.COMPLETED
        logger.debug("Node %s completed", self._node.name, extra={"node": self._node.name})

        dependents = list(self._awaited_by)
        self._awaited_by.clear()
        if not dependents:
            return

        # Every sibling settles before the first error is raised
        results = await asyncio.gather(
            *(d.on_dependency_complete(self) for d in dependents),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors[1:]:
            logger.error(
                "Additional error downstream of %s: %r",
                self._node.name,
                error,
                extra={"node": self._node.name},
            )
        if errors:
            raise errors[0]

    def _transition_to_failed(self) -> None:
        self._lifecycle = ExecutionLifecycle.FAILED
        logger.debug(
            "Node %s failed to converge; %d dependents will not run",
            self._node.name,
            len(self._awaited_by),
            extra={"node": self._node.name},
        )

    @staticmethod
    def build(
        node: Node,
        visited: dict[Node, "NodeExecution"],
        trace: Trace,
    ) -> "NodeExecution":
        """
        Build the execution graph reachable from ``node``.

        ``visited`` maps each Node to its single instance for this run and is
        owned by the caller; pass a fresh dict per run.
        """
        if node not in visited:
            execution = NodeExecution(node, trace)
            visited[node] = execution

            for child in node.iter_children():
                child_execution = NodeExecution.build(child, visited, trace)
                child_execution._waiting_on[execution] = None
                execution._awaited_by[child_execution] = None

        return visited[node]

    def __repr__(self) -> str:
        return f"<NodeExecution {self._node.name!r} {self._lifecycle}>"


@dataclass
class ExecutionResult:
    """Summary of one run of an execution graph."""

    success: bool
    completed: list[str] = field(default_factory=list)  # Node names, build order
    failed: list[str] = field(default_factory=list)
    waiting: list[str] = field(default_factory=list)  # Never ran (starved or unreachable parents)
    outputs: list[Any] = field(default_factory=list)  # Outputs of completed sink nodes
    duration_ms: int = 0


class ExecutionGraph:
    """
    Owning registry for one run: the Node → NodeExecution map and its trace.

    Example:
        graph = ExecutionGraph.build(root)
        result = await graph.start({"env": "sandbox"})
        if not result.success:
            print("did not converge:", result.failed)
    """

    def __init__(self, root: Node, trace: Trace) -> None:
        self._trace = trace
        self._executions: dict[Node, NodeExecution] = {}
        self._root = NodeExecution.build(root, self._executions, trace)
        self._duration_ms = 0

    @classmethod
    def build(cls, root: Node, trace: Trace | None = None) -> "ExecutionGraph":
        return cls(root, trace if trace is not None else default_trace())

    @property
    def root(self) -> NodeExecution:
        return self._root

    @property
    def trace(self) -> Trace:
        return self._trace

    @property
    def executions(self) -> MappingProxyType:
        return MappingProxyType(self._executions)

    def get(self, node: Node) -> NodeExecution:
        return self._executions[node]

    def sinks(self) -> list[NodeExecution]:
        """Instances whose node has no dependents."""
        return [e for e in self._executions.values() if not e.node.children]

    async def start(self, initial: Any) -> ExecutionResult:
        """Run the graph from its root and summarize the settled state."""
        # The run's trace_id is visible only while the run is in flight
        context_token = set_trace_context(trace_id=self._trace.id)
        try:
            logger.info(
                "Starting execution graph at %s (%d nodes)",
                self._root.node.name,
                len(self._executions),
            )

            started = time.perf_counter()
            try:
                await self._root.start(initial)
            finally:
                self._duration_ms = int((time.perf_counter() - started) * 1000)

            result = self.result()
            logger.info(
                "Execution graph settled: %d completed, %d failed, %d waiting",
                len(result.completed),
                len(result.failed),
                len(result.waiting),
                extra={"latency_ms": result.duration_ms},
            )
            return result
        finally:
            trace_context.reset(context_token)

    def result(self) -> ExecutionResult:
        by_state: dict[ExecutionLifecycle, list[str]] = {state: [] for state in ExecutionLifecycle}
        for execution in self._executions.values():
            by_state[execution.lifecycle].append(execution.node.name)

        outputs = [
            e.output for e in self.sinks() if e.lifecycle == ExecutionLifecycle.COMPLETED
        ]
        return ExecutionResult(
            success=len(by_state[ExecutionLifecycle.COMPLETED]) == len(self._executions),
            completed=by_state[ExecutionLifecycle.COMPLETED],
            failed=by_state[ExecutionLifecycle.FAILED],
            waiting=by_state[ExecutionLifecycle.WAITING],
            outputs=outputs,
            duration_ms=self._duration_ms,
        )
