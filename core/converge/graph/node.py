"""
Node Protocol - the static dependency graph.

A Node declares one asynchronous transformation from an input state to an
output state, plus symmetric edges to its parents (dependencies) and
children (dependents). Nodes carry no run state; each run builds a parallel
graph of NodeExecution instances (see converge.graph.execution).

Returning None from execute() is the expected-failure channel ("did not
converge"). Exceptions are never caught by the engine and end the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from converge.observability.trace import Trace

if TYPE_CHECKING:
    from converge.graph.execution import NodeExecution

In = TypeVar("In")
Out = TypeVar("Out")


@dataclass
class ExecContext(Generic[In]):
    """What a node sees when it runs: the merged input state and the run's trace."""

    state: In
    trace: Trace


class Node(ABC, Generic[In, Out]):
    """
    Base class for all nodes in the graph.

    Edges are kept in insertion-ordered dicts used as sets, so downstream
    notification order follows edge creation order.

    Example:
        load = LoadConfig()
        validate = ValidateConfig()
        load.then(validate)          # same graph as validate.depends_on(load)
        execution = await load.check({"env": "sandbox"})
    """

    # True for nodes whose output is a list of states (fan-out)
    emits_collection: bool = False

    def __init__(self) -> None:
        self._parents: dict[Node, None] = {}
        self._children: dict[Node, None] = {}
        self.initial_state: In | None = None

    @property
    def parents(self) -> frozenset[Node]:
        return frozenset(self._parents)

    @property
    def children(self) -> frozenset[Node]:
        return frozenset(self._children)

    def iter_children(self) -> list[Node]:
        """Children in edge-creation order."""
        return list(self._children)

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def execute(self, ctx: ExecContext[In]) -> Out | None:
        """Run the node's computation. None signals expected non-convergence."""

    def depends_on(self, node: Node) -> Node:
        """Make this node depend on ``node``. Returns ``node``."""
        if node not in self._parents:
            self._parents[node] = None
            node.then(self)
        return node

    def then(self, node: Node) -> Node:
        """Make ``node`` depend on this node. Returns ``node`` for chaining."""
        if node not in self._children:
            self._children[node] = None
            node.depends_on(self)
        return node

    def merge_input(self, accumulated: Any, output: Any, source: Node | None = None) -> Any:
        """
        Fold a completed dependency's output into the accumulated input.
        ``source`` is the dependency's node.

        Shallow merge for mappings, the later-completing dependency winning
        on key collision. Non-mapping outputs replace what was accumulated.
        """
        if isinstance(accumulated, Mapping) and isinstance(output, Mapping):
            return {**accumulated, **output}
        if isinstance(output, Mapping):
            return dict(output)
        return output

    async def check(self, input: In | None = None, trace: Trace | None = None) -> NodeExecution:
        """Build a fresh execution graph from this node, run it, return the root instance."""
        from converge.graph.execution import ExecutionGraph

        graph = ExecutionGraph.build(self, trace)
        await graph.start(self.initial_state if input is None else input)
        return graph.root

    async def apply(self, input: In | None = None, trace: Trace | None = None) -> NodeExecution:
        """Build a fresh execution graph from this node, run it, return the root instance."""
        from converge.graph.execution import ExecutionGraph

        graph = ExecutionGraph.build(self, trace)
        await graph.start(self.initial_state if input is None else input)
        return graph.root

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
