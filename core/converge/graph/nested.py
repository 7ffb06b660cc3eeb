"""NestedGraphNode - a complete requirement graph used as one node."""

from typing import Any

from converge.graph.errors import GraphError
from converge.graph.execution import ExecutionGraph, ExecutionLifecycle
from converge.graph.node import ExecContext, Node
from converge.observability.trace import Trace


class NestedGraphNode(Node):
    """
    Runs a sub-graph to completion and returns the output of one of its nodes.

    Each execution builds a fresh inner ExecutionGraph from ``graph`` sharing
    the outer trace, so the sub-graph's events nest under this node's scope.
    The result is the output of ``output`` (default: the sub-graph's only
    sink), or None when that node did not complete.
    """

    def __init__(self, graph: Node, output: Node | None = None) -> None:
        super().__init__()
        self.graph = graph
        self.output_node = output

    @property
    def name(self) -> str:
        return f"nested:{self.graph.name}"

    def _output_execution(self, inner: ExecutionGraph):
        if self.output_node is not None:
            if self.output_node not in inner.executions:
                raise GraphError(
                    f"Output node {self.output_node.name!r} is not reachable "
                    f"from {self.graph.name!r}"
                )
            return inner.get(self.output_node)
        sinks = inner.sinks()
        if len(sinks) != 1:
            raise GraphError(
                f"Nested graph {self.graph.name!r} has {len(sinks)} sinks; "
                "pass the output node explicitly"
            )
        return sinks[0]

    async def execute(self, ctx: ExecContext) -> Any:
        async def run(trace: Trace) -> Any:
            inner = ExecutionGraph.build(self.graph, trace)
            output_execution = self._output_execution(inner)
            await inner.root.start(ctx.state)
            if output_execution.lifecycle == ExecutionLifecycle.COMPLETED:
                return output_execution.output
            return None

        return await ctx.trace.push(self.name, run)
