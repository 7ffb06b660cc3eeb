"""FanOutNode - runs many branch nodes concurrently against one state."""

import asyncio
from typing import Any

from converge.graph.node import ExecContext, Node
from converge.graph.requirement import FanOut
from converge.observability.trace import Trace


class FanOutNode(Node):
    """
    One state in, a list of states out.

    Branch lists from every FanOut descriptor are resolved concurrently, each
    under its description's trace scope; all resolved branches then run
    concurrently. Branches that return None are dropped from the result,
    which keeps resolution order.
    """

    emits_collection = True

    def __init__(self, requirements: list[FanOut]) -> None:
        super().__init__()
        self.requirements = list(requirements)

    @property
    def name(self) -> str:
        if not self.requirements:
            return "FanOutNode"
        return " | ".join(r.describe for r in self.requirements)

    async def execute(self, ctx: ExecContext) -> list[Any]:
        trace, state = ctx.trace, ctx.state

        async def resolve(requirement: FanOut) -> list[Node]:
            async def branches(_: Trace) -> list[Node]:
                return list(await requirement.branches(state))

            return await trace.push(requirement.describe, branches)

        resolved = await asyncio.gather(*(resolve(r) for r in self.requirements))
        branches = [node for group in resolved for node in group]

        results = await asyncio.gather(
            *(node.execute(ExecContext(state=state, trace=trace)) for node in branches)
        )
        return [result for result in results if result is not None]
