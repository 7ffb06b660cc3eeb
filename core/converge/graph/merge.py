"""MergeNode - folds the states of fan-in branches into one."""

from typing import Any

from converge.graph.node import ExecContext, Node
from converge.graph.requirement import Merge
from converge.observability.trace import Trace


class MergeNode(Node):
    """
    A list of states in, one state out.

    Inside a run the engine collects one entry per completed parent (a
    fan-out parent contributes each of its branch states). The gate below
    only runs the merge function when a state is present for every parent;
    with a fan-out parent the branch count is dynamic, so the gate defers to
    the engine's completion tracking.
    """

    def __init__(self, requirement: Merge) -> None:
        super().__init__()
        self.requirement = requirement

    @property
    def name(self) -> str:
        return self.requirement.describe

    def merge_input(
        self, accumulated: Any, output: Any, source: Node | None = None
    ) -> list[Any]:
        collected = list(accumulated or [])
        # Only a fan-out parent contributes several states; any other
        # parent is one entry, even when its state is itself a list
        if source is not None and source.emits_collection:
            collected.extend(output)
        else:
            collected.append(output)
        return collected

    def is_ready(self, states: list[Any]) -> bool:
        if any(parent.emits_collection for parent in self.parents):
            return True
        return len(states) == len(self.parents)

    async def execute(self, ctx: ExecContext) -> Any:
        states = list(ctx.state or [])
        if not self.is_ready(states):
            return None

        async def run(_: Trace) -> Any:
            return await self.requirement.merge(states)

        return await ctx.trace.push(self.requirement.describe, run)
