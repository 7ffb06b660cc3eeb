"""
Requirement nodes - the reconciliation patterns.

Every requirement node wraps its work in a trace scope named after the
requirement's description, and each test/set/get callback in a timed
sub-scope:

    Config is loaded > get: start
    Config is loaded > get: stop - 0.012secs
    Config dir exists > test: In desired state: False
    Config dir exists > set: start
    ...

Build graphs by chaining from a root:

    graph = define({"env": "sandbox"})
    (
        graph.derive(Derivation("Config is loaded", get=load_config))
        .assert_(Assertion("Config is valid", test=is_valid))
        .declare(Resource("Config dir exists", test=dir_exists, set=make_dir))
        .log(Log(lambda state: f"ready: {state['config_dir']}"))
    )
    execution = await graph.apply()
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from converge.graph.fan_out import FanOutNode
from converge.graph.merge import MergeNode
from converge.graph.nested import NestedGraphNode
from converge.graph.node import ExecContext, Node
from converge.graph.requirement import (
    Action,
    Assertion,
    Derivation,
    FanOut,
    Log,
    Merge,
    Resource,
)
from converge.observability.trace import Trace


async def _test(trace: Trace, condition: Callable[[], Awaitable[bool]]) -> bool:
    """Evaluate a check under a timed "test" scope and log the outcome."""

    async def run(trace: Trace) -> bool:
        in_desired_state = bool(await trace.measure(lambda _: condition()))
        trace.log_state(in_desired_state)
        return in_desired_state

    return await trace.push("test", run)


async def _set(trace: Trace, action: Callable[[], Awaitable[Any]]) -> Any:
    return await trace.push("set", lambda trace: trace.measure(lambda _: action()))


async def _get(trace: Trace, transform: Callable[[], Awaitable[Any]]) -> Any:
    return await trace.push("get", lambda trace: trace.measure(lambda _: transform()))


def define(state: Any = None) -> LogNode:
    """Root of a requirement graph: a pass-through node carrying the initial state."""
    root = LogNode(Log(describe="Starting"))
    root.initial_state = state
    return root


def merge(describe: str, merge: Callable[[list[Any]], Awaitable[Any]]) -> MergeNode:
    """Standalone merge node, to be wired as the convergence point of a fan-out."""
    return MergeNode(Merge(describe=describe, merge=merge))


class RequirementNode(Node):
    """
    Base class for requirement nodes.

    The chaining methods append one node as a dependent of this one and
    return it, so a pipeline reads top to bottom.
    """

    def __init__(self, requirement: Any) -> None:
        super().__init__()
        self.requirement = requirement

    @property
    def name(self) -> str:
        describe = self.requirement.describe
        return describe if isinstance(describe, str) else type(self).__name__

    def assert_(self, requirement: Assertion) -> AssertionNode:
        """Append an assertion (``assert`` is a keyword)."""
        node = AssertionNode(requirement)
        self.then(node)
        return node

    def act(self, requirement: Action) -> ActionNode:
        node = ActionNode(requirement)
        self.then(node)
        return node

    def derive(self, requirement: Derivation) -> DerivationNode:
        node = DerivationNode(requirement)
        self.then(node)
        return node

    def declare(self, requirement: Resource) -> ResourceNode:
        node = ResourceNode(requirement)
        self.then(node)
        return node

    def log(self, requirement: Log) -> LogNode:
        node = LogNode(requirement)
        self.then(node)
        return node

    def fan_out(self, *requirements: FanOut) -> FanOutNode:
        node = FanOutNode(list(requirements))
        self.then(node)
        return node

    def nest(self, graph: Node, output: Node | None = None) -> NestedGraphNode:
        """Append a complete sub-graph that runs as a single node."""
        node = NestedGraphNode(graph, output)
        self.then(node)
        return node


class LogNode(RequirementNode):
    """Logs a static or state-derived message and passes the state through."""

    requirement: Log

    async def execute(self, ctx: ExecContext) -> Any:
        describe = self.requirement.describe
        message = describe if isinstance(describe, str) else describe(ctx.state)
        ctx.trace.log(message)
        return ctx.state


class AssertionNode(RequirementNode):
    """Passes the state through when the check holds; None otherwise."""

    requirement: Assertion

    async def execute(self, ctx: ExecContext) -> Any:
        state = ctx.state
        success = await ctx.trace.push(
            self.requirement.describe,
            lambda trace: _test(trace, lambda: self.requirement.test(state)),
        )
        if success:
            return state
        return None


class ActionNode(RequirementNode):
    """Performs an effect unconditionally and returns the original state."""

    requirement: Action

    async def execute(self, ctx: ExecContext) -> Any:
        state = ctx.state
        await ctx.trace.push(
            self.requirement.describe,
            lambda trace: _set(trace, lambda: self.requirement.set(state)),
        )
        return state


class DerivationNode(RequirementNode):
    """Transforms the state into a new shape."""

    requirement: Derivation

    async def execute(self, ctx: ExecContext) -> Any:
        state = ctx.state
        return await ctx.trace.push(
            self.requirement.describe,
            lambda trace: _get(trace, lambda: self.requirement.get(state)),
        )


class ResourceNode(RequirementNode):
    """
    Converges a resource: test, correct once if needed, re-test.

    Exactly one test when already converged; otherwise two tests around a
    single set. There is no retry loop: still failing after the correction
    yields None.
    """

    requirement: Resource

    async def execute(self, ctx: ExecContext) -> Any:
        state = ctx.state

        async def condition() -> bool:
            return await self.requirement.test(state)

        async def mutation() -> Any:
            return await self.requirement.set(state)

        async def converge(trace: Trace) -> Any:
            if await _test(trace, condition):
                return state
            await _set(trace, mutation)
            if await _test(trace, condition):
                return state
            return None

        return await ctx.trace.push(self.requirement.describe, converge)
