"""
converge: declarative convergence graphs.

Describe desired-state checks and corrective actions as nodes of a
dependency graph; each node runs once all of its dependencies produced
output, with their outputs merged into its input.

    from converge import define, Resource

    root = define({"path": "/tmp/app"})
    root.declare(Resource("app dir exists", test=dir_exists, set=make_dir))
    execution = await root.apply()
"""

from converge.config import EngineConfig
from converge.graph import (
    Action,
    ActionNode,
    Assertion,
    AssertionNode,
    DependencyNotMetError,
    Derivation,
    DerivationNode,
    ExecContext,
    ExecutionGraph,
    ExecutionLifecycle,
    ExecutionResult,
    FanOut,
    FanOutNode,
    GraphError,
    Log,
    LogNode,
    Merge,
    MergeNode,
    NestedGraphNode,
    Node,
    NodeExecution,
    RequirementNode,
    Resource,
    ResourceNode,
    define,
    merge,
)
from converge.observability import Trace, TraceEvent, configure_logging

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "configure_logging",
    "Trace",
    "TraceEvent",
    "Node",
    "ExecContext",
    "NodeExecution",
    "ExecutionLifecycle",
    "ExecutionGraph",
    "ExecutionResult",
    "GraphError",
    "DependencyNotMetError",
    "Log",
    "Assertion",
    "Action",
    "Derivation",
    "Resource",
    "FanOut",
    "Merge",
    "RequirementNode",
    "LogNode",
    "AssertionNode",
    "ActionNode",
    "DerivationNode",
    "ResourceNode",
    "FanOutNode",
    "MergeNode",
    "NestedGraphNode",
    "define",
    "merge",
]
