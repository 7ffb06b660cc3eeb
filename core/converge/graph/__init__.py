"""Graph structures: Nodes, requirement nodes, and the execution engine."""

from converge.graph.errors import DependencyNotMetError, GraphError
from converge.graph.execution import (
    ExecutionGraph,
    ExecutionLifecycle,
    ExecutionResult,
    NodeExecution,
)
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
from converge.graph.requirement_nodes import (
    ActionNode,
    AssertionNode,
    DerivationNode,
    LogNode,
    RequirementNode,
    ResourceNode,
    define,
    merge,
)

__all__ = [
    # Node
    "Node",
    "ExecContext",
    # Execution
    "NodeExecution",
    "ExecutionLifecycle",
    "ExecutionGraph",
    "ExecutionResult",
    # Errors
    "GraphError",
    "DependencyNotMetError",
    # Requirements
    "Log",
    "Assertion",
    "Action",
    "Derivation",
    "Resource",
    "FanOut",
    "Merge",
    # Requirement nodes
    "RequirementNode",
    "LogNode",
    "AssertionNode",
    "ActionNode",
    "DerivationNode",
    "ResourceNode",
    "define",
    "merge",
    # Combinators
    "FanOutNode",
    "MergeNode",
    "NestedGraphNode",
]
