"""Exceptions raised by graph construction and execution."""


class GraphError(Exception):
    """Base class for graph usage errors."""


class DependencyNotMetError(GraphError):
    """Raised when an execution is started while it still waits on dependencies."""
