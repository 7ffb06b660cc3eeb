"""
Requirement descriptors - configuration for requirement nodes.

Each descriptor is consumed once when its node is built. Callbacks are async:

    Resource(
        describe="Config directory exists",
        test=lambda state: directory_exists(state["config_dir"]),
        set=lambda state: make_directory(state["config_dir"]),
    )
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from converge.graph.node import Node

Check = Callable[[Any], Awaitable[bool]]
Transform = Callable[[Any], Awaitable[Any]]
Do = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class Log:
    """Message to log; a callable derives it from the state."""

    describe: str | Callable[[Any], str]


@dataclass(frozen=True)
class Assertion:
    """A condition the state must satisfy; nothing is done to fix it."""

    describe: str
    test: Check


@dataclass(frozen=True)
class Action:
    """An effect performed unconditionally; its result is discarded."""

    describe: str
    set: Do


@dataclass(frozen=True)
class Derivation:
    """A transformation of the state into a new shape."""

    describe: str
    get: Transform


@dataclass(frozen=True)
class Resource:
    """Desired state: ``test`` checks it, ``set`` corrects it once if needed."""

    describe: str
    test: Check
    set: Do


@dataclass(frozen=True)
class FanOut:
    """Resolves the branch nodes to run concurrently against one state."""

    describe: str
    branches: Callable[[Any], Awaitable[list[Node]]]


@dataclass(frozen=True)
class Merge:
    """Folds the states collected from fan-in branches into one."""

    describe: str
    merge: Callable[[list[Any]], Awaitable[Any]]
