#!/usr/bin/env python3
"""
Convergence Graph Demo

Converges a small application workspace in a temp directory:

    Starting
      └─ Config is loaded (derive)
           └─ Config is valid (assert)
                └─ Workspace exists (resource: mkdir once if missing)
                     └─ Service dirs (fan-out: one resource per service)
                          └─ Inventory (merge)
                               └─ log summary

Run it twice against the same directory: the second run finds every
resource already converged and performs no corrections.

Usage:
    cd core
    python demos/convergence_demo.py [workspace-dir]
"""

import asyncio
import sys
import tempfile
from pathlib import Path

# Add core to path for non-installed runs
_CORE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_CORE_DIR))

from converge import (  # noqa: E402
    Assertion,
    Derivation,
    EngineConfig,
    ExecutionGraph,
    FanOut,
    Log,
    LogNode,
    Resource,
    ResourceNode,
    define,
    merge,
)

SERVICES = ("api", "worker", "scheduler")


async def load_config(state: dict) -> dict:
    workspace = Path(state["workspace"])
    return {**state, "services": list(SERVICES), "workspace": str(workspace)}


async def config_is_valid(state: dict) -> bool:
    return bool(state["services"]) and Path(state["workspace"]).is_absolute()


async def workspace_exists(state: dict) -> bool:
    return Path(state["workspace"]).is_dir()


async def make_workspace(state: dict) -> None:
    Path(state["workspace"]).mkdir(parents=True, exist_ok=True)


def service_dir(service: str) -> ResourceNode:
    async def exists(state: dict) -> bool:
        return (Path(state["workspace"]) / service).is_dir()

    async def create(state: dict) -> None:
        (Path(state["workspace"]) / service).mkdir()

    return ResourceNode(Resource(describe=f"{service} dir exists", test=exists, set=create))


async def service_branches(state: dict) -> list[ResourceNode]:
    return [service_dir(service) for service in state["services"]]


async def inventory(states: list[dict]) -> dict:
    workspace = Path(states[0]["workspace"])
    return {
        "workspace": str(workspace),
        "converged": sorted(p.name for p in workspace.iterdir() if p.is_dir()),
    }


def build_graph(workspace: Path):
    root = define({"workspace": str(workspace)})
    (
        root.derive(Derivation("Config is loaded", get=load_config))
        .assert_(Assertion("Config is valid", test=config_is_valid))
        .declare(Resource("Workspace exists", test=workspace_exists, set=make_workspace))
        .fan_out(FanOut("Service dirs", branches=service_branches))
        .then(merge("Inventory", inventory))
        .then(LogNode(Log(lambda state: f"converged: {', '.join(state['converged'])}")))
    )
    return root


async def main():
    config = EngineConfig()
    config.configure_logging()

    workspace = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(tempfile.mkdtemp()) / "app"
    workspace = workspace.resolve()
    root = build_graph(workspace)

    for attempt in (1, 2):
        graph = ExecutionGraph.build(root)
        result = await graph.start(root.initial_state)
        status = "converged" if result.success else "did not converge"
        print(f"run {attempt}: {status} in {result.duration_ms}ms -> {result.outputs}")
        if result.failed:
            print(f"  failed: {result.failed}; never ran: {result.waiting}")


if __name__ == "__main__":
    asyncio.run(main())
