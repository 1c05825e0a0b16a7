"""Status aggregation: the merged view every poll reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .adapters.automaker import find_server_pid
from .errors import CommandError
from .models import DashboardState, ToolState, ToolStatus
from .process_manager import is_alive, run_command
from .store import StateStore

log = logging.getLogger(__name__)

VERSION_COMMANDS = {
    "claudeVersion": 'claude --version 2>/dev/null || echo "not installed"',
    "nodeVersion": "node --version",
    "pythonVersion": "python3 --version",
}


class StatusAggregator:
    def __init__(self, store: StateStore) -> None:
        self.store = store

    async def get_status(self) -> DashboardState:
        """Load the stored state and reconcile it against the process table.

        Corrections are applied to the returned copy only; the store is not
        rewritten, so every call re-derives them.
        """
        state = self.store.load()

        for key, tool in state.tools.items():
            if tool.status == ToolStatus.RUNNING and tool.pid is not None:
                if not is_alive(tool.pid):
                    state.tools[key] = ToolState(
                        name=tool.name,
                        status=ToolStatus.IDLE,
                        output="Process completed",
                    )

        # The task-board server may have been started outside the dashboard
        pid = await find_server_pid()
        if pid is not None:
            current = state.tools.get("automaker") or ToolState(name="Automaker")
            state.tools["automaker"] = ToolState(
                name=current.name,
                status=ToolStatus.RUNNING,
                output=current.output,
                pid=pid,
            )
        return state


async def system_versions() -> dict[str, Any]:
    """Versions of the runtimes the wrapped tools depend on."""
    try:
        results = await asyncio.gather(
            *(run_command(cmd, timeout=30) for cmd in VERSION_COMMANDS.values())
        )
    except CommandError as exc:
        log.error("Error fetching system info: %s", exc)
        return {key: "error" for key in VERSION_COMMANDS}

    versions = {key: result.stdout.strip() for key, result in zip(VERSION_COMMANDS, results)}
    versions["pythonVersion"] = versions["pythonVersion"].replace("Python ", "")
    return versions
