"""State store: the shared JSON document behind every status badge.

One file holds the latest status of each tool and the recent run history.
Every mutation is a whole-document read-modify-write with last-writer-wins
semantics; there is no cross-process locking. Inside a single server process
the read and the write of each mutation happen without yielding to the event
loop, so the loop itself serialises writers.

Persisted status is advisory: a failed write is logged and otherwise ignored,
because the action it records (a process start or stop) has already happened.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from .errors import StorageFailure
from .models import (
    MAX_RUNS,
    TOOL_NAMES,
    DashboardState,
    Run,
    RunStatus,
    ToolState,
    ToolStatus,
    tail,
)

log = logging.getLogger(__name__)


class StateStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Whole-document access
    # ------------------------------------------------------------------

    def load(self) -> DashboardState:
        """Return the stored document, or the defaults if it is missing or corrupt."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return DashboardState.from_dict(data)
        except FileNotFoundError:
            return DashboardState.default()
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as exc:
            log.warning("Unreadable state file %s (%s), starting fresh", self.path, exc)
            return DashboardState.default()

    def save(self, state: DashboardState) -> bool:
        """Overwrite the backing file. Returns False if the write failed."""
        try:
            self._write(state)
        except StorageFailure as exc:
            log.error("%s", exc)
            return False
        return True

    def _write(self, state: DashboardState) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            raise StorageFailure(f"Error saving state to {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Read-modify-write helpers
    # ------------------------------------------------------------------

    def upsert_tool(
        self,
        key: str,
        status: ToolStatus,
        output: str,
        pid: int | None = None,
    ) -> ToolState:
        """Replace one tool's fields wholesale."""
        state = self.load()
        tool = ToolState(
            name=TOOL_NAMES.get(key, key),
            status=status,
            output=tail(output),
            pid=pid,
        )
        state.tools[key] = tool
        self.save(state)
        return tool

    def prepend_run(
        self,
        tool: str,
        prompt: str,
        status: RunStatus,
        *,
        output: str = "",
    ) -> str:
        """Insert a run at the head of the history and return its id."""
        state = self.load()
        run = Run(
            id=_new_run_id({r.id for r in state.runs}),
            tool=tool,
            prompt=prompt,
            status=status,
            started_at=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            output=tail(output),
        )
        state.runs.insert(0, run)
        state.runs = state.runs[:MAX_RUNS]
        self.save(state)
        return run.id

    def update_run(self, run_id: str, status: RunStatus, output: str) -> bool:
        """Record a run's outcome. Runs already pushed out of the history are ignored."""
        state = self.load()
        for run in state.runs:
            if run.id == run_id:
                run.status = status
                run.output = tail(output)
                self.save(state)
                return True
        return False


def _new_run_id(taken: set[str]) -> str:
    stamp = int(time.time() * 1000)
    while str(stamp) in taken:
        stamp += 1
    return str(stamp)
