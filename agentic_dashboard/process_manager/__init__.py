"""Process management for the wrapped tools.

  - ProcessRunner.spawn: launch a detached tool process with a per-run log
  - is_alive:            signal-0 liveness check used by status reconciliation
  - run_command:         run a short shell command and capture its output
  - terminate_group:     SIGTERM a detached tool's whole process group
  - find_pids / kill_matching / free_port: process-table helpers for stop
"""

from agentic_dashboard.process_manager.runner import (
    CommandResult,
    DetachedProcess,
    ProcessRunner,
    RingBuffer,
    find_pids,
    free_port,
    is_alive,
    kill_matching,
    run_as_user,
    run_command,
    terminate_group,
    user_command,
)

__all__ = [
    "CommandResult",
    "DetachedProcess",
    "ProcessRunner",
    "RingBuffer",
    "find_pids",
    "free_port",
    "is_alive",
    "kill_matching",
    "run_as_user",
    "run_command",
    "terminate_group",
    "user_command",
]
