from __future__ import annotations

import asyncio
import os
import signal
import stat
from pathlib import Path

import pytest
import pytest_asyncio
from starlette.testclient import TestClient

from agentic_dashboard.config import Config
from agentic_dashboard.dashboard import Dashboard
from agentic_dashboard.process_manager import DetachedProcess, ProcessRunner
from agentic_dashboard.server import create_server


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        host="127.0.0.1",
        port=3999,
        state_file=str(tmp_path / "state" / "dashboard-state.json"),
        log_dir=str(tmp_path / "logs"),
        auto_claude_dir=str(tmp_path / "Auto-Claude"),
        automaker_dir=str(tmp_path / "automaker"),
        automaker_port=39217,
        projects_dir=str(tmp_path / "projects"),
        acfs_user="",
        ssh_host="dev.example.test",
        python_bin="python",
    )


def _kill_spawned(runner: ProcessRunner) -> list[DetachedProcess]:
    """SIGKILL every spawned tool's process group; return the handles to reap."""
    handles = list(runner._latest.values())
    for handle in handles:
        try:
            os.killpg(handle.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
    return handles


@pytest_asyncio.fixture
async def dashboard(config: Config):
    db = Dashboard.from_config(config)
    yield db
    # Reap on the loop that owns the waiter tasks, before it closes
    for handle in _kill_spawned(db.runner):
        await asyncio.wait_for(handle.wait(), timeout=10)


@pytest.fixture
def client(config: Config):
    db = Dashboard.from_config(config)
    app = create_server(dashboard=db).streamable_http_app()
    with TestClient(app) as client:
        yield client
        # Spawns from requests live on the client's portal loop
        for handle in _kill_spawned(db.runner):
            client.portal.call(handle.wait)


@pytest.fixture
def fake_bin(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Factory for executable shell scripts placed first on PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    def make(name: str, body: str) -> Path:
        script = bin_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return make
