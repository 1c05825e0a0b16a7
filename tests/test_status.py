import os
import subprocess

import pytest

from agentic_dashboard import status as status_module
from agentic_dashboard.models import ToolStatus
from agentic_dashboard.status import StatusAggregator, system_versions
from agentic_dashboard.store import StateStore


async def _no_server() -> None:
    return None


@pytest.fixture
def no_external_automaker(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(status_module, "find_server_pid", _no_server)


@pytest.mark.asyncio
async def test_dead_pid_is_reported_idle(tmp_path, no_external_automaker) -> None:
    proc = subprocess.Popen(["true"])
    proc.wait()

    store = StateStore(tmp_path / "state.json")
    store.upsert_tool("continuous-claude", ToolStatus.RUNNING, "Started", pid=proc.pid)

    state = await StatusAggregator(store).get_status()
    tool = state.tools["continuous-claude"]
    assert tool.status == ToolStatus.IDLE
    assert tool.output == "Process completed"
    assert tool.pid is None

    # Reconciliation is not written back
    assert store.load().tools["continuous-claude"].status == ToolStatus.RUNNING


@pytest.mark.asyncio
async def test_live_pid_stays_running(tmp_path, no_external_automaker) -> None:
    store = StateStore(tmp_path / "state.json")
    store.upsert_tool("auto-claude", ToolStatus.RUNNING, "Creating spec", pid=os.getpid())

    state = await StatusAggregator(store).get_status()
    assert state.tools["auto-claude"].status == ToolStatus.RUNNING
    assert state.tools["auto-claude"].pid == os.getpid()


@pytest.mark.asyncio
async def test_running_without_pid_is_left_alone(tmp_path, no_external_automaker) -> None:
    store = StateStore(tmp_path / "state.json")
    store.upsert_tool("acfs", ToolStatus.RUNNING, 'NTM session "x" spawned')

    state = await StatusAggregator(store).get_status()
    assert state.tools["acfs"].status == ToolStatus.RUNNING


@pytest.mark.asyncio
async def test_externally_started_automaker_is_discovered(tmp_path, monkeypatch) -> None:
    async def found() -> int:
        return 4242

    monkeypatch.setattr(status_module, "find_server_pid", found)
    store = StateStore(tmp_path / "state.json")

    state = await StatusAggregator(store).get_status()
    tool = state.tools["automaker"]
    assert tool.status == ToolStatus.RUNNING
    assert tool.pid == 4242
    assert tool.name == "Automaker"


@pytest.mark.asyncio
async def test_system_versions_shape() -> None:
    versions = await system_versions()
    assert set(versions) == {"claudeVersion", "nodeVersion", "pythonVersion"}
    if versions["pythonVersion"] != "error":
        assert not versions["pythonVersion"].startswith("Python")
