import json
from pathlib import Path

from agentic_dashboard.models import MAX_RUNS, TOOL_NAMES, RunStatus, ToolStatus
from agentic_dashboard.store import StateStore


def test_load_missing_file_returns_defaults(tmp_path: Path) -> None:
    state = StateStore(tmp_path / "nope.json").load()

    assert set(state.tools) == set(TOOL_NAMES)
    for key, tool in state.tools.items():
        assert tool.name == TOOL_NAMES[key]
        assert tool.status == ToolStatus.IDLE
        assert tool.output == ""
        assert tool.pid is None
    assert state.runs == []


def test_load_corrupt_file_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json")
    state = StateStore(path).load()
    assert set(state.tools) == set(TOOL_NAMES)
    assert state.runs == []


def test_load_wrong_shape_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"tools": ["not", "a", "mapping"], "runs": 7}))
    state = StateStore(path).load()
    assert state.tools["automaker"].status == ToolStatus.IDLE
    assert state.runs == []


def test_load_fills_missing_tool_keys(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "tools": {"automaker": {"name": "Automaker", "status": "running", "output": "x", "pid": 42}},
        "runs": [],
    }))
    state = StateStore(path).load()
    assert state.tools["automaker"].pid == 42
    assert state.tools["automaker"].status == ToolStatus.RUNNING
    assert state.tools["acfs"].status == ToolStatus.IDLE


def test_upsert_tool_replaces_fields(tmp_path: Path) -> None:
    store = StateStore(tmp_path / "state.json")
    store.upsert_tool("continuous-claude", ToolStatus.RUNNING, "Started", pid=1234)
    store.upsert_tool("continuous-claude", ToolStatus.IDLE, "Stopped by user")

    raw = json.loads((tmp_path / "state.json").read_text())
    tool = raw["tools"]["continuous-claude"]
    assert tool == {"name": "Continuous Claude", "status": "idle", "output": "Stopped by user"}


def test_upsert_tool_truncates_output(tmp_path: Path) -> None:
    store = StateStore(tmp_path / "state.json")
    store.upsert_tool("auto-claude", ToolStatus.ERROR, "a" * 500 + "b" * 1000)
    assert store.load().tools["auto-claude"].output == "b" * 1000


def test_prepend_run_caps_history_newest_first(tmp_path: Path) -> None:
    store = StateStore(tmp_path / "state.json")
    ids = [store.prepend_run("Auto-Claude", f"task {i}", RunStatus.RUNNING) for i in range(25)]

    runs = store.load().runs
    assert len(runs) == MAX_RUNS
    assert [r.prompt for r in runs] == [f"task {i}" for i in range(24, 4, -1)]
    assert [r.id for r in runs] == ids[::-1][:MAX_RUNS]
    assert len({r.id for r in runs}) == MAX_RUNS


def test_prepend_run_fewer_than_cap(tmp_path: Path) -> None:
    store = StateStore(tmp_path / "state.json")
    for i in range(3):
        store.prepend_run("Continuous Claude", f"p{i}", RunStatus.RUNNING)
    runs = store.load().runs
    assert [r.prompt for r in runs] == ["p2", "p1", "p0"]
    assert runs[0].started_at.endswith("Z")


def test_update_run_sets_outcome(tmp_path: Path) -> None:
    store = StateStore(tmp_path / "state.json")
    run_id = store.prepend_run("Auto-Claude", "write spec", RunStatus.RUNNING)

    assert store.update_run(run_id, RunStatus.COMPLETED, "done") is True
    run = store.load().runs[0]
    assert run.status == RunStatus.COMPLETED
    assert run.output == "done"
    assert store.update_run("missing", RunStatus.FAILED, "x") is False


def test_save_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("")
    store = StateStore(blocker / "state.json")

    # Parent path is a regular file, so the write fails
    tool = store.upsert_tool("acfs", ToolStatus.RUNNING, "x")
    assert tool.status == ToolStatus.RUNNING
    assert store.save(store.load()) is False
