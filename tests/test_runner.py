import asyncio
import os
import signal
import subprocess
from pathlib import Path

import pytest

from agentic_dashboard.errors import CommandError, ExternalProcessError
from agentic_dashboard.process_manager import (
    ProcessRunner,
    RingBuffer,
    is_alive,
    run_as_user,
    run_command,
    terminate_group,
    user_command,
)


def test_ring_buffer_keeps_tail() -> None:
    buf = RingBuffer(max_size=10)
    for chunk in ("abcdef", "ghijkl", "mnop"):
        buf.append(chunk)
    assert buf.tail() == "ghijklmnop"
    assert buf.tail(3) == "nop"
    assert buf.tail(0) == ""


def test_is_alive() -> None:
    assert is_alive(os.getpid()) is True

    proc = subprocess.Popen(["true"])
    proc.wait()
    assert is_alive(proc.pid) is False

    for bogus in (0, -1, None, "123", True, 2**64):
        assert is_alive(bogus) is False


@pytest.mark.asyncio
async def test_spawn_tees_output_and_reports_exit(tmp_path: Path) -> None:
    runner = ProcessRunner(tmp_path / "logs")
    exits = []

    async def on_exit(code: int, output: str) -> None:
        exits.append((code, output))

    handle = await runner.spawn(
        "sh",
        ["-c", "echo hello; echo oops >&2; echo $GREETING; exit 3"],
        tool="continuous-claude",
        cwd=str(tmp_path),
        env={"GREETING": "from-env"},
        on_exit=on_exit,
    )
    assert isinstance(handle.pid, int)
    assert runner.latest("continuous-claude") is handle

    assert await handle.wait() == 3
    assert exits and exits[0][0] == 3
    assert "hello" in exits[0][1] and "from-env" in exits[0][1]

    log_file = Path(handle.log_file)
    assert log_file.parent == tmp_path / "logs"
    assert log_file.name.startswith("continuous-claude-")
    assert log_file.suffix == ".log"
    text = log_file.read_text()
    assert "hello" in text and "oops" in text

    out = runner.get_output("continuous-claude")
    assert out["running"] is False
    assert out["exit_code"] == 3


@pytest.mark.asyncio
async def test_spawn_missing_binary_raises(tmp_path: Path) -> None:
    runner = ProcessRunner(tmp_path / "logs")
    with pytest.raises(ExternalProcessError):
        await runner.spawn("definitely-not-a-real-binary-xyz", tool="auto-claude")
    assert runner.latest("auto-claude") is None


@pytest.mark.asyncio
async def test_terminate_group_reaches_grandchildren(tmp_path: Path) -> None:
    runner = ProcessRunner(tmp_path / "logs")
    # sleep inherits the output pipe; a survivor would hold it open past the
    # 5s reader grace period
    handle = await runner.spawn("sh", ["-c", "sleep 30 & wait"], tool="automaker")

    assert terminate_group(handle.pid) is True
    assert await asyncio.wait_for(handle.wait(), timeout=4) == -signal.SIGTERM
    assert terminate_group(handle.pid) is False


def test_get_output_unknown_tool(tmp_path: Path) -> None:
    with pytest.raises(KeyError):
        ProcessRunner(tmp_path).get_output("automaker")


@pytest.mark.asyncio
async def test_run_command_captures_output() -> None:
    result = await run_command("echo hi; echo err >&2")
    assert result.returncode == 0
    assert result.stdout.strip() == "hi"
    assert result.stderr.strip() == "err"


@pytest.mark.asyncio
async def test_run_command_failure_carries_streams() -> None:
    with pytest.raises(CommandError) as info:
        await run_command("echo partial; exit 2")
    assert info.value.returncode == 2
    assert "partial" in info.value.stdout

    result = await run_command("exit 2", check=False)
    assert result.returncode == 2


@pytest.mark.asyncio
async def test_run_command_timeout() -> None:
    with pytest.raises(CommandError, match="timed out"):
        await run_command("sleep 5", timeout=0.2)


def test_user_command_wrapping() -> None:
    assert user_command("ls", "").startswith("bash -c ")
    wrapped = user_command("tmux ls", "ubuntu")
    assert wrapped.startswith("sudo -u ubuntu -i bash -c ")
    assert "tmux ls" in wrapped
    assert ".cargo/bin" in wrapped


@pytest.mark.asyncio
async def test_run_as_user_without_user_runs_locally() -> None:
    result = await run_as_user("echo \"it's fine\"", None)
    assert result.stdout.strip() == "it's fine"
