"""End-to-end tests for WorkerBridge against the stand-in worker process."""

import asyncio
import sys

import pytest

from postwhale.bridge.client import WorkerBridge, configure_bridge, get_bridge, reset_bridge
from postwhale.bridge.errors import (
    RemoteError,
    RequestTimeoutError,
    WorkerStartError,
    WorkerTerminatedError,
    WorkerWriteFailureError,
)
from postwhale.config.schema import BridgeConfig

pytestmark = pytest.mark.subprocess


@pytest.mark.asyncio
async def test_invoke_round_trip(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        result = await bridge.invoke("echo", {"path": "/tmp/repo", "n": [1, 2]})
        assert result == {"path": "/tmp/repo", "n": [1, 2]}
        assert len(bridge.table) == 0


@pytest.mark.asyncio
async def test_invoke_starts_worker_lazily(worker_command):
    bridge = WorkerBridge(worker_command, timeout_seconds=5.0)
    try:
        assert not bridge.running
        assert await bridge.invoke("echo", "hi") == "hi"
        assert bridge.running
        assert bridge.generation == 1
    finally:
        await bridge.shutdown()


@pytest.mark.asyncio
async def test_concurrent_calls_complete_out_of_order(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        order: list[str] = []

        async def call(action, data):
            result = await bridge.invoke(action, data)
            order.append(data["tag"])
            return result

        slow, fast = await asyncio.gather(
            call("slow", {"seconds": 0.3, "tag": "slow"}),
            call("echo", {"tag": "fast"}),
        )
        assert slow["tag"] == "slow"
        assert fast["tag"] == "fast"
        assert order == ["fast", "slow"]


@pytest.mark.asyncio
async def test_many_concurrent_calls_are_correlated(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        results = await asyncio.gather(*(bridge.invoke("echo", {"i": i}) for i in range(50)))
        assert [r["i"] for r in results] == list(range(50))


@pytest.mark.asyncio
async def test_remote_error_message_is_verbatim(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        with pytest.raises(RemoteError) as exc_info:
            await bridge.invoke("fail", {"message": "repository not found: 12"})
        assert exc_info.value.message == "repository not found: 12"
        assert exc_info.value.code == "REMOTE_ERROR"
        assert exc_info.value.details["action"] == "fail"


@pytest.mark.asyncio
async def test_unknown_action_is_a_remote_error(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        with pytest.raises(RemoteError, match="Unknown action: nope"):
            await bridge.invoke("nope")


@pytest.mark.asyncio
async def test_response_without_data_field(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        assert await bridge.invoke("legacy") == {"v": 1}


@pytest.mark.asyncio
async def test_malformed_lines_do_not_break_the_stream(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        assert await bridge.invoke("garbage", {"x": 1}) == {"x": 1}
        assert await bridge.invoke("echo", 2) == 2


@pytest.mark.asyncio
async def test_fragmented_reply_is_reassembled(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        payload = {"body": "x" * 500, "headers": {"Content-Type": "application/json"}}
        assert await bridge.invoke("split", payload) == payload


@pytest.mark.asyncio
async def test_stderr_output_does_not_interfere(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        assert await bridge.invoke("stderr", {"text": "warming up"}) == {"text": "warming up"}


@pytest.mark.asyncio
async def test_silent_worker_times_out_and_bridge_stays_usable(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        with pytest.raises(RequestTimeoutError) as exc_info:
            await bridge.invoke("silent", timeout=0.1)
        assert "silent" in exc_info.value.message
        assert len(bridge.table) == 0
        assert await bridge.invoke("echo", "still alive") == "still alive"


@pytest.mark.asyncio
async def test_worker_exit_rejects_pending_calls(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        pending = asyncio.create_task(bridge.invoke("silent"))
        await asyncio.sleep(0.05)
        with pytest.raises(WorkerTerminatedError) as exc_info:
            await bridge.invoke("exit", {"code": 3})
        assert exc_info.value.details["returncode"] == 3
        with pytest.raises(WorkerTerminatedError):
            await pending
        assert not bridge.running
        assert len(bridge.table) == 0

        # No automatic respawn by default.
        with pytest.raises(WorkerTerminatedError):
            await bridge.invoke("echo", 1)


@pytest.mark.asyncio
async def test_auto_restart_spawns_next_generation(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0, auto_restart=True) as bridge:
        with pytest.raises(WorkerTerminatedError):
            await bridge.invoke("exit", {"code": 0})
        assert await bridge.invoke("echo", "back") == "back"
        assert bridge.generation == 2


@pytest.mark.asyncio
async def test_restart_rejects_old_calls_and_keeps_ids_unique(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        pending = asyncio.create_task(bridge.invoke("silent"))
        await asyncio.sleep(0.05)
        first_ids = bridge.table.pending_ids()
        await bridge.restart()
        with pytest.raises(WorkerTerminatedError):
            await pending
        assert bridge.generation == 2
        slow = asyncio.create_task(bridge.invoke("slow", {"seconds": 0.2}))
        await asyncio.sleep(0.05)
        assert bridge.table.pending_ids()[0] > first_ids[0]
        assert await slow == {"seconds": 0.2}


@pytest.mark.asyncio
async def test_shutdown_rejects_pending_and_is_idempotent(worker_command):
    bridge = WorkerBridge(worker_command, timeout_seconds=5.0)
    await bridge.start()
    pending = asyncio.create_task(bridge.invoke("silent"))
    await asyncio.sleep(0.05)
    await bridge.shutdown()
    await bridge.shutdown()
    with pytest.raises(WorkerTerminatedError):
        await pending
    assert bridge.status()["running"] is False


@pytest.mark.asyncio
async def test_cancelled_caller_removes_its_entry(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        task = asyncio.create_task(bridge.invoke("silent"))
        await asyncio.sleep(0.05)
        assert len(bridge.table) == 1
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(bridge.table) == 0


@pytest.mark.asyncio
async def test_cancel_during_write_removes_its_entry(worker_command, monkeypatch):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        async def _stalled(proc, frame):
            await asyncio.sleep(1.0)

        monkeypatch.setattr(bridge, "_write_frame", _stalled)
        task = asyncio.create_task(bridge.invoke("echo", "never sent"))
        await asyncio.sleep(0.05)
        assert bridge.status()["pending"] == 1
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert bridge.status()["pending"] == 0


@pytest.mark.asyncio
async def test_worker_not_reading_stdin_still_times_out():
    stuck = [sys.executable, "-c", "import time; time.sleep(30)"]
    bridge = WorkerBridge(stuck, timeout_seconds=0.3, shutdown_timeout_seconds=0.2)
    await bridge.start()
    try:
        big = {"body": "x" * (4 * 1024 * 1024)}
        with pytest.raises(RequestTimeoutError):
            await asyncio.wait_for(bridge.invoke("executeRequest", big), timeout=5.0)
        # The next call is not stuck behind the first one's write.
        with pytest.raises(RequestTimeoutError):
            await asyncio.wait_for(bridge.invoke("echo", "small"), timeout=5.0)
        assert len(bridge.table) == 0
    finally:
        await bridge.shutdown()


@pytest.mark.asyncio
async def test_reply_after_deadline_is_ignored(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        with pytest.raises(RequestTimeoutError):
            await bridge.invoke("slow", {"seconds": 0.3}, timeout=0.05)
        await asyncio.sleep(0.5)
        assert len(bridge.table) == 0
        assert bridge.running
        assert await bridge.invoke("echo", "after") == "after"


@pytest.mark.asyncio
async def test_unserializable_payload_is_a_write_failure(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        with pytest.raises(WorkerWriteFailureError):
            await bridge.invoke("echo", {"when": object()})
        assert len(bridge.table) == 0


@pytest.mark.asyncio
async def test_write_failure_only_affects_that_call(worker_command, monkeypatch):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        original = bridge._write_frame

        async def _broken(proc, frame):
            if b'"broken"' in frame:
                raise BrokenPipeError("pipe closed")
            await original(proc, frame)

        monkeypatch.setattr(bridge, "_write_frame", _broken)
        ok, failed = await asyncio.gather(
            bridge.invoke("echo", "fine"),
            bridge.invoke("broken"),
            return_exceptions=True,
        )
        assert ok == "fine"
        assert isinstance(failed, WorkerWriteFailureError)
        assert "pipe closed" in failed.message
        assert len(bridge.table) == 0


@pytest.mark.asyncio
async def test_missing_executable_raises_start_error(tmp_path):
    bridge = WorkerBridge([str(tmp_path / "no-such-worker")])
    with pytest.raises(WorkerStartError):
        await bridge.invoke("echo")
    assert not bridge.running


@pytest.mark.asyncio
async def test_status_reports_process_state(worker_command):
    async with WorkerBridge(worker_command, timeout_seconds=5.0) as bridge:
        state = bridge.status()
        assert state["running"] is True
        assert isinstance(state["pid"], int)
        assert state["generation"] == 1
        assert state["pending"] == 0
        assert state["command"] == worker_command


def test_empty_command_is_rejected():
    with pytest.raises(ValueError):
        WorkerBridge([])


def test_from_config_maps_fields():
    config = BridgeConfig(command=[sys.executable, "worker.py"], timeout_ms=1500, shutdown_timeout_ms=250, env={"A": "1"})
    bridge = WorkerBridge.from_config(config)
    assert bridge.command == [sys.executable, "worker.py"]
    assert bridge.timeout_seconds == 1.5
    assert bridge.shutdown_timeout_seconds == 0.25
    assert bridge.env == {"A": "1"}


def test_process_wide_bridge_context(isolated_home):
    reset_bridge()
    try:
        default = get_bridge()
        assert default.command == ["postwhale-backend"]
        assert get_bridge() is default

        configured = configure_bridge(BridgeConfig(command=["custom-worker"]))
        assert get_bridge() is configured
        assert configured is not default
    finally:
        reset_bridge()
