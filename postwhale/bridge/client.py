"""Async line-delimited JSON bridge to the backend worker process over stdio."""

from __future__ import annotations

import asyncio
import os
import threading
from typing import Any

from loguru import logger

from postwhale.bridge.codec import DEFAULT_MAX_FRAME_BYTES, FrameCodec, encode
from postwhale.bridge.correlation import CorrelationTable
from postwhale.bridge.errors import (
    RemoteError,
    WorkerStartError,
    WorkerTerminatedError,
    WorkerWriteFailureError,
)
from postwhale.bridge.protocol import CallEnvelope, ResponseEnvelope
from postwhale.config.schema import BridgeConfig

DEFAULT_TIMEOUT_SECONDS = 30.0
_READ_CHUNK = 64 * 1024
_EXIT_GRACE_SECONDS = 1.0


class WorkerBridge:
    """
    Owns one worker process and multiplexes concurrent calls over its stdio.

    Each process generation gets a fresh correlation table and frame codec; call
    ids keep counting across generations so they stay unique for the bridge's
    lifetime.
    """

    def __init__(
        self,
        command: list[str],
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
        shutdown_timeout_seconds: float = 2.0,
        auto_restart: bool = False,
    ):
        if not command:
            raise ValueError("worker command must not be empty")
        self.command = list(command)
        self.timeout_seconds = timeout_seconds
        self.cwd = cwd
        self.env = dict(env or {})
        self.max_frame_bytes = max_frame_bytes
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self.auto_restart = auto_restart
        self._proc: asyncio.subprocess.Process | None = None
        self._table = CorrelationTable()
        self._codec = FrameCodec(max_frame_bytes)
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()
        self._start_lock = asyncio.Lock()
        self._next_call_id = 0
        self._generation = 0
        self._closing = False
        self._started_once = False
        self._last_returncode: int | None = None

    @classmethod
    def from_config(cls, config: BridgeConfig) -> "WorkerBridge":
        return cls(
            config.command,
            timeout_seconds=config.timeout_seconds,
            cwd=config.cwd,
            env=config.env,
            max_frame_bytes=config.max_frame_bytes,
            shutdown_timeout_seconds=config.shutdown_timeout_ms / 1000.0,
        )

    @property
    def table(self) -> CorrelationTable:
        return self._table

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def running(self) -> bool:
        return (
            self._proc is not None
            and self._proc.returncode is None
            and self._reader_task is not None
            and not self._reader_task.done()
        )

    async def __aenter__(self) -> "WorkerBridge":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    async def start(self) -> None:
        """Spawn the worker if it is not already running."""
        async with self._start_lock:
            if self.running:
                return
            if self._proc is not None:
                await self._teardown(reason="replaced by new worker")
            env = os.environ.copy()
            env.update(self.env)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *self.command,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=self.cwd,
                    env=env,
                )
            except OSError as exc:
                raise WorkerStartError(self.command, str(exc)) from exc
            self._generation += 1
            self._proc = proc
            self._table = CorrelationTable()
            self._codec = FrameCodec(self.max_frame_bytes)
            self._closing = False
            self._started_once = True
            self._last_returncode = None
            self._reader_task = asyncio.create_task(
                self._reader_loop(proc, self._table, self._codec),
                name=f"worker-reader-{self._generation}",
            )
            self._stderr_task = asyncio.create_task(
                self._stderr_loop(proc),
                name=f"worker-stderr-{self._generation}",
            )
            logger.info("Started worker pid={} generation={}: {}", proc.pid, self._generation, " ".join(self.command))

    async def restart(self) -> None:
        """Stop the current worker (rejecting its pending calls) and start a new one."""
        await self.shutdown()
        await self.start()

    async def shutdown(self, timeout: float | None = None) -> None:
        """Reject pending calls, stop the worker and its loops. Safe to call twice."""
        async with self._start_lock:
            await self._teardown(reason="bridge shut down", timeout=timeout)

    async def invoke(self, action: str, data: Any = None, *, timeout: float | None = None) -> Any:
        """
        Send one action to the worker and await its result.

        Raises RequestTimeoutError, WorkerWriteFailureError, WorkerTerminatedError
        or RemoteError; each call settles exactly once.
        """
        await self._ensure_started()
        proc = self._proc
        if proc is None or not self.running:
            raise WorkerTerminatedError(self._last_returncode, "worker is not running")
        timeout_seconds = self.timeout_seconds if timeout is None else timeout
        call_id = self._allocate_call_id()
        try:
            frame = encode(CallEnvelope(action=action, payload=data, call_id=call_id))
        except (TypeError, ValueError) as exc:
            raise WorkerWriteFailureError(action, f"payload is not JSON serializable: {exc}") from exc

        table = self._table
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        table.register(call_id, future, timeout_seconds, action=action)
        logger.debug("-> worker call {} {}", call_id, action)
        # A worker that stops reading stdin blocks drain(); the call's deadline
        # still has to win, so the write races the future.
        write = asyncio.create_task(self._write_frame(proc, frame), name=f"worker-write-{call_id}")
        try:
            await asyncio.wait({write, future}, return_when=asyncio.FIRST_COMPLETED)
            if not write.done():
                logger.warning("Call {} ({}) settled before its frame was flushed", call_id, action)
                write.cancel()
            elif write.exception() is not None:
                exc = write.exception()
                logger.error("Write to worker failed for call {} ({}): {}", call_id, action, exc)
                table.resolve(call_id, WorkerWriteFailureError(action, str(exc) or exc.__class__.__name__))
            return await future
        except asyncio.CancelledError:
            write.cancel()
            table.discard(call_id)
            raise

    def status(self) -> dict[str, Any]:
        proc = self._proc
        return {
            "running": self.running,
            "pid": proc.pid if proc else None,
            "returncode": proc.returncode if proc else self._last_returncode,
            "generation": self._generation,
            "pending": len(self._table),
            "command": list(self.command),
        }

    async def _ensure_started(self) -> None:
        if self.running:
            return
        if not self._started_once or self.auto_restart:
            await self.start()

    def _allocate_call_id(self) -> int:
        self._next_call_id += 1
        return self._next_call_id

    async def _write_frame(self, proc: asyncio.subprocess.Process, frame: bytes) -> None:
        stdin = proc.stdin
        if stdin is None or stdin.is_closing():
            raise BrokenPipeError("worker stdin is closed")
        async with self._write_lock:
            stdin.write(frame)
            await stdin.drain()

    async def _reader_loop(
        self,
        proc: asyncio.subprocess.Process,
        table: CorrelationTable,
        codec: FrameCodec,
    ) -> None:
        reason = ""
        stdout = proc.stdout
        try:
            if stdout is None:
                reason = "worker stdout is unavailable"
            else:
                while True:
                    chunk = await stdout.read(_READ_CHUNK)
                    if not chunk:
                        break
                    for envelope in codec.feed(chunk):
                        self._settle(table, envelope)
        except asyncio.CancelledError:
            table.drain_all(WorkerTerminatedError(proc.returncode, "bridge shut down"))
            raise
        except Exception as exc:
            reason = f"stdout read failed: {exc}"
            logger.error("Worker stdout read failed: {}", exc)
        returncode = await self._wait_exit(proc)
        self._last_returncode = returncode
        table.drain_all(WorkerTerminatedError(returncode, reason))
        if self._closing:
            logger.info("Worker pid={} exited with code {}", proc.pid, returncode)
        else:
            logger.warning("Worker pid={} exited unexpectedly with code {}", proc.pid, returncode)

    def _settle(self, table: CorrelationTable, envelope: ResponseEnvelope) -> None:
        entry = table.get(envelope.call_id)
        if entry is None:
            logger.debug("Ignoring response for settled or unknown call {}", envelope.call_id)
            return
        logger.debug("<- worker call {} {} ok={}", envelope.call_id, entry.action, envelope.ok)
        if envelope.ok:
            table.resolve(envelope.call_id, envelope.result)
        else:
            table.resolve(envelope.call_id, RemoteError(envelope.error_message or "", action=entry.action))

    async def _stderr_loop(self, proc: asyncio.subprocess.Process) -> None:
        stderr = proc.stderr
        if stderr is None:
            return
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                # Over-long line; skip a chunk and keep logging.
                line = await stderr.read(_READ_CHUNK)
            if not line:
                return
            text = line.decode("utf-8", errors="replace").strip()
            if text:
                logger.debug("[worker] {}", text)

    async def _wait_exit(self, proc: asyncio.subprocess.Process) -> int | None:
        try:
            return await asyncio.wait_for(proc.wait(), timeout=_EXIT_GRACE_SECONDS)
        except asyncio.TimeoutError:
            return proc.returncode

    async def _teardown(self, *, reason: str, timeout: float | None = None) -> None:
        proc = self._proc
        if proc is None:
            return
        self._closing = True
        self._table.drain_all(WorkerTerminatedError(proc.returncode, reason))
        wait_seconds = self.shutdown_timeout_seconds if timeout is None else timeout
        stdin = proc.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()
        if proc.returncode is None:
            try:
                await asyncio.wait_for(proc.wait(), timeout=wait_seconds)
            except asyncio.TimeoutError:
                try:
                    proc.terminate()
                    await asyncio.wait_for(proc.wait(), timeout=wait_seconds)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    logger.warning("Worker pid={} ignored terminate; killing", proc.pid)
                    proc.kill()
                    await proc.wait()
        self._last_returncode = proc.returncode
        tasks = [t for t in (self._reader_task, self._stderr_task) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reader_task = None
        self._stderr_task = None
        self._proc = None


_bridge_lock = threading.Lock()
_bridge: WorkerBridge | None = None


def configure_bridge(config: BridgeConfig) -> WorkerBridge:
    """Install the process-wide bridge built from config (replacing any previous one)."""
    global _bridge
    with _bridge_lock:
        _bridge = WorkerBridge.from_config(config)
        return _bridge


def get_bridge() -> WorkerBridge:
    """Return the process-wide bridge, building it from the loaded config on first use."""
    global _bridge
    with _bridge_lock:
        if _bridge is None:
            from postwhale.config.access import get_config

            _bridge = WorkerBridge.from_config(get_config().bridge)
        return _bridge


def reset_bridge() -> None:
    """Forget the process-wide bridge without touching its process."""
    global _bridge
    with _bridge_lock:
        _bridge = None
