"""ServerController — supervisor for the single managed server process.

Owns one ProcessSlot guarded by one asyncio.Lock. Request handlers call
start/stop/status; a background supervisor task per spawned process waits
for exit and resets the slot. Every slot mutation, from handlers and from
the supervisor, happens under the same lock.

Stop is a request, not a guarantee: it writes the stop command to the
server console and returns. The slot flips to stopped only when the
supervisor observes the exit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mcctl.audit import AuditTrail
from mcctl.config import MCCtlSettings
from mcctl.events.bus import EventBus
from mcctl.exceptions import InconsistentStateError, SpawnError, StopCommandError
from mcctl.types import ServerStatus, StartOutcome, StopOutcome

_logger = logging.getLogger(__name__)


@dataclass
class ProcessSlot:
    """The one process slot. running, stdin and supervisor change together."""

    running: bool = False
    stdin: asyncio.StreamWriter | None = None
    supervisor: asyncio.Task | None = None
    pid: int | None = None
    started_at: float | None = None

    def fill(self, stdin: asyncio.StreamWriter, supervisor: asyncio.Task, pid: int) -> None:
        self.running = True
        self.stdin = stdin
        self.supervisor = supervisor
        self.pid = pid
        self.started_at = time.time()

    def clear(self) -> None:
        if self.stdin is not None and not self.stdin.is_closing():
            self.stdin.close()
        self.running = False
        self.stdin = None
        self.supervisor = None
        self.pid = None
        self.started_at = None


class ServerController:
    """Start, stop and watch exactly one server subprocess."""

    def __init__(
        self,
        command: list[str],
        workdir: Path,
        stop_command: str = "stop\n",
        event_bus: EventBus | None = None,
        audit_trail: AuditTrail | None = None,
    ) -> None:
        self._command = list(command)
        self._workdir = Path(workdir)
        self._stop_command = stop_command.encode("utf-8")
        self._bus = event_bus
        self._audit = audit_trail
        self._slot = ProcessSlot()
        self._lock = asyncio.Lock()
        self._exited = asyncio.Event()
        self._exited.set()

    @classmethod
    def from_settings(
        cls,
        settings: MCCtlSettings,
        event_bus: EventBus | None = None,
        audit_trail: AuditTrail | None = None,
    ) -> ServerController:
        return cls(
            command=[settings.java_command, *settings.java_args],
            workdir=settings.workdir,
            stop_command=settings.stop_command,
            event_bus=event_bus,
            audit_trail=audit_trail,
        )

    # ── Queries ──────────────────────────────────────────────────

    async def status(self) -> ServerStatus:
        async with self._lock:
            return ServerStatus.RUNNING if self._slot.running else ServerStatus.STOPPED

    async def info(self) -> dict[str, Any]:
        """Snapshot of the slot for health/diagnostic endpoints."""
        async with self._lock:
            slot = self._slot
            uptime = int(time.time() - slot.started_at) if slot.started_at else 0
            return {
                "status": (ServerStatus.RUNNING if slot.running else ServerStatus.STOPPED).value,
                "pid": slot.pid,
                "uptime_s": uptime,
                "stopping": slot.running and slot.stdin is None,
                "command": " ".join(self._command),
                "workdir": str(self._workdir),
            }

    async def wait_stopped(self, timeout: float | None = None) -> bool:
        """Wait until the supervisor has reset the slot. False on timeout."""
        try:
            await asyncio.wait_for(self._exited.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # ── Start ────────────────────────────────────────────────────

    async def start(self) -> StartOutcome:
        """Spawn the server unless one is already running."""
        error = ""
        async with self._lock:
            if self._slot.running:
                outcome = StartOutcome.ALREADY_RUNNING
            else:
                try:
                    proc = await self._spawn()
                except SpawnError as e:
                    _logger.error("Failed to spawn server: %s", e)
                    error = str(e)
                    outcome = StartOutcome.ERROR_SPAWNING
                else:
                    # The supervisor owns proc from here on.
                    supervisor = asyncio.create_task(self._supervise(proc))
                    self._slot.fill(proc.stdin, supervisor, proc.pid)
                    self._exited.clear()
                    outcome = StartOutcome.STARTING
                    pid = proc.pid

        if outcome == StartOutcome.STARTING:
            _logger.info("Server spawned (pid %d)", pid)
            await self._emit("server.spawned", {"os_pid": pid, "command": " ".join(self._command)})
        elif outcome == StartOutcome.ERROR_SPAWNING:
            await self._emit("server.spawn_failed", {"error": error[:300]})
        await self._record("start", outcome.value, success=outcome != StartOutcome.ERROR_SPAWNING,
                           detail=error)
        return outcome

    async def _spawn(self) -> asyncio.subprocess.Process:
        await self._emit("server.spawning", {
            "command": " ".join(self._command),
            "workdir": str(self._workdir),
        })
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                cwd=self._workdir,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(f"{self._command[0]}: {e}") from e
        if proc.stdin is None:
            raise SpawnError("spawned process has no stdin pipe")
        return proc

    # ── Stop ─────────────────────────────────────────────────────

    async def stop(self) -> StopOutcome:
        """Ask the server to stop by writing the stop command to its console."""
        error = ""
        async with self._lock:
            if not self._slot.running:
                return StopOutcome.ALREADY_STOPPED

            stdin = self._slot.stdin
            self._slot.stdin = None
            if stdin is None:
                error = str(InconsistentStateError("server marked running without a stdin handle"))
                _logger.error("Stop failed: %s", error)
                self._reset_locked()
                outcome = StopOutcome.ERROR_NO_STDIN
            else:
                try:
                    await self._send_stop(stdin)
                except StopCommandError as e:
                    error = str(e)
                    _logger.error("Stop failed: %s", e)
                    # Best effort: the OS process is not killed.
                    supervisor = self._slot.supervisor
                    if supervisor is not None:
                        supervisor.cancel()
                    self._reset_locked()
                    outcome = StopOutcome.ERROR_STOPPING
                else:
                    # The supervisor keeps running and clears the slot on exit.
                    self._slot.supervisor = None
                    outcome = StopOutcome.STOPPING_GRACEFULLY

        if outcome == StopOutcome.STOPPING_GRACEFULLY:
            await self._emit("server.stop_requested", {})
        else:
            await self._emit("server.stop_failed", {"outcome": outcome.value, "error": error[:300]})
        await self._record("stop", outcome.value,
                           success=outcome == StopOutcome.STOPPING_GRACEFULLY, detail=error)
        return outcome

    async def _send_stop(self, stdin: asyncio.StreamWriter) -> None:
        try:
            stdin.write(self._stop_command)
            await stdin.drain()
        except (OSError, RuntimeError) as e:
            raise StopCommandError(f"could not write stop command: {e}") from e
        finally:
            stdin.close()

    def _reset_locked(self) -> None:
        self._slot.clear()
        self._exited.set()

    # ── Supervisor ───────────────────────────────────────────────

    async def _supervise(self, proc: asyncio.subprocess.Process) -> None:
        """Wait for exit, then reset the slot whatever caused the exit.

        The slot is only reset while it still belongs to ``proc``; a slot
        already cleared and refilled by a newer start is left alone.
        """
        _logger.info("Supervising server pid %d", proc.pid)
        returncode = await proc.wait()
        _logger.info("Server pid %d exited with code %s", proc.pid, returncode)

        async with self._lock:
            if self._slot.pid == proc.pid:
                self._reset_locked()
            else:
                _logger.info("Slot now owned by pid %s; leaving it as is", self._slot.pid)

        await self._emit("server.exited", {"os_pid": proc.pid, "exit_code": returncode})
        await self._record("exit", str(returncode), success=returncode == 0,
                           os_pid=proc.pid)

    # ── Shutdown ─────────────────────────────────────────────────

    async def shutdown(self, grace_seconds: float = 30.0) -> None:
        """Request a graceful stop and wait up to ``grace_seconds`` for exit."""
        outcome = await self.stop()
        if outcome != StopOutcome.STOPPING_GRACEFULLY:
            return
        if not await self.wait_stopped(timeout=grace_seconds):
            _logger.warning(
                "Server did not exit within %.0fs of the stop command; leaving it running",
                grace_seconds,
            )

    # ── Helpers ──────────────────────────────────────────────────

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        if self._bus:
            await self._bus.emit(topic, data, source="server_controller")

    async def _record(self, action: str, outcome: str, success: bool, detail: str = "",
                      **metadata: Any) -> None:
        if self._audit:
            await self._audit.log_action(action, outcome, success=success, detail=detail,
                                         **metadata)
