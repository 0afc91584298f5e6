"""
Relay process supervisor for Relaycast.

Owns the single FFmpeg fan-out subprocess of one session.  Ingested
media chunks are written to the subprocess's stdin; an asyncio task
watches for the process exiting on its own and a second task drains its
stderr into the structured log.  Every lifecycle transition is reported
as a ``RelayStatus`` through the ``on_status`` callback.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from rc_common.errors import RelayRuntimeFailure, RelaySpawnFailure
from rc_common.metrics import BYTES_INGESTED, CHUNKS_INGESTED, RELAY_FAILURES, RELAY_SPAWNS
from rc_common.models.relay import RelayState, RelayStatus

from relay.command import EncoderProfile, build_relay_command
from relay.destinations import DestinationSpec

logger = structlog.get_logger()

StatusCallback = Callable[[RelayStatus], Awaitable[None]]
ProcessFactory = Callable[..., Awaitable[Any]]

DEFAULT_STOP_TIMEOUT_S: float = 5.0
_STDERR_READ_SIZE: int = 4096


class RelaySupervisor:
    """Runs at most one relay subprocess for a session.

    ``start``, ``stop`` and the exit watcher serialize on an internal
    lock.  Whichever of them releases a process first wins; the others
    find the handle already gone and do nothing, so a process is never
    released or reported twice.

    Args:
        session_id: Owning session, used for logging context.
        on_status: Async callback receiving every state transition.
        profile: Encoding parameters for the FFmpeg command.
        ffmpeg_path: FFmpeg executable.
        stop_timeout: Seconds to wait after SIGINT before killing.
        process_factory: Replacement for ``asyncio.create_subprocess_exec``.
    """

    def __init__(
        self,
        session_id: str,
        *,
        on_status: StatusCallback | None = None,
        profile: EncoderProfile | None = None,
        ffmpeg_path: str = "ffmpeg",
        stop_timeout: float = DEFAULT_STOP_TIMEOUT_S,
        process_factory: ProcessFactory | None = None,
    ) -> None:
        self._session_id = session_id
        self._on_status = on_status
        self._profile = profile or EncoderProfile()
        self._ffmpeg_path = ffmpeg_path
        self._stop_timeout = stop_timeout
        self._create_process = process_factory or asyncio.create_subprocess_exec
        self._lock = asyncio.Lock()
        self._process: Any | None = None
        self._destinations: DestinationSpec | None = None
        self._watcher: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._state = RelayState.IDLE
        self._log = logger.bind(session_id=session_id)

    # ── public API ──

    @property
    def state(self) -> RelayState:
        """Most recently reported state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """``True`` while a subprocess handle is held."""
        return self._process is not None

    @property
    def pid(self) -> int | None:
        """PID of the live subprocess, if any."""
        return getattr(self._process, "pid", None)

    @property
    def destinations(self) -> DestinationSpec | None:
        """Destinations of the live subprocess, if any."""
        return self._destinations if self._process is not None else None

    async def start(self, spec: DestinationSpec) -> bool:
        """Spawn a relay for *spec*, replacing any running one.

        Args:
            spec: Validated destinations.

        Returns:
            ``True`` if the subprocess is now active, ``False`` if the
            spawn failed (already reported as ``failed``).
        """
        async with self._lock:
            if await self._terminate_locked():
                self._log.info("relay_previous_process_stopped")

            count = len(spec.urls) if spec is not None else 0
            await self._report(RelayState.STARTING, f"Starting relay to {count} destination(s)")
            try:
                process = await self._spawn(spec)
            except RelaySpawnFailure as exc:
                RELAY_FAILURES.labels(kind="spawn").inc()
                self._log.error("relay_spawn_failed", error=str(exc))
                await self._report(RelayState.FAILED, str(exc), error=exc.code)
                return False

            self._process = process
            self._destinations = spec
            self._stderr_task = asyncio.create_task(
                self._drain_stderr(process),
                name=f"relay-stderr-{self._session_id}",
            )
            self._watcher = asyncio.create_task(
                self._watch_exit(process),
                name=f"relay-exit-{self._session_id}",
            )
            RELAY_SPAWNS.inc()
            self._log.info("relay_spawned", pid=self.pid, destinations=count)
            await self._report(RelayState.ACTIVE, f"Streaming to {count} destination(s)")
            return True

    async def ingest(self, chunk: bytes | bytearray | memoryview) -> bool:
        """Write *chunk* to the relay's stdin and wait for the pipe to drain.

        Returns:
            ``True`` if the chunk was written; ``False`` if it was dropped
            because no relay is running or the relay has already exited.
        """
        if not self.write(chunk):
            return False
        return await self.drain()

    def write(self, chunk: bytes | bytearray | memoryview) -> bool:
        """Queue *chunk* on the relay's stdin without waiting.

        Writes are buffered in call order, so callers that serialize
        ``write`` keep chunk order even when draining concurrently.
        """
        process = self._process
        if process is None or process.returncode is not None or not chunk:
            return False
        stdin = process.stdin
        if stdin is None or stdin.is_closing():
            return False

        try:
            stdin.write(bytes(chunk))
        except (BrokenPipeError, ConnectionResetError) as exc:
            self._log.debug("relay_write_after_exit", error=str(exc))
            return False

        CHUNKS_INGESTED.inc()
        BYTES_INGESTED.inc(len(chunk))
        return True

    async def drain(self) -> bool:
        """Wait until the relay's stdin buffer is flushed.

        Returns once the process is released even if the child stopped
        reading, since terminating it breaks the pipe.

        Returns:
            ``False`` if the relay went away or the pipe broke.
        """
        process = self._process
        if process is None or process.stdin is None:
            return False
        try:
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            self._log.debug("relay_write_after_exit", error=str(exc))
            return False
        return self._process is process

    async def stop(self) -> None:
        """Terminate the relay and report ``stopped``.  Safe to repeat."""
        async with self._lock:
            if await self._terminate_locked():
                await self._report(RelayState.STOPPED, "Stream stopped")

    # ── internal ──

    async def _spawn(self, spec: DestinationSpec | None) -> Any:
        if spec is None or not spec.urls:
            raise RelaySpawnFailure("No valid destination URLs provided")
        argv = build_relay_command(spec, profile=self._profile, ffmpeg_path=self._ffmpeg_path)
        try:
            return await self._create_process(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise RelaySpawnFailure(f"Could not start {argv[0]}: {exc}") from exc

    async def _terminate_locked(self) -> bool:
        """Release the current process.  Caller must hold ``self._lock``.

        Returns:
            ``True`` if there was a process to release.
        """
        process = self._process
        if process is None:
            return False
        self._process = None
        self._destinations = None

        watcher, self._watcher = self._watcher, None
        if watcher is not None and not watcher.done():
            watcher.cancel()
            try:
                await watcher
            except asyncio.CancelledError:
                pass

        stdin = process.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()
        if process.returncode is None:
            try:
                process.send_signal(signal.SIGINT)
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self._stop_timeout)
            except asyncio.TimeoutError:
                self._log.warning("relay_stop_timeout", timeout_s=self._stop_timeout)
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        await self._close_stdin(process)
        await self._cancel_stderr()
        self._log.info("relay_process_released", returncode=process.returncode)
        return True

    async def _watch_exit(self, process: Any) -> None:
        returncode = await process.wait()
        async with self._lock:
            if self._process is not process:
                return
            self._process = None
            self._destinations = None
            self._watcher = None
            await self._close_stdin(process)
            await self._cancel_stderr()

            if returncode == 0:
                self._log.info("relay_exited", returncode=returncode)
                await self._report(RelayState.STOPPED, "Stream ended")
                return

            failure = RelayRuntimeFailure(returncode)
            RELAY_FAILURES.labels(kind="runtime").inc()
            self._log.error("relay_crashed", returncode=returncode)
            await self._report(RelayState.FAILED, str(failure), error=failure.code)

    async def _close_stdin(self, process: Any) -> None:
        """Close stdin and wait, bounded, for the pipe to shut."""
        stdin = process.stdin
        if stdin is None:
            return
        if not stdin.is_closing():
            stdin.close()
        try:
            await asyncio.wait_for(stdin.wait_closed(), timeout=self._stop_timeout)
        except asyncio.TimeoutError:
            self._log.warning("relay_stdin_close_timeout", timeout_s=self._stop_timeout)
        except (BrokenPipeError, ConnectionResetError):
            pass

    async def _cancel_stderr(self) -> None:
        task, self._stderr_task = self._stderr_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _drain_stderr(self, process: Any) -> None:
        stream = process.stderr
        if stream is None:
            return
        while True:
            data = await stream.read(_STDERR_READ_SIZE)
            if not data:
                return
            for line in data.decode(errors="replace").splitlines():
                if line.strip():
                    self._log.debug("relay_ffmpeg_output", line=line.rstrip())

    async def _report(self, state: RelayState, message: str, *, error: str | None = None) -> None:
        self._state = state
        self._log.info("relay_state_changed", state=state.value, message=message)
        if self._on_status is None:
            return
        status = RelayStatus(state=state, message=message, error=error)
        try:
            await self._on_status(status)
        except Exception:  # noqa: BLE001
            self._log.exception("relay_status_callback_failed", state=state.value)
