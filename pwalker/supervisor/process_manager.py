"""Launch, observe and terminate child processes by supervisor-assigned id."""

from __future__ import annotations

import asyncio
import codecs
import logging
import uuid
from asyncio.subprocess import DEVNULL, PIPE, Process
from typing import Callable, Optional, Sequence

from pwalker.errors import ProcessSpawnError

from .output_store import OutputStore, ProcessOutput, ProcessRecord
from .state import ProcessState

logger = logging.getLogger("pwalker.supervisor.process_manager")

READ_CHUNK_SIZE = 4096
SHUTDOWN_GRACE_SECONDS = 2.0


class ProcessSupervisor:
    """Owns the live-handle table and the output records.

    All mutation runs on one event loop: external calls and the per-process
    monitor tasks interleave only at ``await`` points.
    """

    def __init__(
        self,
        *,
        read_chunk_size: int = READ_CHUNK_SIZE,
        on_fault: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.handles = ProcessState()
        self.records = OutputStore()
        self.read_chunk_size = read_chunk_size
        self.on_fault = on_fault
        self._monitors: dict[str, asyncio.Task] = {}

    async def launch(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Optional[str] = None,
    ) -> str:
        """Spawn ``command`` and return its id.

        A spawn failure does not raise: the id is returned and the record
        carries the failure instead.
        """
        process_id = str(uuid.uuid4())
        arg_list = [str(arg) for arg in args]
        self.records.create(process_id, ProcessRecord(command=command, args=arg_list, cwd=cwd))

        try:
            process = await self._spawn(command, arg_list, cwd)
        except ProcessSpawnError as exc:
            logger.warning("Failed to spawn process %s (%s): %s", process_id, command, exc.reason)
            self.records.mark_spawn_failed(process_id, exc.reason)
            return process_id

        self.handles.register(process_id, process)
        logger.info("Launched process %s (pid=%s): %s %s", process_id, process.pid, command, " ".join(arg_list))

        monitor = asyncio.create_task(self._monitor(process_id, process), name=f"pwalker-monitor-{process_id}")
        self._monitors[process_id] = monitor
        monitor.add_done_callback(lambda task, pid=process_id: self._on_monitor_done(pid, task))
        return process_id

    async def _spawn(self, command: str, args: list[str], cwd: Optional[str]) -> Process:
        try:
            return await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=cwd,
                stdin=DEVNULL,
                stdout=PIPE,
                stderr=PIPE,
            )
        except (OSError, ValueError) as exc:
            raise ProcessSpawnError(command, str(exc)) from exc

    async def _pump(self, reader: asyncio.StreamReader, process_id: str, append: Callable[[str, str], None]) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await reader.read(self.read_chunk_size)
            if not data:
                break
            append(process_id, decoder.decode(data))
        append(process_id, decoder.decode(b"", final=True))

    async def _monitor(self, process_id: str, process: Process) -> None:
        # Exit is recorded only after both streams hit EOF, so a reader that
        # sees Exited has seen all output.
        await asyncio.gather(
            self._pump(process.stdout, process_id, self.records.append_stdout),
            self._pump(process.stderr, process_id, self.records.append_stderr),
        )
        exit_code = await process.wait()
        self.records.mark_exited(process_id, exit_code)
        self.handles.remove(process_id)
        logger.info("Process %s exited with code %s", process_id, exit_code)

    def _on_monitor_done(self, process_id: str, task: asyncio.Task) -> None:
        self._monitors.pop(process_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("Monitor for process %s crashed: %s", process_id, exc)
        if self.on_fault is not None:
            self.on_fault(exc)

    def read_output(self, process_id: str, clear: bool = False) -> ProcessOutput | None:
        return self.records.snapshot(process_id, running=process_id in self.handles, clear=clear)

    def kill(self, process_id: str, keep_output: bool = False) -> bool:
        """Request termination without waiting for it.

        Returns False when no live handle exists or the child has already
        exited (its handle may linger while a grandchild holds a pipe open).
        Without ``keep_output`` the record is dropped right away; the eventual
        exit event is then ignored.
        """
        process = self.handles.get(process_id)
        if process is None:
            return False
        if not self._terminate(process_id, process):
            return False
        if not keep_output:
            self.records.discard(process_id)
        logger.info("Kill requested for process %s (keep_output=%s)", process_id, keep_output)
        return True

    def _terminate(self, process_id: str, process: Process) -> bool:
        if process.returncode is not None:
            return False
        try:
            process.terminate()
        except ProcessLookupError:
            logger.debug("Process %s already gone", process_id)
            return False
        return True

    async def wait(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def live_ids(self) -> list[str]:
        return self.handles.ids()

    def terminate_all(self) -> int:
        """Send a termination request to every live handle.

        Safe to call repeatedly and from outside the event loop. Individual
        failures are logged and skipped.
        """
        signalled = 0
        for process_id, process in self.handles.items():
            try:
                if self._terminate(process_id, process):
                    signalled += 1
            except Exception as exc:
                logger.error("Failed to terminate process %s: %s", process_id, exc)
        if signalled:
            logger.info("Sent termination to %d live processes", signalled)
        return signalled

    async def drain(self, timeout: float = SHUTDOWN_GRACE_SECONDS) -> None:
        """Wait for monitor tasks to finish; cancel whatever is left."""
        pending = [task for task in self._monitors.values() if not task.done()]
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()

    async def shutdown(self, grace_seconds: float = SHUTDOWN_GRACE_SECONDS) -> None:
        """Terminate all children, escalate to SIGKILL after the grace period."""
        active = self.live_ids()
        logger.info("Shutting down %d live processes...", len(active))
        self.terminate_all()
        pending = [task for task in self._monitors.values() if not task.done()]
        if pending:
            await asyncio.wait(pending, timeout=grace_seconds)

        for process_id, process in self.handles.items():
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass  # exited between checks
                except Exception as exc:
                    logger.error("Failed to kill process %s: %s", process_id, exc)
        await self.drain(timeout=grace_seconds)
