"""Per-process accumulation of stdout/stderr chunks and terminal status."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger("pwalker.supervisor.output_store")


class ProcessStatus(str, Enum):
    RUNNING = "running"
    EXITED = "exited"
    FAILED_TO_SPAWN = "failed_to_spawn"


@dataclass
class ProcessRecord:
    """Observation state for one launched process.

    Chunks are append-only per stream. ``exit_code`` and ``spawn_error`` are
    terminal: once set they survive ``clear()``.
    """

    command: str
    args: list[str] = field(default_factory=list)
    cwd: Optional[str] = None
    stdout_chunks: list[str] = field(default_factory=list)
    stderr_chunks: list[str] = field(default_factory=list)
    exit_code: Optional[int] = None
    spawn_error: Optional[str] = None

    def clear(self) -> None:
        self.stdout_chunks = []
        self.stderr_chunks = []


@dataclass(frozen=True)
class ProcessOutput:
    """Snapshot returned to readers."""

    process_id: str
    status: ProcessStatus
    stdout: str
    stderr: str
    exit_code: Optional[int] = None
    spawn_error: Optional[str] = None


class OutputStore:
    """Identifier-keyed ProcessRecord table.

    Writers that target an identifier with no record are silently ignored, so
    events arriving after an explicit discard never re-create state.
    """

    def __init__(self) -> None:
        self._records: dict[str, ProcessRecord] = {}

    def __contains__(self, process_id: str) -> bool:
        return process_id in self._records

    def create(self, process_id: str, record: ProcessRecord) -> ProcessRecord:
        self._records[process_id] = record
        return record

    def discard(self, process_id: str) -> bool:
        return self._records.pop(process_id, None) is not None

    def append_stdout(self, process_id: str, chunk: str) -> None:
        record = self._records.get(process_id)
        if record is not None and chunk:
            record.stdout_chunks.append(chunk)

    def append_stderr(self, process_id: str, chunk: str) -> None:
        record = self._records.get(process_id)
        if record is not None and chunk:
            record.stderr_chunks.append(chunk)

    def mark_exited(self, process_id: str, exit_code: int) -> None:
        record = self._records.get(process_id)
        if record is None:
            logger.debug("Exit for discarded process %s ignored", process_id)
            return
        if record.exit_code is None:
            record.exit_code = exit_code

    def mark_spawn_failed(self, process_id: str, error: str) -> None:
        record = self._records.get(process_id)
        if record is not None and record.spawn_error is None:
            record.spawn_error = error

    def snapshot(
        self,
        process_id: str,
        *,
        running: bool,
        clear: bool = False,
    ) -> ProcessOutput | None:
        """Concatenate buffered chunks and derive status.

        ``running`` is supplied by the caller from the live-handle table. A
        record with no live handle and no exit code is still being spawned
        and reads as running.
        """
        record = self._records.get(process_id)
        if record is None:
            return None
        if record.spawn_error is not None:
            status = ProcessStatus.FAILED_TO_SPAWN
        elif running or record.exit_code is None:
            status = ProcessStatus.RUNNING
        else:
            status = ProcessStatus.EXITED
        output = ProcessOutput(
            process_id=process_id,
            status=status,
            stdout="".join(record.stdout_chunks),
            stderr="".join(record.stderr_chunks),
            exit_code=record.exit_code,
            spawn_error=record.spawn_error,
        )
        if clear:
            record.clear()
        return output
