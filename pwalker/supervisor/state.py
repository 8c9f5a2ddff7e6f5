# Live-handle table for the process supervisor.
# Output is kept separately in OutputStore; a handle leaves this table as soon
# as its process exits while the record stays readable.

from asyncio.subprocess import Process


class ProcessState:
    """
    In-memory table of live subprocess handles keyed by process id.
    Handles never leave the supervisor; callers only see the ids.
    """

    def __init__(self):
        self._processes: dict[str, Process] = {}

    def __contains__(self, process_id: str) -> bool:
        return process_id in self._processes

    def __len__(self) -> int:
        return len(self._processes)

    def register(self, process_id: str, process: Process):
        self._processes[process_id] = process

    def get(self, process_id: str) -> Process | None:
        return self._processes.get(process_id)

    def remove(self, process_id: str):
        if process_id in self._processes:
            del self._processes[process_id]

    def ids(self) -> list[str]:
        return list(self._processes.keys())

    def items(self) -> list[tuple[str, Process]]:
        return list(self._processes.items())
