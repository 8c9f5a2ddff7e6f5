"""In-memory FIFO of opaque task strings."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Iterable

from pwalker.errors import TaskSourceError

logger = logging.getLogger("pwalker.queue.task_queue")


def parse_task_lines(content: str) -> list[str]:
    """Split raw text into tasks, one per non-empty line."""
    return [line for line in content.splitlines() if line.strip()]


def read_task_file(path: str | Path) -> list[str]:
    """Read a task file without touching any queue."""
    source = Path(path)
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        reason = exc.strerror if isinstance(exc, OSError) and exc.strerror else str(exc)
        logger.warning("Task file %s unreadable: %s", source, reason)
        raise TaskSourceError(str(path), reason) from exc
    return parse_task_lines(content)


class TaskQueue:
    """Unbounded insertion-ordered queue; dequeue never raises."""

    def __init__(self) -> None:
        self._items: deque[str] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, items: Iterable[str]) -> int:
        batch = list(items)
        self._items.extend(batch)
        return len(batch)

    def enqueue_from_source(self, path: str | Path) -> int:
        """Enqueue every non-empty line of a task file.

        The file is read in full first, so a read failure leaves the queue
        unchanged.
        """
        count = self.enqueue(read_task_file(path))
        logger.info("Enqueued %d tasks from %s", count, path)
        return count

    def dequeue(self) -> str | None:
        if not self._items:
            return None
        return self._items.popleft()
