"""Process-wide shutdown hook: no child outlives the supervisor."""

from __future__ import annotations

import atexit
import logging
import os
import signal
import sys
import threading
from types import FrameType, TracebackType
from typing import Any, Callable, Iterable, Optional

from .process_manager import ProcessSupervisor

logger = logging.getLogger("pwalker.supervisor.lifecycle")

GUARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _hard_exit(code: int) -> None:
    logging.shutdown()
    os._exit(code)


class LifecycleGuard:
    """Sweep live children on signals, uncaught faults and interpreter exit.

    Signal handlers are chained: after the sweep a previously installed
    Python-level handler (e.g. the hosting server's graceful-stop hook) runs
    instead of exiting directly. A signal the host had set to ``SIG_IGN`` still
    sweeps but does not exit.
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        *,
        exit_fn: Callable[[int], Any] = _hard_exit,
        signals: Iterable[int] = GUARDED_SIGNALS,
    ) -> None:
        self.supervisor = supervisor
        self.exit_fn = exit_fn
        self.signals = tuple(signals)
        self._previous_handlers: dict[int, Any] = {}
        self._previous_excepthook: Optional[Callable[..., Any]] = None
        self._installed = False
        self._faulted = False

    @property
    def installed(self) -> bool:
        return self._installed

    def sweep(self) -> int:
        return self.supervisor.terminate_all()

    def install(self) -> None:
        if self._installed:
            return
        if threading.current_thread() is threading.main_thread():
            for sig in self.signals:
                self._previous_handlers[sig] = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)
        else:
            logger.warning("Lifecycle guard installed off the main thread; signal handlers skipped.")
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        atexit.register(self.sweep)
        self._installed = True
        logger.debug("Lifecycle guard installed for signals %s", [signal.Signals(s).name for s in self.signals])

    def uninstall(self) -> None:
        if not self._installed:
            return
        for sig, previous in self._previous_handlers.items():
            if previous is not None:
                signal.signal(sig, previous)
        self._previous_handlers.clear()
        if sys.excepthook == self._excepthook and self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
        self._previous_excepthook = None
        atexit.unregister(self.sweep)
        self._installed = False

    def _handle_signal(self, signum: int, frame: Optional[FrameType]) -> None:
        logger.info(
            "Received %s; terminating %d live processes.",
            signal.Signals(signum).name,
            len(self.supervisor.live_ids()),
        )
        self.sweep()
        previous = self._previous_handlers.get(signum)
        if previous is signal.SIG_IGN:
            return
        if callable(previous) and previous is not signal.default_int_handler:
            previous(signum, frame)
            return
        self.exit_fn(0)

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: Optional[TracebackType],
    ) -> None:
        if self._previous_excepthook is not None and not issubclass(exc_type, KeyboardInterrupt):
            self._previous_excepthook(exc_type, exc, tb)
        self.handle_fault(exc)

    def handle_fault(self, exc: BaseException) -> None:
        """Sweep children and exit; non-zero unless the fault is an interrupt."""
        if self._faulted:
            return
        self._faulted = True
        if isinstance(exc, KeyboardInterrupt):
            logger.info("Interrupted; terminating live processes.")
            self.sweep()
            self.exit_fn(0)
            return
        logger.critical(
            "Unrecoverable fault, shutting down: %s",
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        self.sweep()
        self.exit_fn(1)
