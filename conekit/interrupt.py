"""Detect Ctrl-C (SIGINT) while a long computation runs."""

from __future__ import annotations

import signal
import threading


class InterruptListener:
    """Context manager that records SIGINT instead of raising KeyboardInterrupt.

    The previous handler is restored on exit.  Outside the main thread no
    handler can be installed and the listener never reports an interrupt.
    """

    def __init__(self) -> None:
        self._detected = 0
        self._previous = None
        self._installed = False

    def _handle(self, signum, frame) -> None:
        self._detected = signum if signum else -1

    def __enter__(self) -> "InterruptListener":
        self._detected = 0
        if threading.current_thread() is threading.main_thread():
            self._previous = signal.signal(signal.SIGINT, self._handle)
            self._installed = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._installed:
            previous = self._previous if self._previous is not None else signal.SIG_DFL
            signal.signal(signal.SIGINT, previous)
            self._installed = False
            self._previous = None
        return False

    def interrupted(self) -> bool:
        """Whether SIGINT arrived since the listener was last entered."""
        return bool(self._detected)