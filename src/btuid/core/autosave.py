"""Periodic background persistence of allocator state."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Autosaver:
    """Calls *save* every *interval_s* seconds on a daemon thread.

    Parameters
    ----------
    save:
        Takes a snapshot and writes it. Errors are logged and the next
        interval is waited for as usual.
    interval_s:
        Seconds between two calls.
    name:
        Thread name, for log and debugger output.
    """

    def __init__(
        self,
        save: Callable[[], object],
        interval_s: float,
        name: str = "btuid-autosave",
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._save = save
        self._interval_s = interval_s
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.debug("%s started, interval %.1fs", self._name, self._interval_s)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.debug("%s stopped", self._name)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval_s):
            try:
                self._save()
            except Exception:
                logger.exception("Error in autosave cycle")
