"""Background reaper that periodically evicts idle limiter state.

The sweeper runs its target on a fixed interval in a daemon thread, fully
decoupled from request handling. It is owned by whoever starts it (the app
lifespan in production, the test itself in tests) and must be stopped
explicitly so short-lived processes and test sessions do not leak threads.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Call ``target`` every ``interval_seconds`` until stopped.

    Attributes:
        name: Thread name, also used in log records.
        interval_seconds: Delay between two consecutive sweeps.
    """

    def __init__(
        self,
        target: Callable[[], int],
        *,
        interval_seconds: float,
        name: str = "rate-limit-sweeper",
    ) -> None:
        if not interval_seconds > 0:
            raise ValueError("interval_seconds must be > 0")

        self.name = name
        self.interval_seconds = interval_seconds
        self._target = target
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._runs = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"PeriodicSweeper(name={self.name!r}, interval_seconds={self.interval_seconds}, "
            f"running={self.running}, runs={self._runs})"
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def runs(self) -> int:
        """Number of completed sweep invocations."""
        return self._runs

    def start(self) -> None:
        """Start the background thread. Starting twice is a no-op."""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(
            "rate_limit.sweeper_started",
            extra={"sweeper": self.name, "interval_s": self.interval_seconds},
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to exit and wait for it.

        If the thread is still inside a sweep when ``timeout`` expires, the
        reference is kept so ``running`` stays true and ``start()`` cannot
        spawn a second thread next to it.
        """
        thread = self._thread
        if thread is None:
            return

        self._stop_event.set()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning(
                "rate_limit.sweeper_stop_timeout",
                extra={"sweeper": self.name, "timeout_s": timeout},
            )
            return

        self._thread = None
        logger.info(
            "rate_limit.sweeper_stopped",
            extra={"sweeper": self.name, "runs": self._runs},
        )

    def run_once(self) -> int:
        """Run a single sweep in the calling thread."""
        evicted = self._target()
        self._runs += 1
        return evicted

    def _run(self) -> None:
        # Event.wait returns True as soon as stop() is called.
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception(
                    "rate_limit.sweep_failed",
                    extra={"sweeper": self.name},
                )
