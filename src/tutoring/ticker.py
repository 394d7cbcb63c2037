"""
Background periodic evaluator.

Calls a callback every ``interval_seconds`` on a daemon thread until stopped.
A failing tick is logged and the loop keeps going; the next tick gets a
fresh chance.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger


@dataclass
class PeriodicTicker:
    """
    Usage:
        ticker = PeriodicTicker(interval_seconds=2.0, callback=coach.tick)
        ticker.start()
        # ... session runs ...
        ticker.stop()
    """

    interval_seconds: float
    callback: Callable[[], None]
    name: str = "coaching-ticker"

    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    ticks: int = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Ticker {} already running", self.name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Ticker {} started (interval: {}s)", self.name, self.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop. Repeated calls are no-ops."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is None:
            return
        if thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("Ticker {} stopped after {} ticks", self.name, self.ticks)

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.callback()
            except Exception:
                logger.exception("Coaching tick failed")
            self.ticks += 1
