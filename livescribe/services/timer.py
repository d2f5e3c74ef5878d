"""Periodic elapsed-time ticker for recording sessions."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def format_elapsed(seconds: int) -> str:
    """Format elapsed whole seconds as mm:ss (minutes are not wrapped)."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


class SessionTimer:
    """Calls `on_tick` once per interval in a background thread until stopped.

    The timer does not count anything itself; the owner increments its own
    counter on every tick so ticks can be serialized with other events.
    """

    def __init__(self, on_tick: Callable[[], None], interval: float = 1.0, name: str = "SessionTimerThread"):
        self.on_tick = on_tick
        self.interval = interval
        self.name = name
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive() and not self.stop_event.is_set()

    def start(self) -> None:
        if self.thread is not None:
            logger.warning("Timer already started")
            return
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.name = self.name
        self.thread.start()

    def stop(self) -> None:
        """Stop ticking. No tick is delivered after stop() returns."""
        self.stop_event.set()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=self.interval + 1.0)

    def _run(self) -> None:
        # Event.wait doubles as an interruptible sleep
        while not self.stop_event.wait(self.interval):
            self.on_tick()
