"""
Schedulable interval task.

An IntervalTask calls a callback every ``interval`` seconds as measured by
an injected Clock. It does not own a timer handle: the owner either polls
it once per frame with ``update()`` or lets it poll itself from a daemon
thread with ``start_background()``.

Usage:
    task = IntervalTask(on_tick, interval=300.0, clock=clock)
    task.start()
    ...
    task.update()   # call from the game loop
    task.stop()
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from crawlsave.core.clock import Clock

logger = logging.getLogger(__name__)


class IntervalTask:
    """
    Periodic callback driven by a Clock.

    Attributes:
        callback: Called with no arguments each time the task is due
        interval: Seconds between calls
        clock: Time source
    """

    def __init__(self, callback: Callable[[], None], interval: float, clock: Clock):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.callback = callback
        self.interval = interval
        self.clock = clock

        self._next_due: Optional[float] = None
        self._running = False
        self._cancelled = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def next_due(self) -> Optional[float]:
        """Time of the next call, or None when stopped."""
        return self._next_due

    def start(self) -> None:
        """Start (or restart) the schedule from now."""
        if self._cancelled:
            raise RuntimeError("Cannot start a cancelled task")
        with self._lock:
            self._running = True
            self._next_due = self.clock.now() + self.interval

    def stop(self) -> None:
        """Stop the schedule. The task may be started again."""
        with self._lock:
            self._running = False
            self._next_due = None
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None

    def cancel(self) -> None:
        """Stop the schedule permanently."""
        self.stop()
        self._cancelled = True

    def reschedule(self, interval: float) -> None:
        """Change the interval; a running task restarts its countdown."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        with self._lock:
            if self._running:
                self._next_due = self.clock.now() + interval

    def update(self) -> bool:
        """
        Fire the callback if the task is due.

        The next due time is advanced before the callback runs, so a slow
        callback does not delay the schedule.

        Returns:
            True if the callback was invoked
        """
        with self._lock:
            if not self._running or self._next_due is None:
                return False
            now = self.clock.now()
            if now < self._next_due:
                return False
            self._next_due = now + self.interval

        try:
            self.callback()
        except Exception:
            logger.exception("Interval task callback failed")
        return True

    def start_background(self, poll_seconds: float = 1.0) -> None:
        """Start the task and poll it from a daemon thread."""
        self.start()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            args=(poll_seconds,),
            daemon=True,
        )
        self._thread.start()

    def _poll_loop(self, poll_seconds: float) -> None:
        while self._running and not self._stop_event.wait(poll_seconds):
            self.update()
