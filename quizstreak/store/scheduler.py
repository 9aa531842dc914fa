"""Cancellable delayed tasks for debounced saves and auto-advance."""

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    """Handle to a delayed callback."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after a delay, unless cancelled first."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask: ...


class ThreadingScheduler:
    """Scheduler backed by daemon `threading.Timer`s."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay, 0.0), self._run, args=(callback,))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            # A failing timer must not kill the interpreter's timer thread silently
            logger.exception("Scheduled callback failed")


class ManualTask:
    """Task handle produced by `ManualScheduler`."""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by an explicit clock.

    Nothing runs until `advance()` moves the clock past a task's due time.
    Used by tests and by callers that drive time themselves.
    """

    def __init__(self):
        self.now = 0.0
        self.tasks: list[ManualTask] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTask:
        task = ManualTask(self.now + max(delay, 0.0), callback)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> list[ManualTask]:
        """Tasks that are neither cancelled nor fired."""
        return [t for t in self.tasks if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and fire every task that came due.

        Args:
            seconds: How far to move the clock

        Returns:
            Number of callbacks fired
        """
        self.now += seconds
        fired = 0
        while True:
            due = [t for t in self.pending if t.due <= self.now]
            if not due:
                return fired
            task = min(due, key=lambda t: t.due)
            task.fired = True
            task.callback()
            fired += 1
