"""
Timer scheduling.

The refresh controller and the simulated feed never sleep or read the wall
clock themselves: they ask a Scheduler to call them back later. Production
code uses ThreadingScheduler; tests drive a manual scheduler instead.
"""

import random
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)


class ScheduledCall(ABC):
    """A pending callback that can be cancelled before it fires."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Abstract source of delayed callbacks."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        """
        Run `callback` once after `delay` seconds.

        Returns:
            ScheduledCall that cancels the callback if it has not fired yet
        """
        pass


class _TimerCall(ScheduledCall):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon threading.Timer instances."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.name = f"ScheduledCall-{delay:.2f}s"
        timer.start()
        return _TimerCall(timer)


class RandomizedTimer:
    """
    Repeating timer whose interval is redrawn after every firing.

    Each interval is drawn uniformly from [min_ms, max_ms]. The timer re-arms
    itself after the callback returns, even when the callback raises.

    Attributes:
        min_ms: Lower bound of the interval in milliseconds
        max_ms: Upper bound of the interval in milliseconds
        last_delay_ms: Interval drawn for the currently armed call
    """

    def __init__(
        self,
        scheduler: Scheduler,
        callback: Callable[[], None],
        min_ms: int = 2000,
        max_ms: int = 4000,
        rng: Optional[random.Random] = None,
    ):
        if min_ms <= 0 or max_ms < min_ms:
            raise ValueError(f"Invalid timer range: {min_ms}-{max_ms} ms")

        self.scheduler = scheduler
        self.callback = callback
        self.min_ms = min_ms
        self.max_ms = max_ms
        self.rng = rng or random.Random()
        self.last_delay_ms: Optional[float] = None

        self._lock = threading.Lock()
        self._running = False
        self._pending: Optional[ScheduledCall] = None

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._arm()

    def cancel(self) -> None:
        with self._lock:
            self._running = False
            pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()

    def is_running(self) -> bool:
        return self._running

    def _arm(self) -> None:
        self.last_delay_ms = self.rng.uniform(self.min_ms, self.max_ms)
        self._pending = self.scheduler.call_later(self.last_delay_ms / 1000, self._fire)

    def _fire(self) -> None:
        if not self._running:
            return

        try:
            self.callback()
        except Exception as e:
            logger.error("Timer callback failed: %s", e, exc_info=True)
        finally:
            with self._lock:
                if self._running:
                    self._arm()
