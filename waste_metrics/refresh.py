"""
Refresh controller.

Keeps one view's snapshot current. A refresh runs on start (mount), on every
change notification from the data source and, for the simulated variant, on a
randomized timer. At most one refresh is in flight per controller; triggers
that arrive meanwhile are coalesced into a single follow-up refresh.

States:
    IDLE        latest fetch succeeded, snapshot is fresh
    REFRESHING  fetch in flight, previous snapshot still served
    FAILED      last fetch failed, previous snapshot still served with the error
"""

import random
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from waste_metrics.data_source import DataSource, Subscription
from waste_metrics.errors import WasteMetricsError
from waste_metrics.models import MetricsSnapshot
from waste_metrics.scheduling import RandomizedTimer, Scheduler, ThreadingScheduler
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)


class RefreshStatus(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass(frozen=True)
class RefreshState:
    """Immutable view of a controller: status, the snapshot to display, last error."""
    status: RefreshStatus
    snapshot: Any
    error: Optional[str] = None

    def to_dict(self) -> dict:
        snapshot = self.snapshot.to_dict() if hasattr(self.snapshot, "to_dict") else self.snapshot
        return {"status": self.status.value, "error": self.error, "snapshot": snapshot}


class RefreshController:
    """
    Owns the current snapshot of one view for its whole lifetime.

    Create it when the view mounts, call start(), read `state` whenever the
    view renders, and close() it when the view goes away. After close() no
    callback, timer or late fetch result changes the state again.

    Attributes:
        name: Label used in log messages
        fetch: Callable producing a fresh snapshot; raising keeps the stale one
        refresh_count: Number of completed fetch attempts
    """

    def __init__(
        self,
        fetch: Callable[[], Any],
        *,
        name: str = "view",
        source: Optional[DataSource] = None,
        tables: Sequence[str] = (),
        initial: Any = None,
        scheduler: Optional[Scheduler] = None,
        timer_range_ms: Optional[Tuple[int, int]] = None,
        rng: Optional[random.Random] = None,
        ticker: Optional[Callable[[], None]] = None,
    ):
        if tables and source is None:
            raise ValueError("A data source is required to subscribe to tables")

        self.name = name
        self.fetch = fetch
        self.source = source
        self.tables = tuple(tables)
        self.scheduler = scheduler
        self.timer_range_ms = timer_range_ms
        self.rng = rng
        self.ticker = ticker
        self.refresh_count = 0

        initial_snapshot = MetricsSnapshot.zero() if initial is None else initial
        self._state = RefreshState(RefreshStatus.IDLE, initial_snapshot)

        self._lock = threading.Lock()
        self._in_flight = False
        self._pending = False
        self._started = False
        self._closed = False
        self._subscriptions: List[Subscription] = []
        self._timer: Optional[RandomizedTimer] = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def snapshot(self) -> Any:
        return self._state.snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Subscribe to change notifications, arm the timer and run the first refresh."""
        with self._lock:
            if self._closed or self._started:
                return
            self._started = True

        for table in self.tables:
            subscription = self.source.subscribe(table, lambda t=table: self.trigger(f"change:{t}"))
            with self._lock:
                if self._closed:
                    subscription.close()
                    return
                self._subscriptions.append(subscription)

        if self.timer_range_ms is not None:
            min_ms, max_ms = self.timer_range_ms
            timer = RandomizedTimer(
                self.scheduler or ThreadingScheduler(),
                self._on_timer,
                min_ms=min_ms,
                max_ms=max_ms,
                rng=self.rng,
            )
            with self._lock:
                if self._closed:
                    return
                self._timer = timer
            timer.start()
            # close() may have run after the timer was stored but before it started
            with self._lock:
                closed = self._closed
            if closed:
                timer.cancel()
                return

        logger.debug("%s: started (tables=%s, timer=%s)", self.name, self.tables, self.timer_range_ms)
        self.trigger("mount")

    def trigger(self, reason: str = "manual") -> bool:
        """
        Request a refresh.

        Returns:
            True if this call ran the refresh, False if it was coalesced into
            the one already in flight or the controller is closed
        """
        with self._lock:
            if self._closed:
                return False
            if self._in_flight:
                self._pending = True
                logger.debug("%s: refresh in flight, coalescing trigger '%s'", self.name, reason)
                return False
            self._in_flight = True
            self._state = RefreshState(RefreshStatus.REFRESHING, self._state.snapshot)

        logger.debug("%s: refreshing (%s)", self.name, reason)
        self._run()
        return True

    def close(self) -> None:
        """Cancel the timer and release every subscription exactly once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscriptions, self._subscriptions = self._subscriptions, []
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()
        for subscription in subscriptions:
            subscription.close()

        logger.debug("%s: closed", self.name)

    def _on_timer(self) -> None:
        if self._closed:
            return
        if self.ticker is not None:
            self.ticker()
        self.trigger("timer")

    def _run(self) -> None:
        while True:
            snapshot = None
            error: Optional[Exception] = None

            try:
                snapshot = self.fetch()
            except WasteMetricsError as e:
                logger.warning("%s: refresh failed: %s", self.name, e)
                error = e
            except Exception as e:
                logger.error("%s: unexpected refresh error: %s", self.name, e, exc_info=True)
                error = e

            with self._lock:
                if self._closed:
                    self._in_flight = False
                    self._pending = False
                    return

                self.refresh_count += 1
                if error is None:
                    self._state = RefreshState(RefreshStatus.IDLE, snapshot)
                else:
                    self._state = RefreshState(RefreshStatus.FAILED, self._state.snapshot, str(error))

                if not self._pending:
                    self._in_flight = False
                    return

                self._pending = False
                self._state = RefreshState(RefreshStatus.REFRESHING, self._state.snapshot)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', status={self._state.status.value})"
