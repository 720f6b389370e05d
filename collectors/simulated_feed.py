"""
Simulated live feed.

Closed-loop stand-in for a real station: every tick sorts exactly one
synthetic item into trash (55%), recycle (25%) or compost (20%) and adds it
to an in-memory running total. Used by the demo dashboard when there is no
live backend.
"""

import random
import threading
from datetime import datetime
from typing import Optional

from waste_metrics.aggregator import round_half_up
from waste_metrics.models import Category, LiveStats, MetricsSnapshot
from sharedUtils.config.models import DemoFeedConfig
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

TRASH_THRESHOLD = 0.55     # u < 0.55 -> trash
RECYCLE_THRESHOLD = 0.80   # 0.55 <= u < 0.80 -> recycle, otherwise compost

BASE_STATS = LiveStats(total=978, trash=567, recycle=275, compost=136)


class SimulatedLiveFeed:
    """
    Running totals fed by synthetic detections.

    Each instance owns its totals; create one per demo view and drop it with
    the view. The random source is injectable so tests can replay draws.

    Attributes:
        rng: Source of the uniform [0, 1) samples
        ticks: Number of ticks since creation
    """

    SOURCE = "simulated"

    def __init__(self, base: Optional[LiveStats] = None, rng: Optional[random.Random] = None):
        start = base or BASE_STATS
        self._stats = LiveStats(
            total=start.trash + start.recycle + start.compost,
            trash=start.trash,
            recycle=start.recycle,
            compost=start.compost,
        )
        self.rng = rng or random.Random()
        self.ticks = 0
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DemoFeedConfig, rng: Optional[random.Random] = None) -> "SimulatedLiveFeed":
        base = LiveStats(trash=config.trash, recycle=config.recycle, compost=config.compost)
        return cls(base=base, rng=rng)

    @property
    def stats(self) -> LiveStats:
        return self._stats

    def draw_category(self) -> Category:
        sample = self.rng.random()
        if sample < TRASH_THRESHOLD:
            return Category.TRASH
        if sample < RECYCLE_THRESHOLD:
            return Category.RECYCLE
        return Category.COMPOST

    def tick(self) -> Category:
        """Add one synthetic detection and return its category."""
        with self._lock:
            category = self.draw_category()
            counts = {
                "trash": self._stats.trash,
                "recycle": self._stats.recycle,
                "compost": self._stats.compost,
            }
            counts[category.value] += 1
            self._stats = LiveStats(total=sum(counts.values()), **counts)
            self.ticks += 1

        logger.debug("Simulated detection: %s (total=%d)", category.value, self._stats.total)
        return category

    def snapshot(self, now: Optional[datetime] = None) -> MetricsSnapshot:
        """Current totals as a MetricsSnapshot (no impact factors, no timing)."""
        stats = self._stats
        diversion = (
            round_half_up((stats.recycle + stats.compost) / stats.total * 100, 1)
            if stats.total else 0.0
        )
        return MetricsSnapshot(
            total=stats.total,
            recycle=stats.recycle,
            compost=stats.compost,
            trash=stats.trash,
            diversion_rate=diversion,
            all_time=stats.total,
            computed_at=now or datetime.now().astimezone(),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(total={self._stats.total}, ticks={self.ticks})"
