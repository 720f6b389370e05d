"""
View registry.

One RefreshController per mounted view: the metrics view of each
organization, the admin view, and the simulated demo view. Controllers are
created on first access, started once and closed together at shutdown.
"""

import random
import threading
from datetime import datetime
from functools import partial
from typing import Callable, Dict, Optional, Tuple

from waste_metrics.data_source import (
    DETECTIONS,
    IMPACT_FACTORS,
    ORGANIZATIONS,
    STATIONS,
    USER_PROFILES,
    DataSource,
)
from waste_metrics.fetchers import fetch_admin_metrics, fetch_metrics
from waste_metrics.models import AdminMetrics
from waste_metrics.refresh import RefreshController
from waste_metrics.scheduling import Scheduler
from collectors.simulated_feed import SimulatedLiveFeed
from sharedUtils.config.models import DemoFeedConfig, MetricsConfig, RefreshConfig
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

METRICS_TABLES = (DETECTIONS, STATIONS, IMPACT_FACTORS)
ADMIN_TABLES = (STATIONS, USER_PROFILES, ORGANIZATIONS, DETECTIONS)


def local_now() -> datetime:
    return datetime.now().astimezone()


class ViewRegistry:
    """
    Owns the refresh controllers of every live view served by the API.

    Attributes:
        source: Data source the metrics and admin views read from
        clock: Returns the current aware time
    """

    def __init__(
        self,
        source: DataSource,
        clock: Clock = local_now,
        metrics_config: Optional[MetricsConfig] = None,
        refresh_config: Optional[RefreshConfig] = None,
        demo_feed_config: Optional[DemoFeedConfig] = None,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
    ):
        self.source = source
        self.clock = clock
        self.metrics_config = metrics_config or MetricsConfig()
        self.refresh_config = refresh_config or RefreshConfig()
        self.demo_feed_config = demo_feed_config or DemoFeedConfig()
        self.scheduler = scheduler
        self.rng = rng

        self._controllers: Dict[Tuple[str, Optional[str]], RefreshController] = {}
        self._demo_feed: Optional[SimulatedLiveFeed] = None
        self._lock = threading.Lock()

    def metrics_view(self, organization_id: Optional[str]) -> RefreshController:
        """Live dashboard metrics of one organization (None: every station)."""
        config = self.metrics_config
        fetch = partial(self._fetch_metrics, organization_id, config)
        return self._get_or_create(("metrics", organization_id), lambda: RefreshController(
            fetch,
            name=f"metrics[{organization_id or 'all'}]",
            source=self.source,
            tables=METRICS_TABLES,
        ))

    def admin_view(self, organization_id: Optional[str] = None) -> RefreshController:
        """Live platform counters for administrators."""
        fetch = partial(self._fetch_admin, organization_id)
        return self._get_or_create(("admin", organization_id), lambda: RefreshController(
            fetch,
            name=f"admin[{organization_id or 'all'}]",
            source=self.source,
            tables=ADMIN_TABLES,
            initial=AdminMetrics(),
        ))

    def demo_view(self) -> RefreshController:
        """Simulated feed ticking on a randomized timer."""
        return self._get_or_create(("demo", None), self._create_demo_controller)

    @property
    def demo_feed(self) -> Optional[SimulatedLiveFeed]:
        return self._demo_feed

    def close_all(self) -> None:
        with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()

        for controller in controllers:
            controller.close()
        logger.info("Closed %d view(s)", len(controllers))

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)

    def _get_or_create(self, key, factory: Callable[[], RefreshController]) -> RefreshController:
        with self._lock:
            controller = self._controllers.get(key)
            if controller is not None:
                return controller
            controller = factory()
            self._controllers[key] = controller

        logger.info("Mounting view %s", controller.name)
        controller.start()
        return controller

    def _create_demo_controller(self) -> RefreshController:
        feed = SimulatedLiveFeed.from_config(self.demo_feed_config, rng=self.rng)
        self._demo_feed = feed
        return RefreshController(
            lambda: feed.snapshot(self.clock()),
            name="demo",
            initial=feed.snapshot(self.clock()),
            scheduler=self.scheduler,
            timer_range_ms=(self.refresh_config.timer_min_ms, self.refresh_config.timer_max_ms),
            rng=self.rng,
            ticker=feed.tick,
        )

    def _fetch_metrics(self, organization_id: Optional[str], config: MetricsConfig):
        return fetch_metrics(
            self.source,
            organization_id,
            self.clock(),
            session_end_hour=config.session_end_hour,
            week_days=config.week_days,
            month_days=config.month_days,
        )

    def _fetch_admin(self, organization_id: Optional[str]) -> AdminMetrics:
        return fetch_admin_metrics(self.source, organization_id, self.clock())
