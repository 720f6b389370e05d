"""
Fetch-then-aggregate pipelines.

Each function resolves the scope, reads the rows it needs through a
ScopedViewFilter and hands them to the pure aggregation code. They are the
`fetch` callables the refresh controllers run, and back the on-demand API
routes.
"""

from datetime import datetime
from typing import List, Optional

from waste_metrics.aggregator import (
    DEFAULT_MONTH_DAYS,
    DEFAULT_SESSION_END_HOUR,
    DEFAULT_WEEK_DAYS,
    aggregate,
    align_timestamp,
    parse_detection,
    recent_items,
)
from waste_metrics.data_source import ORGANIZATIONS, USER_PROFILES, DataSource
from waste_metrics.errors import AggregationInputError
from waste_metrics.models import AdminMetrics, ImpactReport, ItemCount, MetricsSnapshot, SeriesPoint
from waste_metrics.reports import admin_metrics, impact_report, months_ago
from waste_metrics.scope import ScopedViewFilter
from waste_metrics.timeseries import build_series
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)


def fetch_metrics(
    source: DataSource,
    organization_id: Optional[str],
    now: datetime,
    *,
    session_end_hour: int = DEFAULT_SESSION_END_HOUR,
    week_days: int = DEFAULT_WEEK_DAYS,
    month_days: int = DEFAULT_MONTH_DAYS,
) -> MetricsSnapshot:
    """Dashboard metrics for one organization (or every station when None)."""
    view = ScopedViewFilter(source, organization_id)
    stations = view.fetch_stations()
    detections = view.fetch_detections(view.scope_of(stations))

    if not detections:
        active = sum(1 for s in stations if s.is_active)
        return MetricsSnapshot(active_stations=active, computed_at=now)

    snapshot = aggregate(
        detections,
        view.fetch_impact_factors(),
        now,
        session_end_hour=session_end_hour,
        week_days=week_days,
        month_days=month_days,
        stations=stations,
    )
    logger.debug("Aggregated %d detection(s) for organization=%s", snapshot.total, organization_id)
    return snapshot


def fetch_admin_metrics(source: DataSource, organization_id: Optional[str], now: datetime) -> AdminMetrics:
    """
    Platform counters for the admin dashboard.

    Usage compares detections of the last calendar month with the month
    before, counting only detections of known stations.
    """
    view = ScopedViewFilter(source, organization_id)
    users = view.read(USER_PROFILES)
    organizations = view.read(ORGANIZATIONS)
    stations = view.fetch_stations()
    scope = frozenset(s.id for s in stations)

    one_month_ago = months_ago(now, 1)
    two_months_ago = months_ago(now, 2)

    recent = previous = 0
    if scope:
        rows = view.fetch_detections(scope, since=two_months_ago)
        for row in rows:
            created = _row_time(row, now)
            if created is None:
                continue
            if created >= one_month_ago:
                recent += 1
            else:
                previous += 1

    return admin_metrics(
        total_users=len(users),
        total_organizations=len(organizations),
        stations=stations,
        recent_detections=recent,
        previous_detections=previous,
        active_users=len(users),
    )


def fetch_series(
    source: DataSource,
    organization_id: Optional[str],
    timeframe: str,
    now: datetime,
    start=None,
    end=None,
) -> List[SeriesPoint]:
    view = ScopedViewFilter(source, organization_id)
    detections = view.fetch_detections(view.resolve_scope())
    return build_series(detections, timeframe, now, start=start, end=end)


def fetch_top_items(
    source: DataSource,
    organization_id: Optional[str],
    timeframe: str,
    now: datetime,
    limit: int = 5,
) -> List[ItemCount]:
    view = ScopedViewFilter(source, organization_id)
    detections = view.fetch_detections(view.resolve_scope())
    return recent_items(detections, timeframe, now, limit)


def fetch_impact(source: DataSource, organization_id: Optional[str], now: datetime) -> ImpactReport:
    view = ScopedViewFilter(source, organization_id)
    detections = view.fetch_detections(view.resolve_scope())
    if not detections:
        return ImpactReport()
    return impact_report(detections, view.fetch_impact_factors(), now)


def _row_time(row, now: datetime) -> Optional[datetime]:
    try:
        return align_timestamp(parse_detection(row).created_at, now)
    except AggregationInputError:
        return None
