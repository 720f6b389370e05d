"""
Scoped view filter.

Narrows every read to one tenant: organization -> station ids -> detections.
An organization without stations yields no detections; the filter never
falls back to an unrestricted query.
"""

from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from waste_metrics.aggregator import impact_map
from waste_metrics.data_source import (
    DETECTIONS,
    IMPACT_FACTORS,
    STATIONS,
    DataSource,
    Row,
)
from waste_metrics.errors import FetchError, ScopeResolutionError, WasteMetricsError
from waste_metrics.models import ImpactFactor, Station
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

Scope = Optional[FrozenSet[str]]   # None means unrestricted


class ScopedViewFilter:
    """
    Resolves a tenant scope and fetches the rows visible inside it.

    Attributes:
        source: Data source rows are read from
        organization_id: Tenant to restrict to, or None for every station
    """

    def __init__(self, source: DataSource, organization_id: Optional[str] = None):
        self.source = source
        self.organization_id = organization_id

    def fetch_stations(self) -> List[Station]:
        """Stations of the organization (all stations when unscoped)."""
        filters = {"organization_id": self.organization_id} if self.organization_id else None

        try:
            rows = self.source.query(STATIONS, filters)
            return [Station.model_validate(row) for row in rows]
        except Exception as e:
            if self.organization_id:
                raise ScopeResolutionError(self.organization_id, str(e)) from e
            if isinstance(e, WasteMetricsError):
                raise
            raise FetchError(STATIONS, str(e)) from e

    def resolve_scope(self) -> Scope:
        """
        Station ids the view may see.

        Returns:
            None when unscoped, otherwise the (possibly empty) set of station ids

        Raises:
            ScopeResolutionError: If the organization's stations cannot be read
        """
        if not self.organization_id:
            return None
        return self.scope_of(self.fetch_stations())

    def scope_of(self, stations: List[Station]) -> Scope:
        """Scope implied by already-fetched stations."""
        if not self.organization_id:
            return None

        scope = frozenset(s.id for s in stations)
        logger.debug("Organization %s resolved to %d station(s)", self.organization_id, len(scope))
        return scope

    def fetch_detections(self, scope: Scope, since: Optional[datetime] = None) -> List[Row]:
        """
        Detections produced by stations in `scope`.

        An empty scope short-circuits to [] without touching the data source.

        Raises:
            FetchError: If the detections cannot be read
        """
        if scope is not None and not scope:
            logger.debug("Empty scope for organization %s - no detections", self.organization_id)
            return []

        filters: Dict[str, object] = {}
        if scope is not None:
            filters["device_id"] = sorted(scope)
        if since is not None:
            filters["created_at__gte"] = since

        return self.read(DETECTIONS, filters or None)

    def fetch_impact_factors(self) -> Dict[str, ImpactFactor]:
        return impact_map(self.read(IMPACT_FACTORS))

    def read(self, table: str, filters=None) -> List[Row]:
        """Read any table, wrapping failures in FetchError."""
        try:
            return self.source.query(table, filters)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(table, str(e)) from e


def resolve_scope(source: DataSource, organization_id: Optional[str]) -> Scope:
    """Shortcut for ScopedViewFilter(source, organization_id).resolve_scope()."""
    return ScopedViewFilter(source, organization_id).resolve_scope()
