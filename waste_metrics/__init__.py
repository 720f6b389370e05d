"""
Waste Metrics Package

Aggregation and live-refresh core of the sorting-station dashboard: turns
detection rows into metrics snapshots and keeps them current per view.
"""

from waste_metrics.aggregator import aggregate, top_items, recent_items
from waste_metrics.data_source import DataSource, Subscription
from waste_metrics.errors import (
    AggregationInputError,
    FetchError,
    ScopeResolutionError,
    WasteMetricsError,
)
from waste_metrics.models import Category, Detection, ImpactFactor, MetricsSnapshot, Station
from waste_metrics.refresh import RefreshController, RefreshState, RefreshStatus
from waste_metrics.scope import ScopedViewFilter, resolve_scope

__all__ = [
    "aggregate",
    "top_items",
    "recent_items",
    "DataSource",
    "Subscription",
    "AggregationInputError",
    "FetchError",
    "ScopeResolutionError",
    "WasteMetricsError",
    "Category",
    "Detection",
    "ImpactFactor",
    "MetricsSnapshot",
    "Station",
    "RefreshController",
    "RefreshState",
    "RefreshStatus",
    "ScopedViewFilter",
    "resolve_scope",
]
