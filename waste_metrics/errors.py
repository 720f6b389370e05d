"""Error taxonomy for metrics fetching and aggregation."""


class WasteMetricsError(Exception):
    """Base class for all metrics errors."""


class FetchError(WasteMetricsError):
    """Reading rows from the data source failed."""

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Failed to fetch '{table}': {reason}")


class ScopeResolutionError(WasteMetricsError):
    """The stations of an organization could not be resolved."""

    def __init__(self, organization_id: str, reason: str):
        self.organization_id = organization_id
        self.reason = reason
        super().__init__(f"Failed to resolve scope for organization '{organization_id}': {reason}")


class AggregationInputError(WasteMetricsError):
    """A detection row is malformed; the aggregator skips it."""
