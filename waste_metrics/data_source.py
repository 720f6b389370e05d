"""
Data Source Interface

Abstract base class for the store the metrics are read from. The aggregator
and the refresh controller only depend on this interface, so a SQL database,
a hosted backend or an in-memory fake can be swapped without touching them.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional

Row = Dict[str, Any]
Filters = Mapping[str, Any]
ChangeCallback = Callable[[], None]

STATIONS = "stations"
DETECTIONS = "detections"
IMPACT_FACTORS = "impact_factors"
ORGANIZATIONS = "organizations"
USER_PROFILES = "user_profiles"

TABLES = (STATIONS, DETECTIONS, IMPACT_FACTORS, ORGANIZATIONS, USER_PROFILES)


class Subscription:
    """
    Handle for one change-notification registration.

    close() runs the release callback exactly once, no matter how many
    times or from how many threads it is called.
    """

    def __init__(self, table: str, release: Callable[[], None]):
        self.table = table
        self._release: Optional[Callable[[], None]] = release
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._release is None

    def close(self) -> None:
        with self._lock:
            release, self._release = self._release, None
        if release is not None:
            release()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Subscription(table='{self.table}', {state})"


class DataSource(ABC):
    """
    Abstract base class for row stores.

    Filters are a mapping of column name to value:
    - scalar value: equality
    - list, tuple, set or frozenset: membership
    - `column__gte` / `column__lt` keys: range bounds
    """

    @abstractmethod
    def query(self, table: str, filters: Optional[Filters] = None) -> List[Row]:
        """
        Read rows from a table.

        Args:
            table: Table name (see TABLES)
            filters: Optional column filters

        Returns:
            List of rows as plain dicts

        Raises:
            FetchError: If the store cannot be read
        """
        pass

    @abstractmethod
    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        """
        Register a callback fired after any change to `table`.

        Returns:
            Subscription; close() it to stop receiving notifications
        """
        pass
