"""Value objects shared by the aggregator, the refresh controller and the API."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(str, Enum):
    """Bins a station can sort an item into."""
    RECYCLE = "recycle"
    COMPOST = "compost"
    TRASH = "trash"

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        """Case-insensitive lookup; anything unknown maps to None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


DIVERTED_CATEGORIES = frozenset({Category.RECYCLE, Category.COMPOST})


class Detection(BaseModel):
    """
    One sorted item reported by a station.

    Attributes:
        category: Parsed bin, or None when the station reported something unknown
        item: Item key used to look up an impact factor
        created_at: When the item was detected
        device_id: Station id that produced the detection
    """
    model_config = ConfigDict(frozen=True)

    category: Optional[Category] = None
    item: Optional[str] = None
    created_at: datetime
    device_id: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def normalise_category(cls, v: Any) -> Optional[Category]:
        return Category.parse(v)


class Station(BaseModel):
    """A physical sorting unit; its id is the detections' device_id."""
    model_config = ConfigDict(frozen=True)

    id: str
    status: str = "active"
    organization_id: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() == "active"


class ImpactFactor(BaseModel):
    """Savings credited for diverting one unit of an item."""
    model_config = ConfigDict(frozen=True)

    item: str
    co2_saved_kg: float = Field(ge=0)
    water_saved_gal: float = Field(default=0.0, ge=0)
    energy_saved_kwh: float = Field(default=0.0, ge=0)


class MetricsSnapshot(BaseModel):
    """
    Aggregated metrics for one scope at one instant.

    Snapshots are replaced wholesale on every refresh, never patched.
    recycle + compost + trash + uncategorized == total always holds.
    """
    model_config = ConfigDict(frozen=True)

    total: int = 0
    recycle: int = 0
    compost: int = 0
    trash: int = 0
    uncategorized: int = 0
    diversion_rate: float = 0.0
    co2_saved_kg: float = 0.0
    rate_per_hour: int = 0
    this_week: int = 0
    this_month: int = 0
    all_time: int = 0
    active_stations: int = 0
    session_start: Optional[datetime] = None
    session_minutes: int = 0
    computed_at: Optional[datetime] = None

    @classmethod
    def zero(cls) -> "MetricsSnapshot":
        return cls()

    @property
    def diverted(self) -> int:
        return self.recycle + self.compost

    @property
    def diversion_rate_display(self) -> str:
        if self.total == 0:
            return "0%"
        return f"{self.diversion_rate:.1f}%"

    @property
    def co2_saved_display(self) -> str:
        return f"{self.co2_saved_kg:.1f} kg"

    @property
    def session_duration_display(self) -> str:
        hours, minutes = divmod(self.session_minutes, 60)
        return f"{hours}h {minutes}m"

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation including the display strings."""
        data = self.model_dump(mode="json")
        data["diversion_rate_display"] = self.diversion_rate_display
        data["co2_saved_display"] = self.co2_saved_display
        data["session_duration_display"] = self.session_duration_display
        return data


class LiveStats(BaseModel):
    """Running totals of the simulated live feed."""
    model_config = ConfigDict(frozen=True)

    total: int = 0
    trash: int = 0
    recycle: int = 0
    compost: int = 0


class ItemCount(BaseModel):
    """One row of the most-detected list."""
    name: str
    count: int
    category: Category
    percentage: float


class SeriesPoint(BaseModel):
    """One time slot of the category chart."""
    label: str
    start: datetime
    total: int = 0
    recycle: int = 0
    compost: int = 0
    trash: int = 0


class ImpactReport(BaseModel):
    """Environmental savings and their real-world equivalents."""
    total_items: int = 0
    diverted_items: int = 0
    diversion_rate: float = 0.0
    co2_saved_kg: float = 0.0
    water_saved_gal: float = 0.0
    energy_saved_kwh: float = 0.0
    trees_saved: float = 0.0
    cars_off_road: float = 0.0
    this_week: int = 0
    previous_week: int = 0
    weekly_growth: float = 0.0


class AdminMetrics(BaseModel):
    """Platform-wide counters for the admin dashboard."""
    model_config = ConfigDict(frozen=True)

    total_users: int = 0
    active_users: int = 0
    total_organizations: int = 0
    stations: int = 0
    active_stations: int = 0
    platform_usage: int = 0
    system_alerts: int = 0

    @property
    def platform_usage_display(self) -> str:
        sign = "+" if self.platform_usage > 0 else ""
        return f"{sign}{self.platform_usage}%"

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["platform_usage_display"] = self.platform_usage_display
        return data
