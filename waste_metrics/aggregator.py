"""
Metrics aggregation.

Pure functions turning raw detection rows into a MetricsSnapshot. Nothing here
touches the data source, the clock or the logger's state; callers pass `now`
explicitly so results are reproducible.
"""

from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from waste_metrics.errors import AggregationInputError
from waste_metrics.models import (
    Category,
    DIVERTED_CATEGORIES,
    Detection,
    ImpactFactor,
    ItemCount,
    MetricsSnapshot,
    Station,
)
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SESSION_END_HOUR = 17   # Daily cutoff for the items-per-hour session window
DEFAULT_WEEK_DAYS = 7
DEFAULT_MONTH_DAYS = 30
UNKNOWN_ITEM = "Unknown Item"

# Lookback per most-detected timeframe
ITEM_TIMEFRAMES = {
    "D": timedelta(days=1),
    "W": timedelta(days=7),
    "M": timedelta(days=30),
}

FactorValue = Union[float, int, ImpactFactor]


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a dashboard does: halves go away from zero, not to even."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def align_timestamp(ts: datetime, now: datetime) -> datetime:
    """Express `ts` so it can be compared with `now` (naive vs aware)."""
    if now.tzinfo is None:
        if ts.tzinfo is None:
            return ts
        return ts.astimezone().replace(tzinfo=None)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=now.tzinfo)
    return ts.astimezone(now.tzinfo)


def parse_detection(row: Any) -> Detection:
    """
    Build a Detection from a data-source row.

    Raises:
        AggregationInputError: If the row is not a mapping or lacks a usable created_at
    """
    if isinstance(row, Detection):
        return row
    if not isinstance(row, Mapping):
        raise AggregationInputError(f"Unsupported detection row type: {type(row).__name__}")
    if row.get("created_at") in (None, ""):
        raise AggregationInputError("Detection row has no created_at")

    try:
        return Detection.model_validate(dict(row))
    except ValidationError as e:
        raise AggregationInputError(f"Malformed detection row: {e.error_count()} invalid field(s)") from e


def parse_detections(rows: Iterable[Any]) -> List[Detection]:
    """Parse rows, dropping (and logging) malformed ones."""
    detections = []
    skipped = 0

    for row in rows:
        try:
            detections.append(parse_detection(row))
        except AggregationInputError as e:
            skipped += 1
            logger.debug("Skipping detection row: %s", e)

    if skipped:
        logger.info("Skipped %d malformed detection row(s)", skipped)

    return detections


def co2_factor(value: FactorValue) -> float:
    if isinstance(value, ImpactFactor):
        return value.co2_saved_kg
    return float(value)


def impact_map(rows: Iterable[Any]) -> Dict[str, ImpactFactor]:
    """
    Index impact-factor rows by item key.

    Accepts ImpactFactor instances or rows with `item` (or `item_key`) and
    `co2_saved_kg`. Rows that fail validation are skipped.
    """
    factors: Dict[str, ImpactFactor] = {}

    for row in rows:
        if isinstance(row, ImpactFactor):
            factors[row.item] = row
            continue
        data = dict(row)
        if "item" not in data and "item_key" in data:
            data["item"] = data.pop("item_key")
        try:
            factor = ImpactFactor.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring invalid impact factor %s: %s", data.get("item"), e.error_count())
            continue
        factors[factor.item] = factor

    return factors


def session_window(
    detections: Sequence[Detection],
    now: datetime,
    session_end_hour: int = DEFAULT_SESSION_END_HOUR,
) -> Tuple[Optional[datetime], float, int]:
    """
    Locate today's sorting session.

    The session starts at the first detection since local midnight and ends at
    `session_end_hour` or `now`, whichever comes first.

    Returns:
        (session_start, elapsed_hours, detection_count); elapsed_hours may be
        zero or negative when the session has not started yet
    """
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    todays = [
        ts for ts in (align_timestamp(d.created_at, now) for d in detections)
        if ts >= start_of_day
    ]

    if not todays:
        return None, 0.0, 0

    first = min(todays)
    cutoff = now.replace(hour=session_end_hour, minute=0, second=0, microsecond=0)
    end = min(now, cutoff)
    elapsed_hours = (end - first).total_seconds() / 3600

    return first, elapsed_hours, len(todays)


def rate_per_hour(count: int, elapsed_hours: float) -> int:
    if count <= 0 or elapsed_hours <= 0:
        return 0
    return int(round_half_up(count / elapsed_hours))


def aggregate(
    detections: Iterable[Any],
    impact_factors: Mapping[str, FactorValue],
    now: datetime,
    *,
    session_end_hour: int = DEFAULT_SESSION_END_HOUR,
    week_days: int = DEFAULT_WEEK_DAYS,
    month_days: int = DEFAULT_MONTH_DAYS,
    stations: Optional[Iterable[Station]] = None,
) -> MetricsSnapshot:
    """
    Compute a MetricsSnapshot from raw detections.

    Args:
        detections: Detection models or data-source rows; malformed rows are skipped
        impact_factors: item key -> CO2 saved per unit (float or ImpactFactor)
        now: Reference instant for period counts and the session window
        session_end_hour: Daily cutoff hour for the rate-per-hour window
        week_days: Length of the "this week" period
        month_days: Length of the "this month" period
        stations: Optional stations of the scope, used for the active count

    Returns:
        A new MetricsSnapshot; all-zero when there are no usable detections
    """
    parsed = parse_detections(detections)
    active = sum(1 for s in stations if s.is_active) if stations is not None else 0

    counts = Counter(d.category for d in parsed)
    total = len(parsed)
    recycle = counts[Category.RECYCLE]
    compost = counts[Category.COMPOST]
    trash = counts[Category.TRASH]

    diversion = round_half_up((recycle + compost) / total * 100, 1) if total else 0.0

    co2 = 0.0
    for d in parsed:
        if d.category in DIVERTED_CATEGORIES and d.item in impact_factors:
            co2 += co2_factor(impact_factors[d.item])

    week_start = now - timedelta(days=week_days)
    month_start = now - timedelta(days=month_days)
    stamps = [align_timestamp(d.created_at, now) for d in parsed]

    session_start, elapsed_hours, session_count = session_window(parsed, now, session_end_hour)

    return MetricsSnapshot(
        total=total,
        recycle=recycle,
        compost=compost,
        trash=trash,
        uncategorized=total - recycle - compost - trash,
        diversion_rate=diversion,
        co2_saved_kg=round_half_up(co2, 1),
        rate_per_hour=rate_per_hour(session_count, elapsed_hours),
        this_week=sum(1 for ts in stamps if ts >= week_start),
        this_month=sum(1 for ts in stamps if ts >= month_start),
        all_time=total,
        active_stations=active,
        session_start=session_start,
        session_minutes=int(max(elapsed_hours, 0.0) * 60),
        computed_at=now,
    )


def top_items(detections: Iterable[Any], limit: int = 5) -> List[ItemCount]:
    """Most frequently detected items, most common first."""
    parsed = parse_detections(detections)
    if not parsed:
        return []

    counts: Counter = Counter()
    first_category: Dict[str, Category] = {}
    for d in parsed:
        name = d.item or UNKNOWN_ITEM
        counts[name] += 1
        first_category.setdefault(name, d.category or Category.TRASH)

    total = len(parsed)
    return [
        ItemCount(
            name=name,
            count=count,
            category=first_category[name],
            percentage=count / total * 100,
        )
        for name, count in counts.most_common(limit)
    ]


def recent_items(detections: Iterable[Any], timeframe: str, now: datetime, limit: int = 5) -> List[ItemCount]:
    """top_items() restricted to the last day, week or month."""
    try:
        lookback = ITEM_TIMEFRAMES[timeframe.upper()]
    except KeyError:
        raise ValueError(f"Unknown timeframe '{timeframe}', expected one of {sorted(ITEM_TIMEFRAMES)}") from None

    since = now - lookback
    recent = [d for d in parse_detections(detections) if align_timestamp(d.created_at, now) >= since]
    return top_items(recent, limit)
