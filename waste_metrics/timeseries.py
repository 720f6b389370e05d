"""Bucketing detections into chart time slots."""

import math
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional

from waste_metrics.aggregator import align_timestamp, parse_detections
from waste_metrics.models import Category, SeriesPoint

DAY_FIRST_HOUR = 7
DAY_LAST_HOUR = 18
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
CUSTOM_DAILY_MAX_DAYS = 60
CUSTOM_FULL_LABEL_MAX_DAYS = 14
TIMEFRAMES = ("D", "W", "M", "Y", "C")


def _midnight(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)


def _hour_label(slot: datetime) -> str:
    hours = slot.hour
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}{suffix}"


def _date_label(slot: datetime) -> str:
    return f"{slot.month}/{slot.day}"


def _daily_slots(start: datetime, end: datetime, step_days: int = 1) -> List[datetime]:
    slots = []
    current = start
    while current <= end:
        slots.append(current)
        current += timedelta(days=step_days)
    return slots


def _as_local_midnight(value: Any, now: datetime) -> datetime:
    if isinstance(value, datetime):
        return _midnight(align_timestamp(value, now))
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=now.tzinfo)
    parsed = date.fromisoformat(str(value))
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=now.tzinfo)


def build_series(
    detections: Iterable[Any],
    timeframe: str,
    now: datetime,
    start: Optional[Any] = None,
    end: Optional[Any] = None,
) -> List[SeriesPoint]:
    """
    Count detections per category in consecutive time slots.

    Timeframes:
        D: hourly slots from 7AM to 6PM today
        W: the last 7 days, one slot per day
        M: the last 30 days, one slot per day
        Y: weekly slots since 1 January
        C: custom inclusive date range (start/end), daily up to 60 days, weekly beyond

    Every slot is present even when empty. Detections outside the window are ignored.

    Raises:
        ValueError: For an unknown timeframe or a custom range ending before it starts
    """
    timeframe = timeframe.upper()
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Unknown timeframe '{timeframe}', expected one of {list(TIMEFRAMES)}")

    today = _midnight(now)
    range_days = 0

    if timeframe == "D":
        first = today.replace(hour=DAY_FIRST_HOUR)
        slots = [first + timedelta(hours=h) for h in range(DAY_LAST_HOUR - DAY_FIRST_HOUR + 1)]
        window_end = today.replace(hour=DAY_LAST_HOUR) + timedelta(hours=1)
        step = timedelta(hours=1)
    elif timeframe in ("W", "M"):
        days = 7 if timeframe == "W" else 30
        slots = _daily_slots(today - timedelta(days=days - 1), today)
        window_end = today + timedelta(days=1)
        step = timedelta(days=1)
    elif timeframe == "Y":
        slots = _daily_slots(today.replace(month=1, day=1), today, step_days=7)
        window_end = today + timedelta(days=1)
        step = timedelta(days=7)
    else:
        if start is None or end is None:
            return []
        range_start = _as_local_midnight(start, now)
        range_end = _as_local_midnight(end, now)
        if range_end < range_start:
            raise ValueError("Custom range end is before its start")
        range_days = (range_end - range_start).days + 1
        step_days = 1 if range_days <= CUSTOM_DAILY_MAX_DAYS else 7
        slots = _daily_slots(range_start, range_end, step_days=step_days)
        window_end = range_end + timedelta(days=1)
        step = timedelta(days=step_days)

    points = [
        SeriesPoint(label=_slot_label(timeframe, slots, i, range_days), start=slot)
        for i, slot in enumerate(slots)
    ]
    counts = [{"total": 0, "recycle": 0, "compost": 0, "trash": 0} for _ in slots]

    window_start = slots[0]
    for d in parse_detections(detections):
        ts = align_timestamp(d.created_at, now)
        if ts < window_start or ts >= window_end:
            continue
        index = min(int((ts - window_start) / step), len(slots) - 1)
        counts[index]["total"] += 1
        if d.category is not None:
            counts[index][d.category.value] += 1

    return [point.model_copy(update=c) for point, c in zip(points, counts)]


def _slot_label(timeframe: str, slots: List[datetime], index: int, range_days: int) -> str:
    slot = slots[index]

    if timeframe == "D":
        return _hour_label(slot)
    if timeframe == "W":
        return WEEKDAYS[slot.weekday()]
    if timeframe == "M":
        return _date_label(slot) if index % 2 == 0 else ""
    if timeframe == "Y":
        previous = slots[index - 1] if index > 0 else None
        if previous is None or previous.month != slot.month:
            return MONTHS[slot.month - 1]
        return ""

    if range_days <= CUSTOM_FULL_LABEL_MAX_DAYS:
        return _date_label(slot)
    if index % math.ceil(len(slots) / 10) == 0:
        return _date_label(slot)
    return ""


def series_totals(points: Iterable[SeriesPoint]) -> dict:
    """Sum a series back into per-category totals."""
    totals = {"total": 0, Category.RECYCLE.value: 0, Category.COMPOST.value: 0, Category.TRASH.value: 0}
    for p in points:
        totals["total"] += p.total
        totals["recycle"] += p.recycle
        totals["compost"] += p.compost
        totals["trash"] += p.trash
    return totals
