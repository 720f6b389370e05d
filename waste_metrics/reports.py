"""Impact and admin reports built on top of the aggregator."""

from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

from waste_metrics.aggregator import align_timestamp, parse_detections, round_half_up
from waste_metrics.models import (
    AdminMetrics,
    DIVERTED_CATEGORIES,
    ImpactFactor,
    ImpactReport,
    Station,
)

CO2_KG_PER_TREE = 21.0          # Yearly CO2 absorbed by one tree
CO2_KG_PER_CAR_DAY = 411.0      # Daily CO2 of an average car


def impact_report(
    detections: Iterable[Any],
    impact_factors: Mapping[str, ImpactFactor],
    now: datetime,
) -> ImpactReport:
    """Savings from diverted items plus week-over-week growth."""
    parsed = parse_detections(detections)
    total = len(parsed)
    if total == 0:
        return ImpactReport()

    diverted = [d for d in parsed if d.category in DIVERTED_CATEGORIES]
    co2 = water = energy = 0.0
    for d in diverted:
        factor = impact_factors.get(d.item) if d.item else None
        if factor is None:
            continue
        co2 += factor.co2_saved_kg
        water += factor.water_saved_gal
        energy += factor.energy_saved_kwh

    week_start = now - timedelta(days=7)
    previous_start = now - timedelta(days=14)
    stamps = [align_timestamp(d.created_at, now) for d in parsed]
    this_week = sum(1 for ts in stamps if ts >= week_start)
    previous_week = sum(1 for ts in stamps if previous_start <= ts < week_start)
    growth = (this_week - previous_week) / previous_week * 100 if previous_week else 0.0

    return ImpactReport(
        total_items=total,
        diverted_items=len(diverted),
        diversion_rate=round_half_up(len(diverted) / total * 100, 1),
        co2_saved_kg=co2,
        water_saved_gal=water,
        energy_saved_kwh=energy,
        trees_saved=co2 / CO2_KG_PER_TREE,
        cars_off_road=co2 / CO2_KG_PER_CAR_DAY,
        this_week=this_week,
        previous_week=previous_week,
        weekly_growth=round_half_up(growth, 1),
    )


def months_ago(now: datetime, months: int) -> datetime:
    """Same wall-clock time `months` calendar months earlier, clamped to month end."""
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    next_month = datetime(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return now.replace(year=year, month=month, day=min(now.day, last_day))


def platform_usage(recent: int, previous: int) -> int:
    """Month-over-month change in detections, as a whole percentage."""
    if previous > 0:
        return int(round_half_up((recent - previous) / previous * 100))
    if recent > 0:
        return 100
    return 0


def admin_metrics(
    total_users: int,
    total_organizations: int,
    stations: Iterable[Station],
    recent_detections: int,
    previous_detections: int,
    active_users: int = 0,
) -> AdminMetrics:
    station_list = list(stations)
    return AdminMetrics(
        total_users=total_users,
        active_users=active_users,
        total_organizations=total_organizations,
        stations=len(station_list),
        active_stations=sum(1 for s in station_list if s.is_active),
        platform_usage=platform_usage(recent_detections, previous_detections),
    )
