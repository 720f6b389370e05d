"""Tests for the pure aggregation functions."""

from datetime import datetime, timezone

import pytest

from waste_metrics.aggregator import (
    aggregate,
    impact_map,
    parse_detection,
    recent_items,
    round_half_up,
    top_items,
)
from waste_metrics.errors import AggregationInputError
from waste_metrics.models import Category, ImpactFactor, MetricsSnapshot, Station

from conftest import FIXED_NOW, at, detection


def test_two_detections_scenario():
    rows = [
        detection("recycle", hour=8, item="plastic_bottle"),
        detection("trash", hour=9, item="napkin"),
    ]

    snapshot = aggregate(rows, {"plastic_bottle": 0.5}, FIXED_NOW)

    assert snapshot.total == 2
    assert snapshot.recycle == 1
    assert snapshot.trash == 1
    assert snapshot.compost == 0
    assert snapshot.diversion_rate == 50.0
    assert snapshot.diversion_rate_display == "50.0%"
    assert snapshot.co2_saved_display == "0.5 kg"
    assert snapshot.rate_per_hour == 1
    assert snapshot.session_start == at(8)
    assert snapshot.session_minutes == 180
    assert snapshot.session_duration_display == "3h 0m"
    assert snapshot.this_week == 2
    assert snapshot.this_month == 2
    assert snapshot.all_time == 2
    assert snapshot.computed_at == FIXED_NOW


def test_empty_input_gives_zero_snapshot():
    snapshot = aggregate([], {}, FIXED_NOW)

    assert snapshot.total == 0
    assert snapshot.rate_per_hour == 0
    assert snapshot.diversion_rate_display == "0%"
    assert snapshot.co2_saved_display == "0.0 kg"
    assert snapshot.session_start is None
    assert MetricsSnapshot.zero().to_dict()["diversion_rate_display"] == "0%"


def test_category_counts_sum_to_total():
    rows = [detection(c, hour=h) for c, h in
            [("recycle", 8), ("compost", 8), ("trash", 9), ("TRASH", 9), (" Recycle ", 10)]]

    snapshot = aggregate(rows, {}, FIXED_NOW)

    assert snapshot.recycle == 2
    assert snapshot.trash == 2
    assert snapshot.recycle + snapshot.compost + snapshot.trash == snapshot.total
    assert snapshot.uncategorized == 0


def test_unknown_category_counts_only_in_total():
    rows = [detection("recycle"), detection("glass?"), detection(None)]

    snapshot = aggregate(rows, {}, FIXED_NOW)

    assert snapshot.total == 3
    assert snapshot.uncategorized == 2
    assert snapshot.recycle + snapshot.compost + snapshot.trash + snapshot.uncategorized == snapshot.total
    assert snapshot.diversion_rate == pytest.approx(33.3)


def test_diversion_rate_rises_with_diverted_items():
    rows = [detection("trash"), detection("trash"), detection("recycle")]
    before = aggregate(rows, {}, FIXED_NOW)

    after = aggregate(rows + [detection("compost")], {}, FIXED_NOW)

    assert after.diversion_rate > before.diversion_rate
    assert 0.0 <= after.diversion_rate <= 100.0


def test_co2_counts_only_diverted_items_with_factors():
    rows = [
        detection("recycle", item="aluminum_can"),
        detection("compost", item="banana_peel"),
        detection("trash", item="aluminum_can"),       # not diverted
        detection("recycle", item="mystery"),          # no factor
    ]
    factors = {
        "aluminum_can": ImpactFactor(item="aluminum_can", co2_saved_kg=0.17),
        "banana_peel": 0.05,
    }

    snapshot = aggregate(rows, factors, FIXED_NOW)

    assert snapshot.co2_saved_kg == 0.2
    assert snapshot.co2_saved_display == "0.2 kg"


def test_rate_is_zero_before_first_detection_of_the_day():
    rows = [detection("recycle", hour=10)]

    snapshot = aggregate(rows, {}, FIXED_NOW.replace(hour=9))

    assert snapshot.rate_per_hour == 0
    assert snapshot.session_minutes == 0


def test_session_window_stops_at_end_hour():
    rows = [detection("recycle", hour=h) for h in range(8, 17)]

    snapshot = aggregate(rows, {}, FIXED_NOW.replace(hour=20))

    # 9 items between 08:00 and the 17:00 cutoff
    assert snapshot.rate_per_hour == 1
    assert snapshot.session_minutes == 540


def test_session_only_counts_todays_detections():
    rows = [detection("recycle", hour=8, days_ago=1), detection("recycle", hour=10)]

    snapshot = aggregate(rows, {}, FIXED_NOW)

    assert snapshot.session_start == at(10)
    assert snapshot.rate_per_hour == 1


def test_period_counts():
    rows = [
        detection("recycle", days_ago=0),
        detection("recycle", days_ago=6),
        detection("recycle", days_ago=8),
        detection("recycle", days_ago=40),
    ]

    snapshot = aggregate(rows, {}, FIXED_NOW)

    assert snapshot.this_week == 2
    assert snapshot.this_month == 3
    assert snapshot.all_time == 4


def test_naive_timestamps_are_aligned_with_aware_now():
    rows = [{"category": "recycle", "created_at": FIXED_NOW.replace(hour=9, tzinfo=None)}]

    snapshot = aggregate(rows, {}, FIXED_NOW)

    assert snapshot.total == 1
    assert snapshot.this_week == 1


def test_malformed_rows_are_skipped():
    rows = [
        detection("recycle"),
        {"category": "recycle"},                        # no created_at
        {"category": "trash", "created_at": "garbage"},
        "not a row",
        {"category": "compost", "created_at": "2024-05-15T10:00:00+00:00"},
    ]

    snapshot = aggregate(rows, {}, FIXED_NOW)

    assert snapshot.total == 2
    assert snapshot.compost == 1


def test_parse_detection_errors():
    with pytest.raises(AggregationInputError):
        parse_detection({"category": "recycle", "created_at": None})
    with pytest.raises(AggregationInputError):
        parse_detection(42)

    parsed = parse_detection({"category": "Compost", "created_at": FIXED_NOW})
    assert parsed.category is Category.COMPOST


def test_active_stations_counted_from_scope():
    stations = [Station(id="a", status="active"), Station(id="b", status="offline"),
                Station(id="c", status="ACTIVE")]

    snapshot = aggregate([detection("recycle")], {}, FIXED_NOW, stations=stations)

    assert snapshot.active_stations == 2


def test_round_half_up():
    assert round_half_up(0.25, 1) == 0.3
    assert round_half_up(2.5) == 3.0
    assert round_half_up(66.65, 1) == 66.7
    assert round_half_up(33.333, 1) == 33.3


def test_impact_map_accepts_item_key_and_skips_invalid():
    factors = impact_map([
        {"item_key": "paper", "co2_saved_kg": 0.03},
        {"item": "can", "co2_saved_kg": 0.17, "water_saved_gal": 0.4},
        {"item": "bad", "co2_saved_kg": -1},
    ])

    assert set(factors) == {"paper", "can"}
    assert factors["can"].water_saved_gal == 0.4


def test_top_items_ordering_and_limit():
    rows = (
        [detection("recycle", item="plastic_bottle")] * 3
        + [detection("trash", item="napkin")] * 2
        + [detection("compost", item="banana_peel")]
        + [detection("recycle", item=None)] * 2
    )

    items = top_items(rows, limit=3)

    assert [i.name for i in items] == ["plastic_bottle", "napkin", "Unknown Item"]
    assert items[0].count == 3
    assert items[0].category is Category.RECYCLE
    assert items[0].percentage == pytest.approx(37.5)


def test_top_items_keeps_first_category_and_defaults_to_trash():
    rows = [
        {"category": "weird", "item": "cup", "created_at": at(8)},
        {"category": "recycle", "item": "cup", "created_at": at(9)},
    ]

    items = top_items(rows)

    assert items[0].category is Category.TRASH
    assert top_items([]) == []


def test_recent_items_window():
    rows = [
        detection("recycle", item="paper", days_ago=0),
        detection("recycle", item="paper", days_ago=3),
        detection("trash", item="napkin", days_ago=3),
        detection("trash", item="napkin", days_ago=3),
        detection("compost", item="banana_peel", days_ago=20),
    ]

    daily = recent_items(rows, "D", FIXED_NOW)
    weekly = recent_items(rows, "w", FIXED_NOW)
    monthly = recent_items(rows, "M", FIXED_NOW)

    assert [i.name for i in daily] == ["paper"]
    assert [i.name for i in weekly] == ["paper", "napkin"]
    assert len(monthly) == 3


def test_recent_items_rejects_unknown_timeframe():
    with pytest.raises(ValueError):
        recent_items([], "Q", datetime(2024, 1, 1, tzinfo=timezone.utc))
