"""Tests for the SQLAlchemy data source and the demo seed."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from waste_metrics.data_source import DETECTIONS, IMPACT_FACTORS, ORGANIZATIONS, STATIONS
from waste_metrics.errors import FetchError
from server.data_source import SqlDataSource
from server.database import create_db_engine, create_session_factory
from server.seed import seed_demo

from conftest import FIXED_NOW, detection


@pytest.fixture
def populated(sql_source):
    sql_source.insert(ORGANIZATIONS, {"id": "org-a", "name": "A"})
    sql_source.insert_many(STATIONS, [
        {"id": "station-a1", "organization_id": "org-a"},
        {"id": "station-a2", "organization_id": "org-a", "status": "offline"},
    ])
    sql_source.insert_many(DETECTIONS, [
        detection("recycle", hour=8, device_id="station-a1"),
        detection("trash", hour=9, device_id="station-a2"),
        detection("compost", hour=9, device_id="station-b1", days_ago=3),
    ])
    return sql_source


def test_query_all_rows(populated):
    rows = populated.query(DETECTIONS)

    assert len(rows) == 3
    assert set(rows[0]) == {"id", "category", "item", "created_at", "device_id"}


def test_equality_and_membership_filters(populated):
    assert [r["id"] for r in populated.query(STATIONS, {"status": "offline"})] == ["station-a2"]
    rows = populated.query(DETECTIONS, {"device_id": ["station-a1", "station-a2"]})
    assert {r["device_id"] for r in rows} == {"station-a1", "station-a2"}


def test_range_filters(populated):
    since = FIXED_NOW - timedelta(days=1)

    recent = populated.query(DETECTIONS, {"created_at__gte": since})
    older = populated.query(DETECTIONS, {"created_at__lt": since})

    assert len(recent) == 2
    assert len(older) == 1


def test_timestamps_come_back_as_aware_utc(populated):
    row = populated.query(DETECTIONS, {"device_id": "station-a1"})[0]

    assert row["created_at"] == FIXED_NOW.replace(hour=8)
    assert row["created_at"].tzinfo is not None


def test_offset_timestamps_are_normalised(sql_source):
    plus_two = timezone(timedelta(hours=2))
    sql_source.insert(DETECTIONS, {"category": "trash", "created_at": datetime(2024, 5, 15, 12, 0, tzinfo=plus_two)})

    row = sql_source.query(DETECTIONS)[0]

    assert row["created_at"] == datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)


def test_insert_publishes_change(sql_source):
    changes = []
    subscription = sql_source.subscribe(DETECTIONS, lambda: changes.append(1))

    sql_source.insert(DETECTIONS, detection("recycle"))
    sql_source.insert(STATIONS, {"id": "other"})
    assert changes == [1]

    subscription.close()
    sql_source.insert(DETECTIONS, detection("recycle"))
    assert changes == [1]


def test_empty_insert_publishes_nothing(sql_source):
    changes = []
    sql_source.subscribe(DETECTIONS, lambda: changes.append(1))

    assert sql_source.insert_many(DETECTIONS, []) == 0
    assert changes == []


def test_impact_factor_item_alias_and_unknown_keys(sql_source):
    sql_source.insert(IMPACT_FACTORS, {"item": "paper", "co2_saved_kg": 0.03, "notes": "ignored"})

    rows = sql_source.query(IMPACT_FACTORS)

    assert rows == [{"item_key": "paper", "co2_saved_kg": 0.03, "water_saved_gal": 0.0, "energy_saved_kwh": 0.0}]


def test_unknown_table_and_column(sql_source):
    with pytest.raises(FetchError):
        sql_source.query("bins")
    with pytest.raises(FetchError):
        sql_source.query(DETECTIONS, {"colour": "green"})
    with pytest.raises(FetchError):
        sql_source.query(DETECTIONS, {"created_at__gt": FIXED_NOW})


def test_database_errors_become_fetch_errors():
    engine = create_db_engine("sqlite://")
    source = SqlDataSource(create_session_factory(engine))   # tables never created

    with pytest.raises(FetchError) as excinfo:
        source.query(DETECTIONS)

    assert excinfo.value.table == DETECTIONS
    engine.dispose()


def test_seed_demo_is_idempotent(sql_source):
    inserted = seed_demo(sql_source, days=3, rng=random.Random(9))

    assert inserted >= 60
    assert len(sql_source.query(STATIONS, {"organization_id": "demo-org-001"})) == 3
    assert len(sql_source.query(IMPACT_FACTORS)) > 0
    assert seed_demo(sql_source, days=3) == 0
    assert len(sql_source.query(DETECTIONS)) == inserted
