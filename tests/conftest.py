"""Shared fixtures: fixed clock, manual scheduler, in-memory data sources, API client."""

import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from waste_metrics.data_source import DataSource, Subscription
from waste_metrics.scheduling import ScheduledCall, Scheduler
from server.app import create_app
from server.data_source import SqlDataSource
from server.database import create_db_engine, create_session_factory
from server.notifications import LocalChangeHub
from server.views import ViewRegistry
from sharedUtils.config.models import AppConfig, EmailConfig, LoggingConfig
from sharedUtils.mailer.base_mailer import EmailMessage, EmailSendError, Mailer

# Wednesday
FIXED_NOW = datetime(2024, 5, 15, 11, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, days_ago: int = 0) -> datetime:
    """A time on FIXED_NOW's day (or `days_ago` days earlier)."""
    return FIXED_NOW.replace(hour=hour, minute=minute) - timedelta(days=days_ago)


def detection(category: Optional[str], hour: int = 9, item: Optional[str] = None,
              device_id: str = "station-a1", days_ago: int = 0, minute: int = 0) -> dict:
    return {
        "category": category,
        "item": item,
        "device_id": device_id,
        "created_at": at(hour, minute, days_ago),
    }


class ManualCall(ScheduledCall):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler driven by advance(); nothing fires on its own."""

    def __init__(self):
        self.now = 0.0
        self.calls: List[ManualCall] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualCall:
        call = ManualCall(self.now + delay, callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[ManualCall]:
        return [c for c in self.calls if not c.cancelled and not c.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [c for c in self.pending if c.due <= target]
            if not due:
                break
            call = min(due, key=lambda c: c.due)
            self.now = call.due
            call.fired = True
            call.callback()
        self.now = target


class FakeDataSource(DataSource):
    """
    In-memory rows with the same filter semantics as the SQL source.

    `failing` holds tables whose reads raise; `queries` records every read.
    """

    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables: Dict[str, List[dict]] = {k: list(v) for k, v in (tables or {}).items()}
        self.failing = set()
        self.queries: List[tuple] = []
        self.hub = LocalChangeHub()

    def query(self, table, filters=None):
        self.queries.append((table, dict(filters or {})))
        if table in self.failing:
            raise RuntimeError(f"{table} unavailable")
        return [dict(row) for row in self.tables.get(table, []) if self._matches(row, filters or {})]

    def subscribe(self, table, on_change) -> Subscription:
        return self.hub.subscribe(table, on_change)

    def add(self, table: str, row: dict) -> None:
        self.tables.setdefault(table, []).append(row)
        self.hub.publish(table)

    def queried(self, table: str) -> int:
        return sum(1 for name, _ in self.queries if name == table)

    @staticmethod
    def _matches(row, filters) -> bool:
        for key, value in filters.items():
            name, _, operator = key.partition("__")
            actual = row.get(name)
            if operator == "gte":
                if actual is None or actual < value:
                    return False
            elif operator == "lt":
                if actual is None or actual >= value:
                    return False
            elif isinstance(value, (list, tuple, set, frozenset)):
                if actual not in value:
                    return False
            elif actual != value:
                return False
        return True


class FakeMailer(Mailer):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[EmailMessage] = []

    def send(self, message: EmailMessage):
        if self.fail:
            raise EmailSendError("provider down")
        self.sent.append(message)
        return "msg-1"


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def fake_source():
    return FakeDataSource()


@pytest.fixture
def sql_source():
    engine = create_db_engine("sqlite://")
    source = SqlDataSource(create_session_factory(engine), LocalChangeHub())
    source.create_all()
    yield source
    engine.dispose()


@pytest.fixture
def app_config():
    return AppConfig(
        logging=LoggingConfig(file="", format="%(levelname)s %(message)s", console_export=False),
        email=EmailConfig(mail_to=["team@example.com"], mail_from="site@example.com"),
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def registry(sql_source, scheduler, app_config):
    registry = ViewRegistry(
        sql_source,
        clock=lambda: FIXED_NOW,
        metrics_config=app_config.metrics,
        refresh_config=app_config.refresh,
        demo_feed_config=app_config.demo_feed,
        scheduler=scheduler,
        rng=random.Random(7),
    )
    yield registry
    registry.close_all()


@pytest.fixture
def client(sql_source, registry, mailer, app_config):
    app = create_app(source=sql_source, registry=registry, mailer=mailer, config=app_config)
    app.config["TESTING"] = True
    return app.test_client()
