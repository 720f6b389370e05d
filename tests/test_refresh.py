"""Tests for the refresh controller state machine and the randomized timer."""

import random

import pytest

from waste_metrics.data_source import DETECTIONS, STATIONS
from waste_metrics.errors import FetchError
from waste_metrics.models import MetricsSnapshot
from waste_metrics.refresh import RefreshController, RefreshStatus
from waste_metrics.scheduling import RandomizedTimer


def snap(total: int) -> MetricsSnapshot:
    return MetricsSnapshot(total=total, all_time=total)


class SequenceFetch:
    """Returns (or raises) the queued results in order; the last one repeats."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self.during = None

    def __call__(self):
        self.calls += 1
        if self.during is not None:
            self.during()
        result = self.results[min(self.calls, len(self.results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


def test_start_runs_mount_refresh(fake_source):
    fetch = SequenceFetch(snap(3))
    controller = RefreshController(fetch, source=fake_source, tables=[DETECTIONS])

    assert controller.state.status is RefreshStatus.IDLE
    assert controller.snapshot.total == 0

    controller.start()

    assert fetch.calls == 1
    assert controller.state.status is RefreshStatus.IDLE
    assert controller.snapshot.total == 3
    assert controller.refresh_count == 1


def test_change_notification_triggers_refresh(fake_source):
    fetch = SequenceFetch(snap(1), snap(2))
    controller = RefreshController(fetch, source=fake_source, tables=[DETECTIONS, STATIONS])
    controller.start()

    fake_source.add(DETECTIONS, {"category": "recycle"})

    assert fetch.calls == 2
    assert controller.snapshot.total == 2


def test_notifications_during_refresh_are_coalesced(fake_source):
    fetch = SequenceFetch(snap(1), snap(2))
    controller = RefreshController(fetch, source=fake_source, tables=[DETECTIONS])
    coalesced = []

    def notify_twice():
        if fetch.calls == 1:
            assert controller.state.status is RefreshStatus.REFRESHING
            coalesced.append(controller.trigger("change"))
            coalesced.append(controller.trigger("change"))

    fetch.during = notify_twice
    controller.start()

    assert coalesced == [False, False]
    assert fetch.calls == 2
    assert controller.snapshot.total == 2
    assert controller.state.status is RefreshStatus.IDLE


def test_failed_refresh_keeps_stale_snapshot(fake_source):
    fetch = SequenceFetch(snap(5), FetchError(DETECTIONS, "timeout"), snap(6))
    controller = RefreshController(fetch)
    controller.start()

    controller.trigger()

    state = controller.state
    assert state.status is RefreshStatus.FAILED
    assert state.snapshot.total == 5
    assert "timeout" in state.error
    assert state.to_dict()["snapshot"]["total"] == 5

    controller.trigger()

    assert controller.state.status is RefreshStatus.IDLE
    assert controller.state.error is None
    assert controller.snapshot.total == 6


def test_unexpected_errors_also_fail_softly():
    controller = RefreshController(SequenceFetch(RuntimeError("boom")))

    controller.start()

    assert controller.state.status is RefreshStatus.FAILED
    assert controller.snapshot == MetricsSnapshot.zero()


def test_close_releases_subscriptions_once(fake_source):
    fetch = SequenceFetch(snap(1))
    controller = RefreshController(fetch, source=fake_source, tables=[DETECTIONS, STATIONS])
    controller.start()
    assert fake_source.hub.subscriber_count(DETECTIONS) == 1

    controller.close()
    controller.close()

    assert controller.closed
    assert fake_source.hub.subscriber_count(DETECTIONS) == 0
    assert fake_source.hub.subscriber_count(STATIONS) == 0

    fake_source.add(DETECTIONS, {})
    assert controller.trigger() is False
    assert fetch.calls == 1


def test_result_arriving_after_close_is_dropped():
    fetch = SequenceFetch(snap(1), snap(99))
    controller = RefreshController(fetch)
    controller.start()

    fetch.during = controller.close
    assert controller.trigger() is True

    assert controller.snapshot.total == 1
    assert controller.refresh_count == 1


def test_start_after_close_does_nothing(fake_source):
    fetch = SequenceFetch(snap(1))
    controller = RefreshController(fetch, source=fake_source, tables=[DETECTIONS])
    controller.close()

    controller.start()

    assert fetch.calls == 0
    assert fake_source.hub.subscriber_count(DETECTIONS) == 0


def test_tables_require_a_source():
    with pytest.raises(ValueError):
        RefreshController(SequenceFetch(snap(1)), tables=[DETECTIONS])


def test_timer_ticks_and_refreshes(scheduler):
    ticks = []
    fetch = SequenceFetch(snap(1))
    controller = RefreshController(
        fetch,
        scheduler=scheduler,
        timer_range_ms=(2000, 4000),
        rng=random.Random(1),
        ticker=lambda: ticks.append(scheduler.now),
    )
    controller.start()

    assert len(scheduler.pending) == 1
    assert 2.0 <= scheduler.pending[0].due <= 4.0

    scheduler.advance(4.0)
    assert len(ticks) == 1
    assert fetch.calls == 2

    scheduler.advance(20.0)
    assert 5 <= len(ticks) <= 11
    assert fetch.calls == len(ticks) + 1

    controller.close()
    assert scheduler.pending == []
    scheduler.advance(10.0)
    assert fetch.calls == len(ticks) + 1


def test_randomized_timer_redraws_interval_within_range(scheduler):
    fired = []
    timer = RandomizedTimer(scheduler, lambda: fired.append(1), min_ms=2000, max_ms=4000, rng=random.Random(3))
    timer.start()

    delays = set()
    for _ in range(20):
        delays.add(timer.last_delay_ms)
        assert 2000 <= timer.last_delay_ms <= 4000
        scheduler.advance(timer.last_delay_ms / 1000)

    assert len(fired) == 20
    assert len(delays) > 1
    assert timer.is_running()


def test_randomized_timer_rearms_after_callback_error(scheduler):
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("tick failed")

    timer = RandomizedTimer(scheduler, flaky, min_ms=1000, max_ms=1000)
    timer.start()
    scheduler.advance(3.0)

    assert len(calls) == 3
    assert len(scheduler.pending) == 1

    timer.cancel()
    assert not timer.is_running()
    assert scheduler.pending == []


def test_randomized_timer_rejects_bad_range(scheduler):
    with pytest.raises(ValueError):
        RandomizedTimer(scheduler, lambda: None, min_ms=4000, max_ms=2000)


def test_close_while_timer_is_arming_cancels_it(scheduler, monkeypatch):
    controller = RefreshController(SequenceFetch(snap(1)), scheduler=scheduler, timer_range_ms=(2000, 4000))
    arm = RandomizedTimer.start

    def close_then_arm(timer):
        controller.close()
        arm(timer)

    monkeypatch.setattr(RandomizedTimer, "start", close_then_arm)
    controller.start()

    assert controller.closed
    assert scheduler.pending == []
    assert controller.refresh_count == 0
