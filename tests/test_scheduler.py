"""
Tests for the scheduler predicate and polling driver.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from inkshot.models import CaptureResult, isoformat
from inkshot.scheduler import Scheduler, due_profiles, is_due

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def profile(**overrides):
    data = {'id': 'p1', 'enabled': True, 'refreshInterval': 60, 'lastRun': None}
    data.update(overrides)
    return data


def test_due_after_interval_elapsed():
    assert is_due(profile(lastRun=isoformat(NOW - timedelta(seconds=90))), NOW) is True


def test_not_due_before_interval():
    assert is_due(profile(lastRun=isoformat(NOW - timedelta(seconds=30))), NOW) is False


def test_due_exactly_at_interval():
    assert is_due(profile(lastRun=isoformat(NOW - timedelta(seconds=60))), NOW) is True


def test_never_run_is_due():
    assert is_due(profile(), NOW) is True


def test_manual_only_and_disabled_never_due():
    assert is_due(profile(refreshInterval=0), NOW) is False
    assert is_due(profile(enabled=False), NOW) is False


def test_due_profiles_filters():
    profiles = [
        profile(id='due'),
        profile(id='recent', lastRun=isoformat(NOW - timedelta(seconds=5))),
        profile(id='manual', refreshInterval=0),
    ]
    assert [p['id'] for p in due_profiles(profiles, NOW)] == ['due']


class RecordingService:

    def __init__(self):
        self.ticks = 0
        self.cleanups = []

    async def capture_due(self):
        self.ticks += 1
        return {'p1': CaptureResult(success=True), 'p2': CaptureResult.failed('http://h/', 'timeout')}

    def cleanup(self, max_age_hours, max_count):
        self.cleanups.append((max_age_hours, max_count))
        return 0


def test_run_once_captures_and_sweeps():
    service = RecordingService()
    scheduler = Scheduler(service, retention={'max_age_hours': 24, 'max_count': 50})

    results = asyncio.run(scheduler.run_once())

    assert set(results) == {'p1', 'p2'}
    assert service.cleanups == [(24, 50)]


def test_start_and_stop():
    service = RecordingService()

    async def scenario():
        scheduler = Scheduler(service, poll_interval=0.01)
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.05)
        await scheduler.stop()
        return scheduler.running

    assert asyncio.run(scenario()) is False
    assert service.ticks >= 2
    assert service.cleanups == []
