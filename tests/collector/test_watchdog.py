from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from devscope.collector.watchdog import Watchdog, WatchdogLoop
from devscope.config.settings import CollectorConfig


class Clock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def access_log(tmp_path):
    path = tmp_path / "access.log"
    path.write_text("".join(f'127.0.0.1 - - "GET /page/{i} HTTP/1.1" 200\n' for i in range(40)))
    return str(path)


def test_below_threshold_raises_nothing(clock, access_log) -> None:
    watchdog = Watchdog(clock=clock)
    assert watchdog.check(10.0, 50, access_log) is None
    assert watchdog.get_latest() is None


def test_breach_captures_recent_access_lines(clock, access_log) -> None:
    watchdog = Watchdog(suspect_line_count=15, clock=clock)

    incident = watchdog.check(91.0, 50, access_log)

    assert incident.load_percent == 91.0
    assert incident.timestamp == clock.now
    assert len(incident.suspect_entries) == 15
    assert incident.suspect_entries[-1].endswith('"GET /page/39 HTTP/1.1" 200')
    assert watchdog.incidents_raised == 1


def test_cooldown_keeps_first_incident(clock, access_log) -> None:
    watchdog = Watchdog(cooldown_seconds=60, clock=clock)
    first = watchdog.check(80.0, 50, access_log)

    clock.advance(30)
    assert watchdog.check(99.0, 50, access_log) is first

    clock.advance(31)
    second = watchdog.check(99.0, 50, access_log)
    assert second is not first
    assert second.load_percent == 99.0
    assert watchdog.incidents_raised == 2


def test_incident_expires(clock, access_log) -> None:
    watchdog = Watchdog(expiry_seconds=300, clock=clock)
    incident = watchdog.check(80.0, 50, access_log)

    clock.advance(299)
    assert watchdog.get_latest() is incident

    clock.advance(2)
    assert watchdog.get_latest() is None


def test_unreadable_log_is_reported_inline(clock, tmp_path) -> None:
    watchdog = Watchdog(clock=clock)
    incident = watchdog.check(80.0, 50, str(tmp_path / "missing.log"))
    assert incident.suspect_entries[0].startswith("Error reading log:")


def test_no_access_log_configured(clock) -> None:
    incident = Watchdog(clock=clock).check(80.0, 50, "")
    assert incident.suspect_entries == []


class FixedMonitor:
    def __init__(self, cpu: float):
        self.cpu = cpu

    def sample(self):
        return 120.0, self.cpu, 2


@pytest.mark.asyncio
async def test_loop_tick_feeds_watchdog(clock) -> None:
    watchdog = Watchdog(clock=clock)
    config = CollectorConfig(cpu_threshold=40, watch_process_pattern="myapp")
    loop = WatchdogLoop(watchdog, get_config=lambda: config, interval=0.01)
    loop.monitors = {"myapp": FixedMonitor(cpu=75.0)}

    await loop.tick()

    assert watchdog.get_latest().load_percent == 75.0


@pytest.mark.asyncio
async def test_loop_tick_checks_off_the_event_loop(clock) -> None:
    loop_thread = threading.get_ident()
    seen = []

    class RecordingWatchdog(Watchdog):
        def check(self, load_percent, threshold, log_path):
            seen.append(threading.get_ident())
            return super().check(load_percent, threshold, log_path)

    watchdog = RecordingWatchdog(clock=clock)
    config = CollectorConfig(cpu_threshold=40, watch_process_pattern="myapp")
    loop = WatchdogLoop(watchdog, get_config=lambda: config)
    loop.monitors = {"myapp": FixedMonitor(cpu=10.0)}

    await loop.tick()

    assert len(seen) == 1
    assert seen[0] != loop_thread
