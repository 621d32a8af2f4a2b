"""Shared fixtures: deterministic ephemeris and controllable sources."""

import math
from datetime import datetime, timezone

import pytest

from lunar_guide.ephemeris import MoonPosition
from lunar_guide.guidance import GeoPosition, GuidanceCalculator


FIXED_TIME = datetime(2024, 3, 25, 22, 0, 0, tzinfo=timezone.utc)


class FixedEphemeris:
    """Always reports the same north-referenced azimuth/altitude."""

    def __init__(self, azimuth: float = 200.0, altitude: float = 30.0,
                 illumination: float = 0.75):
        self.azimuth = azimuth
        self.altitude = altitude
        self.illumination = illumination
        self.calls = []

    def position_of(self, when, latitude, longitude):
        self.calls.append((when, latitude, longitude))
        return MoonPosition(
            azimuth_rad=math.radians(self.azimuth - 180.0),
            altitude_rad=math.radians(self.altitude),
        )

    def illumination_of(self, when):
        return self.illumination


class FakeStream:
    def __init__(self):
        self.stop_calls = 0

    @property
    def stopped(self):
        return self.stop_calls > 0

    def stop(self):
        self.stop_calls += 1


class DeferredMediaSource:
    """Media source whose outcome the test decides later."""

    def __init__(self):
        self.on_ready = None
        self.on_error = None
        self.requests = 0

    def acquire(self, on_ready, on_error):
        self.requests += 1
        self.on_ready = on_ready
        self.on_error = on_error

    def resolve(self, stream=None):
        stream = stream or FakeStream()
        self.on_ready(stream)
        return stream

    def reject(self, error):
        self.on_error(error)


class FakeWatch:
    def __init__(self):
        self.cancel_calls = 0

    @property
    def cancelled(self):
        return self.cancel_calls > 0

    def cancel(self):
        self.cancel_calls += 1


class DeferredLocationSource:
    """Location source that delivers fixes and errors on demand."""

    def __init__(self):
        self.on_fix = None
        self.on_error = None
        self.options = None
        self.watches = []

    def watch(self, on_fix, on_error, options):
        self.on_fix = on_fix
        self.on_error = on_error
        self.options = options
        watch = FakeWatch()
        self.watches.append(watch)
        return watch

    def fix(self, latitude=41.0, longitude=29.0, acquired_at=None):
        self.on_fix(GeoPosition(latitude, longitude, acquired_at=acquired_at))

    def reject(self, error):
        self.on_error(error)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def ephemeris():
    return FixedEphemeris()


@pytest.fixture
def calculator(ephemeris):
    return GuidanceCalculator(ephemeris, clock=lambda: FIXED_TIME)


@pytest.fixture
def media_source():
    return DeferredMediaSource()


@pytest.fixture
def location_source():
    return DeferredLocationSource()


@pytest.fixture
def clock():
    return FakeClock()
