"""Shared fixtures for the adaptation pipeline tests."""

import pytest

from cogadapt.core.contracts import Point, SampleEvent, TrackerConfig
from cogadapt.sensors.mouse_processor import MouseSignalProcessor


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def processor(clock):
    proc = MouseSignalProcessor(TrackerConfig(), clock=clock)
    proc.start()
    return proc


@pytest.fixture
def feed():
    """Feed (x, y, t) triples as pointer samples."""
    def _feed(processor, points):
        for x, y, t in points:
            processor.on_sample(SampleEvent(Point(x, y), t))
    return _feed
