"""
Unit test fixtures. Pure functions and in-process fakes; no database.
"""
import pytest


@pytest.fixture
def fake_clock():
    """Manually advanced monotonic clock for time-window tests."""

    class Clock:
        def __init__(self):
            self.now = 1000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return Clock()
