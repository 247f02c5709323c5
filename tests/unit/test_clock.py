"""Test WallClock and SimClock."""

import time

import pytest

from eventcore.core.clock import SimClock, WallClock


class TestWallClock:
    def test_monotonic_increases(self):
        clock = WallClock()
        first = clock.monotonic()
        second = clock.monotonic()
        assert second >= first

    def test_sleep_blocks(self):
        clock = WallClock()
        start = time.monotonic()
        clock.sleep(0.02)
        assert time.monotonic() - start >= 0.015

    def test_sleep_zero_returns_immediately(self):
        WallClock().sleep(0)  # Should not raise


class TestSimClock:
    def test_default_start(self):
        assert SimClock().monotonic() == 0.0

    def test_custom_start(self, sim_clock):
        assert sim_clock.monotonic() == 100.0

    def test_sleep_advances_without_waiting(self, sim_clock):
        start = time.monotonic()
        sim_clock.sleep(3600)
        assert time.monotonic() - start < 1.0
        assert sim_clock.monotonic() == 3700.0

    def test_sleeps_are_recorded(self, sim_clock):
        sim_clock.sleep(1.0)
        sim_clock.sleep(0.5)
        assert sim_clock.sleeps == [1.0, 0.5]
        assert sim_clock.total_slept == 1.5

    def test_advance_is_not_recorded_as_sleep(self, sim_clock):
        sim_clock.advance(10)
        assert sim_clock.monotonic() == 110.0
        assert sim_clock.sleeps == []

    def test_cannot_go_backwards(self, sim_clock):
        with pytest.raises(ValueError, match="cannot go backwards"):
            sim_clock.advance(-1)

    def test_negative_sleep_rejected(self, sim_clock):
        with pytest.raises(ValueError, match="negative"):
            sim_clock.sleep(-0.1)
