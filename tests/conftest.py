"""Shared fixtures for the eventcore test suite."""

from __future__ import annotations

import pytest

from eventcore.bus.event_bus import EventBus
from eventcore.core.clock import SimClock
from eventcore.core.config import Settings
from eventcore.execution.task_queue import QueuePool
from eventcore.loader import BulkLoader
from eventcore.runtime import Runtime


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    """Return a SimClock starting at t=100s."""
    return SimClock(start=100.0)


# ---------------------------------------------------------------------------
# Queues
# ---------------------------------------------------------------------------

@pytest.fixture
def queue_pool():
    """A fresh QueuePool, shut down after the test."""
    pool = QueuePool(max_workers=4, thread_name_prefix="test")
    yield pool
    pool.shutdown(wait=True)


# ---------------------------------------------------------------------------
# Event bus
# ---------------------------------------------------------------------------

@pytest.fixture
def event_bus() -> EventBus:
    """Return a fresh EventBus instance."""
    return EventBus()


# ---------------------------------------------------------------------------
# Loader / runtime
# ---------------------------------------------------------------------------

@pytest.fixture
def bulk_loader(event_bus, queue_pool, sim_clock) -> BulkLoader:
    """A loader with one simulated second of latency per item."""
    return BulkLoader(event_bus, queue_pool, clock=sim_clock, per_item_latency=1.0)


@pytest.fixture
def runtime(sim_clock):
    """A Runtime on a simulated clock, closed after the test."""
    rt = Runtime(Settings(queue={"max_workers": 4}), clock=sim_clock)
    yield rt
    rt.close()
