"""Blocking expectations for waiting on asynchronous outcomes.

Completion callbacks and bus handlers frequently run on a worker thread,
so a caller that wants to observe them must block on a condition rather
than assume that a returned call means delivery happened.  An
``Expectation`` is fulfilled from whichever thread observes the outcome;
``wait_for`` blocks the waiting thread until the expectations are met, an
inverted one is fulfilled, or the timeout elapses.

Over-fulfilment (a callback firing more often than expected) is a
contract violation: ``fulfill`` raises ``OverFulfillmentError`` and
``wait_for`` re-raises it on the waiting thread, because the first raise
usually happens on a worker where the queue only logs it.
"""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

from eventcore.bus.event_bus import Event, EventBus, SubscriptionHandle
from eventcore.core.enums import WaitResult
from eventcore.core.errors import OverFulfillmentError

# Fulfilment stamps; only their relative order is used.
_sequence = itertools.count(1)


class Expectation:
    """Something expected to happen *expected_count* times.

    An *inverted* expectation must NOT be fulfilled before the wait ends.
    """

    def __init__(
        self,
        description: str,
        *,
        expected_count: int = 1,
        inverted: bool = False,
        assert_for_over_fulfill: bool = True,
    ) -> None:
        if expected_count < 1:
            raise ValueError(f"expected_count must be >= 1, got {expected_count}")
        self.description = description
        self.expected_count = expected_count
        self.inverted = inverted
        self.assert_for_over_fulfill = assert_for_over_fulfill
        self.subscription: SubscriptionHandle | None = None
        self._lock = threading.Lock()
        self._waiters: list[threading.Condition] = []
        self._count = 0
        self._fulfilled_at: int | None = None
        self._over_fulfilled = False

    def __repr__(self) -> str:
        return (
            f"Expectation({self.description!r}, "
            f"{self._count}/{self.expected_count}"
            f"{', inverted' if self.inverted else ''})"
        )

    def fulfill(self) -> None:
        with self._lock:
            self._count += 1
            if self._count == self.expected_count:
                self._fulfilled_at = next(_sequence)
            elif self._count > self.expected_count and self.assert_for_over_fulfill:
                self._over_fulfilled = True
            count = self._count
            over = self._over_fulfilled and count > self.expected_count
            waiters = list(self._waiters)
        for condition in waiters:
            with condition:
                condition.notify_all()
        if over:
            raise OverFulfillmentError(
                f"{self.description!r} fulfilled {count} times, "
                f"expected {self.expected_count}"
            )

    def _add_waiter(self, condition: threading.Condition) -> None:
        with self._lock:
            self._waiters.append(condition)

    def _remove_waiter(self, condition: threading.Condition) -> None:
        with self._lock:
            self._waiters.remove(condition)

    @property
    def is_fulfilled(self) -> bool:
        return self._fulfilled_at is not None

    @property
    def fulfillment_count(self) -> int:
        return self._count

    @property
    def over_fulfilled(self) -> bool:
        return self._over_fulfilled


def wait_for(
    expectations: Sequence[Expectation],
    timeout: float,
    *,
    enforce_order: bool = False,
) -> WaitResult:
    """Block until *expectations* resolve.

    Returns ``COMPLETED`` once every regular expectation is fulfilled and,
    when inverted expectations are present, the full *timeout* passed
    without any of them being fulfilled.  With *enforce_order* the regular
    expectations must have been fulfilled in the order given.

    Raises ``OverFulfillmentError`` if any expectation was over-fulfilled.
    """
    regular = [e for e in expectations if not e.inverted]
    inverted = [e for e in expectations if e.inverted]
    deadline = time.monotonic() + timeout

    condition = threading.Condition()
    for e in expectations:
        e._add_waiter(condition)
    try:
        with condition:
            while True:
                _raise_if_over_fulfilled(expectations)
                if any(e.is_fulfilled for e in inverted):
                    return WaitResult.INVERTED_FULFILLMENT
                done = all(e.is_fulfilled for e in regular)
                if done and not inverted:
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    if not done:
                        return WaitResult.TIMED_OUT
                    break
                condition.wait(remaining)
    finally:
        for e in expectations:
            e._remove_waiter(condition)

    if enforce_order:
        stamps = [e._fulfilled_at for e in regular]
        if stamps != sorted(stamps):
            return WaitResult.INCORRECT_ORDER
    return WaitResult.COMPLETED


def _raise_if_over_fulfilled(expectations: Sequence[Expectation]) -> None:
    for e in expectations:
        if e.over_fulfilled:
            raise OverFulfillmentError(
                f"{e.description!r} fulfilled {e.fulfillment_count} times, "
                f"expected {e.expected_count}"
            )


def expect_event(
    bus: EventBus,
    name: str,
    *,
    source: Any = None,
    handler: Callable[[Event], bool] | None = None,
    description: str | None = None,
) -> Expectation:
    """Expectation fulfilled by the first matching event on *bus*.

    *handler* may inspect the event and return ``False`` to keep waiting.
    The subscription is removed once the expectation is fulfilled.
    """
    expectation = Expectation(description or f"event {name!r}")
    claimed = threading.Lock()

    def on_event(event: Event) -> None:
        if handler is not None and not handler(event):
            return
        if not claimed.acquire(blocking=False):
            return
        expectation.fulfill()
        if expectation.subscription is not None:
            bus.unsubscribe(expectation.subscription)

    expectation.subscription = bus.subscribe(name, on_event, source=source)
    if claimed.locked():
        # Fulfilled from another thread before the handle was stored.
        bus.unsubscribe(expectation.subscription)
    return expectation
