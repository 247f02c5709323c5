"""Named-event broadcast bus.

Design goals
------------
1.  **Name-routed dispatching**: subscribers register for an exact event
    name, optionally narrowed by a source object (compared by identity,
    never dereferenced) and a payload predicate.
2.  **Synchronous, ordered delivery**: ``post()`` calls every matching
    handler on the posting thread, in registration order, before it
    returns.  ``post()`` is often called from inside queued work, so a
    waiter on another thread must block on a condition (see
    ``eventcore.expectations``) rather than assume delivery is done.
3.  **Isolation**: a failing handler is logged, counted, and recorded as
    a dead letter; the remaining handlers still run.
4.  **Owned, not global**: the bus is a plain instance owned by whoever
    composes the system (normally ``eventcore.runtime.Runtime``).

This module provides:

*  ``Event``: immutable broadcast message.
*  ``SubscriptionHandle``: token returned by ``subscribe()``.
*  ``EventBus``: thread-safe in-process implementation.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from eventcore.core.ids import new_id, utc_now

logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], None]
PayloadPredicate = Callable[[Mapping[str, Any]], bool]


class Event(BaseModel):
    """A named, payload-bearing broadcast message.

    ``payload`` is a read-only view over a private copy of the mapping it
    was built from; every subscriber sees the payload as posted.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    source: Any = None
    payload: Mapping[str, Any] = Field(default_factory=dict)
    event_id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("payload", mode="after")
    @classmethod
    def freeze_payload(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("payload")
    def dump_payload(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token identifying one subscription."""

    subscription_id: str
    event_name: str


@dataclass
class Subscription:
    handle: SubscriptionHandle
    handler: EventHandler
    source_filter: Any = None
    predicate: PayloadPredicate | None = None
    active: bool = True

    def matches(self, event: Event) -> bool:
        if not self.active:
            return False
        if self.source_filter is not None and self.source_filter is not event.source:
            return False
        if self.predicate is not None and not self.predicate(event.payload):
            return False
        return True


@dataclass
class DeadLetter:
    """Record of a handler failure."""

    event_name: str
    subscription_id: str
    event_id: str
    error: str
    timestamp: float = field(default_factory=time.monotonic)


class EventBus:
    """In-process publish/subscribe bus.

    Parameters
    ----------
    history_limit
        Number of posted events kept for ``get_history()``; ``0`` keeps
        none.
    """

    def __init__(self, *, history_limit: int = 1000) -> None:
        self._lock = threading.RLock()
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._by_id: dict[str, Subscription] = {}
        self._history: deque[Event] = deque(maxlen=history_limit)
        self._history_enabled = history_limit > 0

        # Observability
        self._error_counts: dict[str, int] = defaultdict(int)
        self._dead_letters: list[DeadLetter] = []
        self._messages_processed = 0

    # -- Subscriptions ----------------------------------------------------

    def subscribe(
        self,
        event_name: str,
        handler: EventHandler,
        *,
        source: Any = None,
        predicate: PayloadPredicate | None = None,
    ) -> SubscriptionHandle:
        """Register *handler* for events named *event_name*.

        When *source* is given only events posted with that exact object
        (``is``) are delivered.  When *predicate* is given it must return
        true for the event payload.
        """
        handle = SubscriptionHandle(subscription_id=new_id(), event_name=event_name)
        sub = Subscription(
            handle=handle,
            handler=handler,
            source_filter=source,
            predicate=predicate,
        )
        with self._lock:
            self._subscriptions[event_name].append(sub)
            self._by_id[handle.subscription_id] = sub
        logger.debug("Subscribed %s to %r", handle.subscription_id, event_name)
        return handle

    def subscribe_once(
        self,
        event_name: str,
        handler: EventHandler,
        *,
        source: Any = None,
        predicate: PayloadPredicate | None = None,
    ) -> SubscriptionHandle:
        """Like ``subscribe`` but the subscription removes itself after one delivery."""
        handle_box: list[SubscriptionHandle] = []

        def single_shot(event: Event) -> None:
            # Concurrent posts race here; only the one that removes it delivers.
            if self.unsubscribe(handle_box[0]):
                handler(event)

        handle = self.subscribe(
            event_name, single_shot, source=source, predicate=predicate,
        )
        handle_box.append(handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Remove a subscription. Returns ``False`` if it was already gone."""
        with self._lock:
            sub = self._by_id.pop(handle.subscription_id, None)
            if sub is None:
                return False
            sub.active = False
            subs = self._subscriptions.get(handle.event_name, [])
            self._subscriptions[handle.event_name] = [
                s for s in subs if s is not sub
            ]
            if not self._subscriptions[handle.event_name]:
                del self._subscriptions[handle.event_name]
        return True

    # -- Core API ----------------------------------------------------------

    def post(self, event: Event) -> int:
        """Deliver *event* to every matching subscription.

        Returns the number of handlers that ran successfully.  Posting
        with no subscribers is a no-op.
        """
        with self._lock:
            if self._history_enabled:
                self._history.append(event)
            snapshot = list(self._subscriptions.get(event.name, ()))

        delivered = 0
        for sub in snapshot:
            try:
                if not sub.matches(event):
                    continue
                sub.handler(event)
                delivered += 1
            except Exception as exc:
                self._record_failure(event, sub, exc)

        with self._lock:
            self._messages_processed += delivered
        return delivered

    def post_named(
        self,
        name: str,
        source: Any = None,
        payload: Mapping[str, Any] | None = None,
    ) -> Event:
        """Build an ``Event`` and post it. Returns the event."""
        event = Event(name=name, source=source, payload=payload or {})
        self.post(event)
        return event

    # -- Observability -----------------------------------------------------

    def subscriber_count(self, event_name: str | None = None) -> int:
        with self._lock:
            if event_name is None:
                return len(self._by_id)
            return len(self._subscriptions.get(event_name, ()))

    def get_history(self, event_name: str | None = None) -> list[Event]:
        """Return posted events, optionally filtered by name."""
        with self._lock:
            if event_name is None:
                return list(self._history)
            return [e for e in self._history if e.name == event_name]

    def clear_history(self) -> None:
        """Clear the event history (testing helper)."""
        with self._lock:
            self._history.clear()

    def get_error_counts(self) -> dict[str, int]:
        """Return ``{event_name: error_count}``."""
        with self._lock:
            return dict(self._error_counts)

    @property
    def dead_letters(self) -> list[DeadLetter]:
        with self._lock:
            return list(self._dead_letters)

    def clear_dead_letters(self) -> list[DeadLetter]:
        """Drain and return dead letters."""
        with self._lock:
            drained = self._dead_letters[:]
            self._dead_letters.clear()
        return drained

    @property
    def messages_processed(self) -> int:
        return self._messages_processed

    # -- Internals ---------------------------------------------------------

    def _record_failure(self, event: Event, sub: Subscription, exc: Exception) -> None:
        with self._lock:
            self._error_counts[event.name] += 1
            self._dead_letters.append(
                DeadLetter(
                    event_name=event.name,
                    subscription_id=sub.handle.subscription_id,
                    event_id=event.event_id,
                    error=str(exc),
                )
            )
        logger.exception(
            "Handler error on event=%s subscription=%s",
            event.name,
            sub.handle.subscription_id,
        )
