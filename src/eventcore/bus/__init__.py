"""Named-event broadcast bus."""

from eventcore.bus.event_bus import Event, EventBus, SubscriptionHandle

__all__ = ["Event", "EventBus", "SubscriptionHandle"]
