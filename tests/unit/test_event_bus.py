"""Test EventBus subscribe/post, filtering, ordering and observability."""

import threading

import pydantic
import pytest

from eventcore.bus.event_bus import Event, EventBus


class Source:
    """Stand-in for an object that posts events."""


class TestPostSubscribe:
    def test_post_invokes_handler(self, event_bus):
        received = []
        event_bus.subscribe("fileLoaded", received.append)
        event = Event(name="fileLoaded", payload={"k": 1})
        assert event_bus.post(event) == 1
        assert received == [event]

    def test_no_subscribers_is_noop(self, event_bus):
        assert event_bus.post(Event(name="nobody")) == 0

    def test_name_must_match_exactly(self, event_bus):
        received = []
        event_bus.subscribe("fileLoaded", received.append)
        event_bus.post(Event(name="fileloaded"))
        event_bus.post(Event(name="fileLoaded2"))
        assert received == []

    def test_registration_order(self, event_bus):
        order = []
        for n in range(5):
            event_bus.subscribe("e", lambda ev, n=n: order.append(n))
        event_bus.post(Event(name="e"))
        assert order == [0, 1, 2, 3, 4]

    def test_unsubscribe_before_post(self, event_bus):
        order = []
        handles = [
            event_bus.subscribe("e", lambda ev, n=n: order.append(n)) for n in range(3)
        ]
        assert event_bus.unsubscribe(handles[1]) is True
        event_bus.post(Event(name="e"))
        assert order == [0, 2]

    def test_unsubscribe_twice_returns_false(self, event_bus):
        handle = event_bus.subscribe("e", lambda ev: None)
        assert event_bus.unsubscribe(handle)
        assert not event_bus.unsubscribe(handle)

    def test_redelivery_until_removed(self, event_bus):
        received = []
        event_bus.subscribe("e", received.append)
        for _ in range(3):
            event_bus.post(Event(name="e"))
        assert len(received) == 3

    def test_post_named_returns_event(self, event_bus):
        received = []
        event_bus.subscribe("e", received.append)
        event = event_bus.post_named("e", payload={"a": 1})
        assert received == [event]
        assert event.payload == {"a": 1}


class TestFiltering:
    def test_source_filter_by_identity(self, event_bus):
        mine, other = Source(), Source()
        received = []
        event_bus.subscribe("e", received.append, source=mine)
        event_bus.post(Event(name="e", source=other))
        event_bus.post(Event(name="e"))
        assert received == []
        event_bus.post(Event(name="e", source=mine))
        assert len(received) == 1
        assert received[0].source is mine

    def test_source_filter_ignores_equality(self, event_bus):
        received = []
        event_bus.subscribe("e", received.append, source=[1, 2])
        event_bus.post(Event(name="e", source=[1, 2]))
        assert received == []

    def test_predicate_on_payload(self, event_bus):
        received = []
        event_bus.subscribe(
            "e", received.append, predicate=lambda p: p.get("code") == 1,
        )
        event_bus.post(Event(name="e", payload={"code": 2}))
        event_bus.post(Event(name="e", payload={"code": 1}))
        assert [ev.payload["code"] for ev in received] == [1]


class TestSingleShot:
    def test_handler_unsubscribing_itself(self, event_bus):
        received = []
        box = []

        def once(ev):
            event_bus.unsubscribe(box[0])
            received.append(ev)

        box.append(event_bus.subscribe("e", once))
        event_bus.post(Event(name="e"))
        event_bus.post(Event(name="e"))
        assert len(received) == 1

    def test_subscribe_once(self, event_bus):
        received = []
        event_bus.subscribe_once("e", received.append)
        event_bus.post(Event(name="e"))
        event_bus.post(Event(name="e"))
        assert len(received) == 1
        assert event_bus.subscriber_count("e") == 0

    def test_handler_removing_later_subscriber_mid_post(self, event_bus):
        received = []
        box = []
        event_bus.subscribe("e", lambda ev: event_bus.unsubscribe(box[0]))
        box.append(event_bus.subscribe("e", received.append))
        event_bus.post(Event(name="e"))
        assert received == []


class TestHandlerErrors:
    def test_error_does_not_break_others(self, event_bus):
        received = []

        def bad(ev):
            raise ValueError("boom")

        event_bus.subscribe("e", bad)
        event_bus.subscribe("e", received.append)
        assert event_bus.post(Event(name="e")) == 1
        assert len(received) == 1

    def test_error_counted_and_dead_lettered(self, event_bus):
        def bad(ev):
            raise ValueError("boom")

        handle = event_bus.subscribe("e", bad)
        event = Event(name="e")
        event_bus.post(event)
        assert event_bus.get_error_counts() == {"e": 1}
        letters = event_bus.dead_letters
        assert len(letters) == 1
        assert letters[0].error == "boom"
        assert letters[0].event_id == event.event_id
        assert letters[0].subscription_id == handle.subscription_id

    def test_failing_predicate_is_dead_lettered(self, event_bus):
        event_bus.subscribe("e", lambda ev: None, predicate=lambda p: p["missing"])
        event_bus.post(Event(name="e"))
        assert event_bus.get_error_counts() == {"e": 1}

    def test_clear_dead_letters(self, event_bus):
        event_bus.subscribe("e", lambda ev: 1 / 0)
        event_bus.post(Event(name="e"))
        drained = event_bus.clear_dead_letters()
        assert len(drained) == 1
        assert event_bus.dead_letters == []


class TestObservability:
    def test_history(self, event_bus):
        event_bus.post(Event(name="a"))
        event_bus.post(Event(name="b"))
        event_bus.post(Event(name="a"))
        assert len(event_bus.get_history()) == 3
        assert len(event_bus.get_history("a")) == 2

    def test_history_limit(self):
        bus = EventBus(history_limit=2)
        for name in ("a", "b", "c"):
            bus.post(Event(name=name))
        assert [e.name for e in bus.get_history()] == ["b", "c"]

    def test_history_disabled(self):
        bus = EventBus(history_limit=0)
        bus.post(Event(name="a"))
        assert bus.get_history() == []

    def test_clear_history(self, event_bus):
        event_bus.post(Event(name="a"))
        event_bus.clear_history()
        assert event_bus.get_history() == []

    def test_messages_processed(self, event_bus):
        event_bus.subscribe("e", lambda ev: None)
        event_bus.subscribe("e", lambda ev: None)
        event_bus.post(Event(name="e"))
        assert event_bus.messages_processed == 2

    def test_subscriber_count(self, event_bus):
        event_bus.subscribe("a", lambda ev: None)
        event_bus.subscribe("b", lambda ev: None)
        assert event_bus.subscriber_count() == 2
        assert event_bus.subscriber_count("a") == 1


class TestEvent:
    def test_event_is_frozen(self):
        event = Event(name="e")
        with pytest.raises(pydantic.ValidationError):
            event.name = "other"

    def test_payload_is_read_only(self):
        event = Event(name="e", payload={"successCode": "ok"})
        with pytest.raises(TypeError):
            event.payload["successCode"] = 1

    def test_payload_is_copied_from_caller(self):
        raw = {"k": 1}
        event = Event(name="e", payload=raw)
        raw["k"] = 2
        assert event.payload["k"] == 1

    def test_handler_cannot_rewrite_payload_for_later_handlers(self, event_bus):
        seen = []

        def tamper(ev):
            ev.payload["successCode"] = 1

        event_bus.subscribe("fileLoaded", tamper)
        event_bus.subscribe(
            "fileLoaded", lambda ev: seen.append(ev.payload["successCode"]),
        )
        delivered = event_bus.post(
            Event(name="fileLoaded", payload={"successCode": "ok"})
        )
        assert delivered == 1
        assert seen == ["ok"]
        assert event_bus.get_error_counts() == {"fileLoaded": 1}

    def test_payload_dumps_as_dict(self):
        dumped = Event(name="e", payload={"a": 1}).model_dump()
        assert dumped["payload"] == {"a": 1}

    def test_source_is_not_copied(self):
        source = Source()
        assert Event(name="e", source=source).source is source

    def test_ids_are_unique(self):
        assert Event(name="e").event_id != Event(name="e").event_id


class TestThreading:
    def test_post_from_background_thread(self, event_bus):
        delivered = threading.Event()
        seen_threads = []

        def handler(ev):
            seen_threads.append(threading.current_thread())
            delivered.set()

        event_bus.subscribe("e", handler)
        poster = threading.Thread(target=lambda: event_bus.post(Event(name="e")))
        poster.start()
        assert delivered.wait(5.0)
        poster.join()
        # Delivery runs on the posting thread.
        assert seen_threads == [poster]

    def test_concurrent_subscribe_and_post(self, event_bus):
        counts = []
        lock = threading.Lock()

        def handler(ev):
            with lock:
                counts.append(1)

        def subscriber():
            for _ in range(50):
                event_bus.subscribe("e", handler)

        threads = [threading.Thread(target=subscriber) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert event_bus.subscriber_count("e") == 200
        event_bus.post(Event(name="e"))
        assert len(counts) == 200
