"""
Tests for the EventBus the bookmark engine publishes on.

Covers delivery, the subscribe/unsubscribe lifecycle, isolation of failing
subscribers and concurrent emits from watcher threads.
"""

import threading

from bmdesk.core.events import NAVIGATED, RESYNCED, STORE_CHANGED_EXTERNALLY, EventBus


def test_emit_reaches_subscriber_with_payload():
    bus = EventBus()
    received = []

    bus.subscribe(NAVIGATED, lambda name, data: received.append((name, data)))
    delivered = bus.emit(NAVIGATED, {"current_folder": "10"})

    assert delivered == 1
    assert received == [(NAVIGATED, {"current_folder": "10"})]


def test_events_are_isolated_by_name():
    bus = EventBus()
    resynced = []
    navigated = []

    bus.subscribe(RESYNCED, lambda name, data: resynced.append(data))
    bus.subscribe(NAVIGATED, lambda name, data: navigated.append(data))
    bus.emit(RESYNCED, {"node_count": 3})

    assert resynced == [{"node_count": 3}]
    assert navigated == []


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []

    def handler(event_name, data):
        received.append(event_name)

    bus.subscribe(RESYNCED, handler)
    bus.subscribe(NAVIGATED, handler)
    bus.unsubscribe(RESYNCED, handler)
    bus.emit(RESYNCED)
    bus.emit(NAVIGATED)
    assert received == [NAVIGATED]

    bus.unsubscribe(NAVIGATED, handler)
    assert bus.emit(NAVIGATED) == 0
    assert received == [NAVIGATED]
    assert bus.subscriber_count(NAVIGATED) == 0

    # unknown handler / event are ignored
    bus.unsubscribe("bookmarks.unknown", handler)


def test_failing_subscriber_does_not_stop_delivery():
    bus = EventBus()
    received = []

    def bad_handler(event_name, data):
        raise ValueError("broken view")

    bus.subscribe(RESYNCED, bad_handler)
    bus.subscribe(RESYNCED, lambda name, data: received.append(data))

    assert bus.emit(RESYNCED, {"current_folder": "1"}) == 1
    assert received == [{"current_folder": "1"}]


def test_duplicate_subscription_is_delivered_once():
    bus = EventBus()
    received = []

    def handler(event_name, data):
        received.append(data)

    bus.subscribe(RESYNCED, handler)
    bus.subscribe(RESYNCED, handler)
    bus.emit(RESYNCED)

    assert received == [{}]
    assert bus.subscriber_count(RESYNCED) == 1


def test_emit_from_watcher_threads():
    bus = EventBus()
    received = []
    lock = threading.Lock()

    def handler(event_name, data):
        with lock:
            received.append(data["path"])

    bus.subscribe(STORE_CHANGED_EXTERNALLY, handler)
    threads = [
        threading.Thread(target=bus.emit, args=(STORE_CHANGED_EXTERNALLY, {"path": f"/tmp/{i}.json"}))
        for i in range(10)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(received) == sorted(f"/tmp/{i}.json" for i in range(10))
