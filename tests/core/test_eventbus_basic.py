from core import metrics
from core.eventbus import emit, subscribe


def test_eventbus_basic_dispatch():
    got = []
    subscribe("TestEvent", lambda p: got.append(p["value"]))
    subscribe("TestEvent", lambda p: got.append(p["value"] * 2))
    emit("TestEvent", {"value": 3})
    assert sorted(got) == [3, 6]
    snap = metrics.snapshot()["counters"]
    assert snap["events_emitted_total{event=TestEvent}"] == 1


def test_unsubscribe_stops_delivery():
    got = []
    unsub = subscribe("Ping", lambda p: got.append(p))
    emit("Ping", {})
    unsub()
    unsub()
    emit("Ping", {})
    assert len(got) == 1
    assert "ts" in got[0]


def test_handler_exception_isolated_and_counted():
    got = []

    def boom(payload):
        raise RuntimeError("boom")

    subscribe("ModuleLoaded", boom)
    subscribe("ModuleLoaded", lambda p: got.append(p["module"]))
    emit("ModuleLoaded", {"module": "ai"})
    assert got == ["ai"]
    counters = metrics.snapshot()["counters"]
    assert counters["handler_exceptions_total{event=ModuleLoaded}"] == 1
