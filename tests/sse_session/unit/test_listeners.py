from __future__ import annotations

from sse_session.events import ConnectionStatus
from sse_session.listeners import ConnectionStatusBroadcaster, ListenerRegistry
from tests.sse_session.support.fakes import FakeLogger


def test_emit_delivers_in_registration_order() -> None:
    registry = ListenerRegistry(logger=FakeLogger())
    calls: list[tuple[str, object]] = []

    registry.on("notification", lambda data: calls.append(("first", data)))
    registry.on("notification", lambda data: calls.append(("second", data)))
    registry.emit("notification", {"id": 1})

    assert calls == [("first", {"id": 1}), ("second", {"id": 1})]


def test_duplicate_registration_fires_twice_and_off_removes_one() -> None:
    registry = ListenerRegistry(logger=FakeLogger())
    received: list[object] = []

    def _listener(data: object) -> None:
        received.append(data)

    registry.on("notification", _listener)
    registry.on("notification", _listener)
    registry.emit("notification", "a")
    assert received == ["a", "a"]

    registry.off("notification", _listener)
    registry.emit("notification", "b")

    assert received == ["a", "a", "b"]
    assert registry.listeners("notification") == (_listener,)


def test_off_removes_first_equal_bound_method() -> None:
    class _Subscriber:
        def __init__(self) -> None:
            self.received: list[object] = []

        def handle(self, data: object) -> None:
            self.received.append(data)

    subscriber = _Subscriber()
    registry = ListenerRegistry(logger=FakeLogger())
    registry.on("vote_update", subscriber.handle)

    registry.off("vote_update", subscriber.handle)
    registry.emit("vote_update", 1)

    assert subscriber.received == []
    assert registry.listeners("vote_update") == ()


def test_off_unknown_event_or_callback_is_a_noop() -> None:
    registry = ListenerRegistry(logger=FakeLogger())
    registry.on("notification", print)

    registry.off("missing", print)
    registry.off("notification", repr)

    assert registry.listeners("notification") == (print,)


def test_failing_listener_does_not_block_others() -> None:
    logger = FakeLogger()
    registry = ListenerRegistry(logger=logger)
    received: list[object] = []

    def _explode(data: object) -> None:
        raise RuntimeError("boom")

    registry.on("notification", _explode)
    registry.on("notification", received.append)
    registry.emit("notification", {"ok": True})

    assert received == [{"ok": True}]
    assert logger.calls[0][0] == "exception"
    assert logger.calls[0][1] == "sse.listener.failed"
    assert logger.calls[0][2]["sse_event"] == "notification"


def test_emit_without_listeners_is_a_noop() -> None:
    ListenerRegistry(logger=FakeLogger()).emit("nobody", None)


def test_listener_removed_during_emit_still_receives_current_event() -> None:
    registry = ListenerRegistry(logger=FakeLogger())
    received: list[str] = []

    def _second(data: object) -> None:
        received.append("second")

    def _first(data: object) -> None:
        received.append("first")
        registry.off("notification", _second)

    registry.on("notification", _first)
    registry.on("notification", _second)
    registry.emit("notification", None)
    registry.emit("notification", None)

    assert received == ["first", "second", "first"]


def test_broadcaster_notifies_and_isolates_failures() -> None:
    logger = FakeLogger()
    broadcaster = ConnectionStatusBroadcaster(logger=logger)
    statuses: list[ConnectionStatus] = []

    def _explode(status: ConnectionStatus) -> None:
        raise ValueError("bad subscriber")

    broadcaster.add(_explode)
    broadcaster.add(statuses.append)
    broadcaster.notify(ConnectionStatus.CONNECTED)
    broadcaster.notify(ConnectionStatus.DISCONNECTED)

    assert statuses == [ConnectionStatus.CONNECTED, ConnectionStatus.DISCONNECTED]
    assert logger.events == ["sse.status_listener.failed"] * 2


def test_broadcaster_remove_drops_one_registration() -> None:
    broadcaster = ConnectionStatusBroadcaster(logger=FakeLogger())
    statuses: list[ConnectionStatus] = []

    broadcaster.add(statuses.append)
    broadcaster.add(statuses.append)
    broadcaster.remove(statuses.append)
    broadcaster.remove(print)
    broadcaster.notify(ConnectionStatus.CONNECTED)

    assert len(broadcaster) == 1
    assert statuses == [ConnectionStatus.CONNECTED]
