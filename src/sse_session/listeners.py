"""Application-facing listener registries.

Both registries deliver synchronously in registration order. Every callback
runs inside its own failure boundary: an exception raised by one subscriber is
logged and discarded, and delivery continues with the next subscriber.
"""

from __future__ import annotations

from collections.abc import Callable

from sse_session.events import ConnectionStatus
from sse_session.logging import StructuredLogger, get_logger, log_exception

EventCallback = Callable[[object], object]
StatusCallback = Callable[[ConnectionStatus], object]


def _callback_name(callback: Callable[..., object]) -> str:
    name = getattr(callback, "__qualname__", None)
    if name is None:
        name = callback.__class__.__qualname__
    return str(name)


class ListenerRegistry:
    """Map event names to ordered lists of callbacks."""

    def __init__(self, *, logger: StructuredLogger | None = None) -> None:
        self._listeners: dict[str, list[EventCallback]] = {}
        self._logger = get_logger(__name__) if logger is None else logger

    def on(self, event: str, callback: EventCallback) -> None:
        """Register ``callback`` for ``event``. Duplicates are kept."""
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: EventCallback) -> None:
        """Remove the first registration of ``callback`` for ``event``."""
        callbacks = self._listeners.get(event)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            return
        if not callbacks:
            del self._listeners[event]

    def listeners(self, event: str) -> tuple[EventCallback, ...]:
        """Return the callbacks currently registered for ``event``."""
        return tuple(self._listeners.get(event, ()))

    def emit(self, event: str, data: object) -> None:
        """Deliver ``data`` to every callback registered for ``event``."""
        for callback in self.listeners(event):
            try:
                callback(data)
            except Exception:
                log_exception(
                    self._logger,
                    "sse.listener.failed",
                    sse_event=event,
                    callback=_callback_name(callback),
                )


class ConnectionStatusBroadcaster:
    """Notify subscribers of ``connected``/``disconnected`` transitions."""

    def __init__(self, *, logger: StructuredLogger | None = None) -> None:
        self._callbacks: list[StatusCallback] = []
        self._logger = get_logger(__name__) if logger is None else logger

    def add(self, callback: StatusCallback) -> None:
        self._callbacks.append(callback)

    def remove(self, callback: StatusCallback) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return

    def __len__(self) -> int:
        return len(self._callbacks)

    def notify(self, status: ConnectionStatus) -> None:
        """Deliver ``status`` to every subscriber."""
        for callback in tuple(self._callbacks):
            try:
                callback(status)
            except Exception:
                log_exception(
                    self._logger,
                    "sse.status_listener.failed",
                    status=str(status),
                    callback=_callback_name(callback),
                )
