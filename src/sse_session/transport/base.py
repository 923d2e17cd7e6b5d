"""Transport primitives modelled on the browser ``EventSource`` surface."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol


class ReadyState(IntEnum):
    """Transport readiness values."""

    CONNECTING = 0
    OPEN = 1
    CLOSED = 2


@dataclass(frozen=True)
class MessageEvent:
    """One dispatched stream event.

    Attributes:
        type: Event name, ``"message"`` for unnamed events.
        data: Raw event data, multi-line data joined with ``"\\n"``.
        last_event_id: Last ``id:`` value seen on the stream.
    """

    type: str
    data: str
    last_event_id: str = ""


OpenHandler = Callable[[], None]
MessageHandler = Callable[[MessageEvent], None]
ErrorHandler = Callable[[BaseException | None], None]


class Transport(Protocol):
    """One live streaming connection attempt.

    Handlers are assigned after construction; a transport must not invoke any
    handler once ``close()`` has returned.
    """

    url: str
    on_open: OpenHandler | None
    on_message: MessageHandler | None
    on_error: ErrorHandler | None

    @property
    def ready_state(self) -> ReadyState:
        """Return the current readiness of the transport."""

    def add_event_listener(self, event: str, handler: MessageHandler) -> None:
        """Register ``handler`` for events named ``event``."""

    def close(self) -> None:
        """Close the transport synchronously."""


class TransportFactory(Protocol):
    """Build a transport for a stream URL."""

    def __call__(self, url: str, *, with_credentials: bool) -> Transport:
        """Open a transport to ``url``."""
