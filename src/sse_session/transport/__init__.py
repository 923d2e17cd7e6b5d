from sse_session.transport.base import (
    ErrorHandler,
    MessageEvent,
    MessageHandler,
    OpenHandler,
    ReadyState,
    Transport,
    TransportFactory,
)
from sse_session.transport.httpx_source import (
    HttpxEventSource,
    httpx_transport_factory,
)

__all__ = [
    "ErrorHandler",
    "HttpxEventSource",
    "MessageEvent",
    "MessageHandler",
    "OpenHandler",
    "ReadyState",
    "Transport",
    "TransportFactory",
    "httpx_transport_factory",
]
