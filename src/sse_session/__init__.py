"""Self-healing client for server-sent event streams.

``StreamSession`` keeps one stream open, reconnects with bounded linear
backoff, optionally refreshes its token before reconnecting, and fans out
decoded events to listeners registered with ``on()``.
"""

from sse_session.events import STREAM_EVENT_NAMES, ConnectionStatus
from sse_session.listeners import ConnectionStatusBroadcaster, ListenerRegistry
from sse_session.probe import ProbeResult, probe_connection
from sse_session.reconnect import ReconnectionPolicy
from sse_session.session import (
    SessionStatus,
    StreamSession,
    TokenRefreshHook,
    default_session,
)
from sse_session.settings import StreamSettings

__all__ = [
    "STREAM_EVENT_NAMES",
    "ConnectionStatus",
    "ConnectionStatusBroadcaster",
    "ListenerRegistry",
    "ProbeResult",
    "ReconnectionPolicy",
    "SessionStatus",
    "StreamSession",
    "StreamSettings",
    "TokenRefreshHook",
    "default_session",
    "probe_connection",
]
