"""Self-healing SSE stream session.

``StreamSession`` owns at most one live transport. Transport callbacks are
bound to the handle that produced them and are ignored once that handle has
been replaced, so a superseded stream can never deliver events.

A failure that leaves the transport ``CLOSED`` starts recovery: on the first
failure after a successful open the token-refresh hook, when set, may supply a
new token and reconnect immediately; otherwise ``ReconnectionPolicy`` retries
with linear backoff until its budget is spent and ``connection_failed`` is
emitted.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import cache, partial

from sse_session.events import (
    CONNECTED_EVENT,
    CONNECTION_FAILED_EVENT,
    HEARTBEAT_EVENT,
    MESSAGE_EVENT,
    STREAM_EVENT_NAMES,
    ConnectionStatus,
)
from sse_session.listeners import (
    ConnectionStatusBroadcaster,
    EventCallback,
    ListenerRegistry,
    StatusCallback,
)
from sse_session.logging import (
    StructuredLogger,
    get_logger,
    log_debug,
    log_error,
    log_exception,
    log_info,
)
from sse_session.probe import ProbeResult, probe_connection
from sse_session.reconnect import ReconnectionPolicy, Sleep
from sse_session.settings import StreamSettings
from sse_session.transport import (
    MessageEvent,
    ReadyState,
    Transport,
    TransportFactory,
    httpx_transport_factory,
)
from sse_session.url import build_stream_url, redact_token

TokenRefreshHook = Callable[[], Awaitable[str | None]]
EventHandler = Callable[[str, MessageEvent], None]

MAX_ATTEMPTS_ERROR = "Max reconnection attempts reached"

_UNDECODABLE = object()


@dataclass(frozen=True)
class SessionStatus:
    """Read-only snapshot of a session."""

    is_connected: bool
    reconnect_attempts: int
    should_auto_reconnect: bool
    ready_state: ReadyState | None
    url: str | None


class StreamSession:
    """Long-lived client connection to one SSE stream.

    Must be driven from a running asyncio event loop.
    """

    def __init__(
        self,
        settings: StreamSettings,
        *,
        transport_factory: TransportFactory | None = None,
        registry: ListenerRegistry | None = None,
        broadcaster: ConnectionStatusBroadcaster | None = None,
        sleep: Sleep | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Build an idle session.

        Args:
            settings: Endpoint, backoff and probe configuration.
            transport_factory: Opens transports. Defaults to ``httpx``.
            registry: Event listener registry. A private one by default.
            broadcaster: Connection status broadcaster. A private one by
                default.
            sleep: Async sleep used for retry delays.
            logger: Optional structured logger.
        """
        self.settings = settings
        self._logger = get_logger(__name__) if logger is None else logger
        self._transport_factory = (
            httpx_transport_factory(
                retry_seconds=settings.transport_retry_seconds,
                logger=self._logger,
            )
            if transport_factory is None
            else transport_factory
        )
        self.registry = (
            ListenerRegistry(logger=self._logger) if registry is None else registry
        )
        self.broadcaster = (
            ConnectionStatusBroadcaster(logger=self._logger)
            if broadcaster is None
            else broadcaster
        )
        self.policy = ReconnectionPolicy(
            reconnect=self._open,
            should_retry=lambda: self._should_auto_reconnect,
            on_exhausted=self._report_exhausted,
            base_delay=settings.reconnect_base_delay_seconds,
            max_attempts=settings.max_reconnect_attempts,
            sleep=sleep,
            logger=self._logger,
        )
        self._transport: Transport | None = None
        self._token: str | None = None
        self._is_connected = False
        self._should_auto_reconnect = True
        self._token_refresh: TokenRefreshHook | None = None
        self._recoveries: set[asyncio.Task[None]] = set()
        self._dispatch = self._build_dispatch_table()

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def transport(self) -> Transport | None:
        return self._transport

    def _build_dispatch_table(self) -> dict[str, EventHandler]:
        table: dict[str, EventHandler] = dict.fromkeys(
            STREAM_EVENT_NAMES, self._forward_event
        )
        table[HEARTBEAT_EVENT] = self._ignore_event
        # Opening already emits ``connected``; the server greeting is only decoded.
        table[CONNECTED_EVENT] = self._consume_event
        return table

    def set_token_refresh_callback(self, callback: TokenRefreshHook | None) -> None:
        self._token_refresh = callback

    def on(self, event: str, callback: EventCallback) -> None:
        self.registry.on(event, callback)

    def off(self, event: str, callback: EventCallback) -> None:
        self.registry.off(event, callback)

    def on_connection_change(self, callback: StatusCallback) -> None:
        self.broadcaster.add(callback)

    def off_connection_change(self, callback: StatusCallback) -> None:
        self.broadcaster.remove(callback)

    def connect(self, token: str | None) -> None:
        """Open the stream with ``token``, replacing any existing transport."""
        if not token:
            log_error(self._logger, "sse.connect.missing_token")
            return
        self.policy.cancel_pending()
        self.policy.rearm()
        self._should_auto_reconnect = True
        self._open(token)

    def disconnect(self) -> None:
        """Close the stream and stop reconnecting."""
        self._should_auto_reconnect = False
        self.policy.cancel_pending()
        self._release_transport()
        self._is_connected = False
        log_info(self._logger, "sse.disconnect")
        self.broadcaster.notify(ConnectionStatus.DISCONNECTED)

    async def aclose(self) -> None:
        """Disconnect and wait for in-flight recovery work to finish."""
        self.disconnect()
        recoveries = tuple(self._recoveries)
        for task in recoveries:
            task.cancel()
        await asyncio.gather(*recoveries, return_exceptions=True)

    def get_status(self) -> SessionStatus:
        transport = self._transport
        return SessionStatus(
            is_connected=self._is_connected,
            reconnect_attempts=self.policy.attempt_count,
            should_auto_reconnect=self._should_auto_reconnect,
            ready_state=None if transport is None else transport.ready_state,
            url=None if transport is None else transport.url,
        )

    async def test_connection(
        self, token: str | None, *, timeout: float | None = None
    ) -> ProbeResult:
        """Probe the endpoint with a throwaway transport."""
        return await probe_connection(
            token,
            settings=self.settings,
            transport_factory=self._transport_factory,
            timeout=timeout,
            logger=self._logger,
        )

    def _release_transport(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is not None:
            transport.close()

    def _open(self, token: str) -> None:
        self._release_transport()
        self._token = token
        url = build_stream_url(
            self.settings.base_url,
            token,
            path=self.settings.stream_path,
            tunnel_markers=self.settings.tunnel_host_markers,
        )
        log_info(self._logger, "sse.connect.opening", url=redact_token(url))
        transport = self._transport_factory(url, with_credentials=True)
        self._transport = transport
        transport.on_open = partial(self._handle_open, transport)
        transport.on_message = partial(self._handle_message, transport)
        transport.on_error = partial(self._handle_error, transport)
        for name in self._dispatch:
            transport.add_event_listener(
                name, partial(self._handle_named_event, transport, name)
            )

    def _handle_open(self, transport: Transport) -> None:
        if transport is not self._transport:
            return
        self._is_connected = True
        self.policy.reset()
        log_info(self._logger, "sse.open")
        self.registry.emit(CONNECTED_EVENT, {"status": "connected"})
        self.broadcaster.notify(ConnectionStatus.CONNECTED)

    def _handle_message(self, transport: Transport, event: MessageEvent) -> None:
        if transport is not self._transport:
            return
        self._forward_event(MESSAGE_EVENT, event)

    def _handle_named_event(
        self, transport: Transport, name: str, event: MessageEvent
    ) -> None:
        if transport is not self._transport:
            return
        self._dispatch[name](name, event)

    def _handle_error(self, transport: Transport, error: BaseException | None) -> None:
        if transport is not self._transport:
            return
        ready_state = transport.ready_state
        log_error(
            self._logger,
            "sse.transport_error",
            ready_state=int(ready_state),
            error=None if error is None else repr(error),
        )
        self._is_connected = False
        self.broadcaster.notify(ConnectionStatus.DISCONNECTED)
        if ready_state != ReadyState.CLOSED or not self._should_auto_reconnect:
            return
        task = asyncio.get_running_loop().create_task(
            self._recover(transport), name="sse-recover"
        )
        self._recoveries.add(task)
        task.add_done_callback(self._recoveries.discard)

    def _owns_recovery(self, transport: Transport) -> bool:
        return transport is self._transport and self._should_auto_reconnect

    async def _recover(self, transport: Transport) -> None:
        token = self._token
        if token is None or not self._owns_recovery(transport):
            return
        refresh = self._token_refresh
        if refresh is not None and self.policy.attempt_count == 0:
            log_info(self._logger, "sse.token_refresh.attempt")
            try:
                new_token = await refresh()
            except Exception:
                log_exception(self._logger, "sse.token_refresh.failed")
                new_token = None
            if not self._owns_recovery(transport):
                return
            if new_token and new_token != token:
                log_info(self._logger, "sse.token_refresh.new_token")
                self._open(new_token)
                return
        self.policy.schedule_retry(token)

    def _report_exhausted(self) -> None:
        self.registry.emit(CONNECTION_FAILED_EVENT, {"error": MAX_ATTEMPTS_ERROR})

    def _decode(self, name: str, event: MessageEvent) -> object:
        try:
            return json.loads(event.data)
        except ValueError:
            log_debug(self._logger, "sse.payload.decode_failed", sse_event=name)
            return _UNDECODABLE

    def _forward_event(self, name: str, event: MessageEvent) -> None:
        data = self._decode(name, event)
        if data is _UNDECODABLE:
            return
        self.registry.emit(name, data)

    def _consume_event(self, name: str, event: MessageEvent) -> None:
        self._decode(name, event)

    def _ignore_event(self, name: str, event: MessageEvent) -> None:
        return None


@cache
def default_session() -> StreamSession:
    """Return the process-wide session configured from ``SSE_*`` variables."""
    settings = StreamSettings()  # type: ignore[call-arg]
    return StreamSession(settings)
