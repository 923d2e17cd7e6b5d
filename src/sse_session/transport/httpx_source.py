"""``EventSource``-style transport on top of ``httpx`` streaming responses."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import httpx

from sse_session.errors import TransportError
from sse_session.logging import StructuredLogger, get_logger, log_exception
from sse_session.transport.base import (
    ErrorHandler,
    MessageEvent,
    MessageHandler,
    OpenHandler,
    ReadyState,
    TransportFactory,
)

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"
DEFAULT_RETRY_SECONDS = 3.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0


class HttpxEventSource:
    """Stream events from ``url`` in a background task.

    Mirrors browser ``EventSource`` behavior: a non-200 response or a wrong
    content type fails the connection (``CLOSED``); a network error or the end
    of the response body re-establishes it after the retry interval
    (``CONNECTING``). ``on_error`` fires in both cases.
    """

    def __init__(
        self,
        url: str,
        *,
        with_credentials: bool = False,
        cookies: httpx.Cookies | None = None,
        headers: Mapping[str, str] | None = None,
        retry_seconds: float = DEFAULT_RETRY_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Start streaming from ``url``.

        Args:
            url: Stream endpoint URL.
            with_credentials: Send ``cookies`` with the request when true.
            cookies: Cookie jar used for credentialed requests.
            headers: Extra request headers.
            retry_seconds: Delay before re-establishing after a network error.
                A server ``retry:`` field overrides it.
            connect_timeout: Connect timeout in seconds. Reads never time out.
            transport: Optional ``httpx`` transport, mainly for tests.
            logger: Optional structured logger.

        Raises:
            RuntimeError: If no event loop is running.
        """
        self.url = url
        self.with_credentials = with_credentials
        self.on_open: OpenHandler | None = None
        self.on_message: MessageHandler | None = None
        self.on_error: ErrorHandler | None = None
        self._ready_state = ReadyState.CONNECTING
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._retry_seconds = max(retry_seconds, 0.0)
        self._last_event_id = ""
        self._logger = get_logger(__name__) if logger is None else logger
        self._client = httpx.AsyncClient(
            cookies=cookies if with_credentials else None,
            headers=dict(headers or {}),
            timeout=httpx.Timeout(connect_timeout, read=None),
            transport=transport,
        )
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="sse-transport"
        )

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    def add_event_listener(self, event: str, handler: MessageHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def close(self) -> None:
        """Close the stream. No handler fires after this returns."""
        self._ready_state = ReadyState.CLOSED
        if self._task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # From inside a handler the loop exits on its own once it sees CLOSED.
        if current is not self._task:
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the background task, and its client, to finish."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        try:
            while self._ready_state is not ReadyState.CLOSED:
                error = await self._stream_once()
                if self._ready_state is ReadyState.CLOSED:
                    return
                self._ready_state = ReadyState.CONNECTING
                self._fire_error(error)
                if self._ready_state is ReadyState.CLOSED:
                    return
                await asyncio.sleep(self._retry_seconds)
        except Exception as exc:
            log_exception(self._logger, "sse.transport.stream_failed")
            if self._ready_state is not ReadyState.CLOSED:
                self._fail(TransportError(f"stream processing failed: {exc!r}"))
        finally:
            await self._client.aclose()

    async def _stream_once(self) -> BaseException | None:
        headers = {"Accept": EVENT_STREAM_CONTENT_TYPE, "Cache-Control": "no-cache"}
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id
        try:
            async with self._client.stream("GET", self.url, headers=headers) as response:
                content_type = response.headers.get("content-type", "")
                if response.status_code != 200:
                    self._fail(
                        TransportError(
                            f"unexpected status {response.status_code}",
                            http_status=response.status_code,
                        )
                    )
                    return None
                if not content_type.startswith(EVENT_STREAM_CONTENT_TYPE):
                    self._fail(
                        TransportError(
                            f"unexpected content type {content_type!r}",
                            http_status=response.status_code,
                        )
                    )
                    return None
                self._ready_state = ReadyState.OPEN
                self._call(self.on_open)
                await self._consume(response)
        except httpx.HTTPError as exc:
            return exc
        return None

    async def _consume(self, response: httpx.Response) -> None:
        event_type = ""
        data_lines: list[str] = []
        async for line in response.aiter_lines():
            if self._ready_state is ReadyState.CLOSED:
                return
            if not line:
                if data_lines:
                    self._dispatch(event_type or "message", "\n".join(data_lines))
                event_type = ""
                data_lines = []
                continue
            if line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            if field == "event":
                event_type = value
            elif field == "data":
                data_lines.append(value)
            elif field == "id":
                if "\0" not in value:
                    self._last_event_id = value
            elif field == "retry":
                if value.isascii() and value.isdigit():
                    self._retry_seconds = int(value) / 1000

    def _fail(self, error: TransportError) -> None:
        self._ready_state = ReadyState.CLOSED
        self._fire_error(error)

    def _fire_error(self, error: BaseException | None) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception:
            log_exception(self._logger, "sse.transport.handler_failed", handler="error")

    def _call(self, handler: OpenHandler | None) -> None:
        if handler is None:
            return
        try:
            handler()
        except Exception:
            log_exception(self._logger, "sse.transport.handler_failed", handler="open")

    def _dispatch(self, event_type: str, data: str) -> None:
        event = MessageEvent(
            type=event_type, data=data, last_event_id=self._last_event_id
        )
        handlers: list[MessageHandler] = []
        if event_type == "message" and self.on_message is not None:
            handlers.append(self.on_message)
        handlers.extend(self._handlers.get(event_type, ()))
        for handler in handlers:
            if self._ready_state is ReadyState.CLOSED:
                return
            try:
                handler(event)
            except Exception:
                log_exception(
                    self._logger,
                    "sse.transport.handler_failed",
                    handler=event_type,
                )


def httpx_transport_factory(
    *,
    retry_seconds: float = DEFAULT_RETRY_SECONDS,
    cookies: httpx.Cookies | None = None,
    headers: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: StructuredLogger | None = None,
) -> TransportFactory:
    """Build a factory that opens ``HttpxEventSource`` transports."""

    def _open(url: str, *, with_credentials: bool) -> HttpxEventSource:
        return HttpxEventSource(
            url,
            with_credentials=with_credentials,
            cookies=cookies,
            headers=headers,
            retry_seconds=retry_seconds,
            transport=transport,
            logger=logger,
        )

    return _open
