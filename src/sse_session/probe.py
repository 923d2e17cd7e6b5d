"""Diagnostic one-shot connection check against the stream endpoint."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from sse_session.logging import StructuredLogger, get_logger, log_info
from sse_session.settings import StreamSettings
from sse_session.transport import ReadyState, TransportFactory
from sse_session.url import build_stream_url, redact_token

PROBE_SUCCESS_MESSAGE = "Connection successful"
PROBE_FAILED_ERROR = "Connection failed"
PROBE_TIMEOUT_ERROR = "Connection timeout"
PROBE_MISSING_TOKEN_ERROR = "No token provided"


@dataclass(frozen=True)
class ProbeResult:
    """Verdict of one diagnostic stream connection attempt."""

    success: bool
    message: str | None = None
    error: str | None = None
    ready_state: ReadyState | None = None
    details: BaseException | None = None


async def probe_connection(
    token: str | None,
    *,
    settings: StreamSettings,
    transport_factory: TransportFactory,
    timeout: float | None = None,
    logger: StructuredLogger | None = None,
) -> ProbeResult:
    """Open a throwaway stream and report whether it opens.

    The first of open, error or timeout decides the verdict. The probe's own
    transport is closed before returning in every case.
    """
    logger = get_logger(__name__) if logger is None else logger
    if not token:
        return ProbeResult(success=False, error=PROBE_MISSING_TOKEN_ERROR)

    url = build_stream_url(
        settings.base_url,
        token,
        path=settings.stream_path,
        tunnel_markers=settings.tunnel_host_markers,
    )
    log_info(logger, "sse.probe.start", url=redact_token(url))

    verdict: asyncio.Future[ProbeResult] = asyncio.get_running_loop().create_future()

    def _settle(result: ProbeResult) -> None:
        if not verdict.done():
            verdict.set_result(result)

    handle = transport_factory(url, with_credentials=True)
    handle.on_open = lambda: _settle(
        ProbeResult(success=True, message=PROBE_SUCCESS_MESSAGE)
    )
    handle.on_error = lambda error: _settle(
        ProbeResult(
            success=False,
            error=PROBE_FAILED_ERROR,
            ready_state=handle.ready_state,
            details=error,
        )
    )

    limit = settings.probe_timeout_seconds if timeout is None else timeout
    try:
        result = await asyncio.wait_for(verdict, timeout=limit)
    except TimeoutError:
        result = ProbeResult(
            success=False,
            error=PROBE_TIMEOUT_ERROR,
            ready_state=handle.ready_state,
        )
    finally:
        handle.close()

    log_info(
        logger,
        "sse.probe.result",
        success=result.success,
        error=result.error,
        ready_state=None if result.ready_state is None else int(result.ready_state),
    )
    return result
