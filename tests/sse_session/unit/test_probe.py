from __future__ import annotations

import asyncio

import pytest

from sse_session.errors import TransportError
from sse_session.probe import ProbeResult, probe_connection
from sse_session.settings import StreamSettings
from sse_session.transport import ReadyState
from tests.sse_session.support.fakes import FakeLogger, FakeTransportFactory

pytestmark = pytest.mark.asyncio


def _start_probe(
    settings: StreamSettings,
    factory: FakeTransportFactory,
    *,
    token: str | None = "tok",
    timeout: float | None = 1.0,
) -> asyncio.Task[ProbeResult]:
    return asyncio.create_task(
        probe_connection(
            token,
            settings=settings,
            transport_factory=factory,
            timeout=timeout,
            logger=FakeLogger(),
        )
    )


async def test_probe_reports_success_on_open_and_closes_transport(
    stream_settings: StreamSettings,
    transport_factory: FakeTransportFactory,
) -> None:
    task = _start_probe(stream_settings, transport_factory)
    await asyncio.sleep(0)
    transport = transport_factory.last
    transport.open()

    result = await task

    assert result == ProbeResult(success=True, message="Connection successful")
    assert transport.closed is True
    assert transport.with_credentials is True
    assert transport.url == "https://api.example.com/api/sse-simple/?token=tok"


async def test_probe_reports_failure_with_error_detail(
    stream_settings: StreamSettings,
    transport_factory: FakeTransportFactory,
) -> None:
    task = _start_probe(stream_settings, transport_factory)
    await asyncio.sleep(0)
    error = TransportError("unexpected status 401", http_status=401)
    transport_factory.last.fail(error=error)

    result = await task

    assert result.success is False
    assert result.error == "Connection failed"
    assert result.ready_state is ReadyState.CLOSED
    assert result.details is error
    assert transport_factory.last.closed is True


async def test_probe_first_outcome_wins(
    stream_settings: StreamSettings,
    transport_factory: FakeTransportFactory,
) -> None:
    task = _start_probe(stream_settings, transport_factory)
    await asyncio.sleep(0)
    transport = transport_factory.last
    transport.open()
    transport.fail()

    result = await task

    assert result.success is True


async def test_probe_times_out_and_closes_transport(
    stream_settings: StreamSettings,
    transport_factory: FakeTransportFactory,
) -> None:
    result = await asyncio.wait_for(
        _start_probe(stream_settings, transport_factory, timeout=0.01),
        timeout=1.0,
    )

    assert result == ProbeResult(
        success=False,
        error="Connection timeout",
        ready_state=ReadyState.CONNECTING,
    )
    assert transport_factory.last.closed is True


async def test_probe_uses_configured_timeout_by_default(
    transport_factory: FakeTransportFactory,
) -> None:
    settings = StreamSettings(
        base_url="https://api.example.com",
        probe_timeout_seconds=0.01,
    )

    result = await asyncio.wait_for(
        _start_probe(settings, transport_factory, timeout=None),
        timeout=1.0,
    )

    assert result.error == "Connection timeout"


async def test_probe_without_token_fails_without_opening(
    stream_settings: StreamSettings,
    transport_factory: FakeTransportFactory,
) -> None:
    result = await _start_probe(stream_settings, transport_factory, token="")

    assert result == ProbeResult(success=False, error="No token provided")
    assert transport_factory.transports == []


async def test_probe_honours_tunnel_hosts(
    transport_factory: FakeTransportFactory,
) -> None:
    settings = StreamSettings(base_url="https://x.ngrok.app")
    task = _start_probe(settings, transport_factory)
    await asyncio.sleep(0)
    transport_factory.last.open()
    await task

    assert transport_factory.last.url.endswith("&ngrok-skip-browser-warning=true")
