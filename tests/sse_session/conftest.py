from __future__ import annotations

import pytest

from sse_session.settings import StreamSettings
from tests.sse_session.support.fakes import (
    FakeLogger,
    FakeTransportFactory,
    RecordingSleep,
)


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    """Provide a fresh recording transport factory per test."""
    return FakeTransportFactory()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide an instant sleep that records requested delays."""
    return RecordingSleep()


@pytest.fixture
def stream_settings() -> StreamSettings:
    """Provide settings for a plain, non-tunnelled endpoint."""
    return StreamSettings(base_url="https://api.example.com")
