from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from tenacity import RetryCallState, wait_incrementing
from tenacity.wait import wait_base


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for the reconnect retry budget and linear backoff step."""

    attempts: int
    base_seconds: float

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.base_seconds < 0:
            raise ValueError("base_seconds must be >= 0")


def build_linear_wait(policy: RetryBackoffPolicy) -> wait_base:
    """Build a tenacity wait yielding ``base_seconds * attempt``."""
    return wait_incrementing(start=policy.base_seconds, increment=policy.base_seconds)


def wait_seconds(wait: wait_base, attempt_number: int) -> float:
    """Evaluate a tenacity wait strategy for one attempt number."""
    if attempt_number < 1:
        raise ValueError("attempt_number must be >= 1")
    state = RetryCallState(
        retry_object=cast(Any, None),
        fn=None,
        args=(),
        kwargs={},
    )
    state.attempt_number = attempt_number
    return float(wait(state))
