"""Bounded linear-backoff reconnection scheduling."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from sse_session.logging import (
    StructuredLogger,
    get_logger,
    log_info,
    log_warning,
)
from sse_session.retry import RetryBackoffPolicy, build_linear_wait, wait_seconds

Sleep = Callable[[float], Awaitable[None]]


class ReconnectionPolicy:
    """Decide whether and when to retry after a transport failure.

    ``attempt_count`` grows by one per scheduled retry and only returns to zero
    through ``reset()``, which the session calls on a successful open. Once the
    budget is spent ``on_exhausted`` fires once; the latch re-arms on
    ``reset()`` or ``rearm()``.
    """

    def __init__(
        self,
        *,
        reconnect: Callable[[str], None],
        should_retry: Callable[[], bool],
        on_exhausted: Callable[[], None],
        base_delay: float = 1.0,
        max_attempts: int = 5,
        sleep: Sleep | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Build a policy bound to its session callbacks.

        Args:
            reconnect: Reopens the stream with a token.
            should_retry: Checked when a delay elapses; a false result
                turns the retry into a no-op.
            on_exhausted: Fired when the retry budget is spent.
            base_delay: Seconds multiplied by the attempt number.
            max_attempts: Retry budget between successful opens.
            sleep: Async sleep used for delays. Defaults to ``asyncio.sleep``.
            logger: Optional structured logger.
        """
        self.backoff = RetryBackoffPolicy(attempts=max_attempts, base_seconds=base_delay)
        self._wait = build_linear_wait(self.backoff)
        self._reconnect = reconnect
        self._should_retry = should_retry
        self._on_exhausted = on_exhausted
        self._sleep: Sleep = asyncio.sleep if sleep is None else sleep
        self._logger = get_logger(__name__) if logger is None else logger
        self._attempt_count = 0
        self._exhausted = False
        self._pending: asyncio.Task[None] | None = None

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def max_attempts(self) -> int:
        return self.backoff.attempts

    @property
    def base_delay(self) -> float:
        return self.backoff.base_seconds

    @property
    def pending(self) -> asyncio.Task[None] | None:
        """Return the scheduled retry task, if one is waiting."""
        if self._pending is not None and self._pending.done():
            self._pending = None
        return self._pending

    def delay_for(self, attempt: int) -> float:
        """Return the delay in seconds before retry number ``attempt``."""
        return wait_seconds(self._wait, attempt)

    def reset(self) -> None:
        self._attempt_count = 0
        self._exhausted = False

    def rearm(self) -> None:
        """Allow the next exhaustion to be reported again."""
        self._exhausted = False

    def cancel_pending(self) -> None:
        task = self._pending
        self._pending = None
        if task is not None and not task.done():
            task.cancel()

    def schedule_retry(self, token: str) -> asyncio.Task[None] | None:
        """Schedule a reconnect with ``token`` or report exhaustion.

        Returns:
            The retry task, or ``None`` when the budget is spent.
        """
        if self._attempt_count >= self.backoff.attempts:
            if not self._exhausted:
                self._exhausted = True
                log_warning(
                    self._logger,
                    "sse.retry.exhausted",
                    max_attempts=self.backoff.attempts,
                )
                self._on_exhausted()
            return None

        self._attempt_count += 1
        attempt = self._attempt_count
        delay = self.delay_for(attempt)
        log_info(self._logger, "sse.retry.scheduled", attempt=attempt, delay=delay)
        self._pending = asyncio.get_running_loop().create_task(
            self._retry_after(delay, token, attempt),
            name=f"sse-retry:{attempt}",
        )
        return self._pending

    async def _retry_after(self, delay: float, token: str, attempt: int) -> None:
        await self._sleep(delay)
        if asyncio.current_task() is self._pending:
            self._pending = None
        if not self._should_retry():
            log_info(self._logger, "sse.retry.skipped", attempt=attempt)
            return
        self._reconnect(token)
