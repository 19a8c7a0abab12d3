"""
Retry policy for outbound mail.

Transient transport failures (throttling, 5xx, connection errors) are retried
with exponential backoff and jitter; anything else fails on the first attempt.
With `max_attempts=1` the policy is a plain call, which is the default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from workhub.services.email import EmailSendError

logger = logging.getLogger("retry")

T = TypeVar("T")

_TRANSIENT_NAME_PATTERNS = ("timeout", "connection", "temporary", "unavailable")


def is_transient_error(exception: BaseException) -> bool:
    if isinstance(exception, EmailSendError):
        return exception.transient
    name = type(exception).__name__.lower()
    return any(pattern in name for pattern in _TRANSIENT_NAME_PATTERNS)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Retry attempt %s after %s: %s (next wait %.2fs)",
        retry_state.attempt_number,
        type(exc).__name__ if exc else None,
        exc,
        wait_time,
    )


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0

    def _retrying(self) -> AsyncRetrying:
        # Exponential backoff capped at max_delay, plus up to base_delay of jitter.
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=wait_exponential(multiplier=self.base_delay_seconds, max=self.max_delay_seconds)
            + wait_random(0, self.base_delay_seconds),
            retry=retry_if_exception(is_transient_error),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        async for attempt in self._retrying():
            with attempt:
                result = await fn()
        return result
