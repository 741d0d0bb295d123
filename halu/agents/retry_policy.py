"""Retry wrapper for one streamed model call.

Uses tenacity.Retrying programmatically so the attempt ceiling and wait
strategy are configurable per instance. Only TransientStreamError is
retried; anything else (cancellation included) propagates on first sight.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

import tenacity

from halu.errors import RetryExhaustedError, TransientStreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, int, BaseException], None]

DEFAULT_MAX_ATTEMPTS = 10


def default_wait() -> tenacity.wait.wait_base:
    return tenacity.wait_exponential(multiplier=0.5, min=0.5, max=8) + tenacity.wait_random(0, 0.5)


class RetryPolicy:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        *,
        wait: Optional[tenacity.wait.wait_base] = None,
        on_retry: Optional[RetryCallback] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.wait = wait if wait is not None else default_wait()
        self.on_retry = on_retry
        self._log_before_sleep = tenacity.before_sleep_log(logger, logging.WARNING)

    def _before_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        self._log_before_sleep(retry_state)
        if self.on_retry is not None and retry_state.outcome is not None:
            exc = retry_state.outcome.exception()
            self.on_retry(retry_state.attempt_number, self.max_attempts, exc)

    def attempt(self, request: Callable[[], T]) -> T:
        """Run ``request`` until it succeeds, fails fatally, or the ceiling is hit."""
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception_type(TransientStreamError),
            wait=self.wait,
            stop=tenacity.stop_after_attempt(self.max_attempts),
            before_sleep=self._before_sleep,
        )
        try:
            return retryer(request)
        except tenacity.RetryError as exc:
            last = exc.last_attempt.exception()
            raise RetryExhaustedError(exc.last_attempt.attempt_number, last) from last


__all__ = ["RetryPolicy", "RetryCallback", "DEFAULT_MAX_ATTEMPTS", "default_wait"]
