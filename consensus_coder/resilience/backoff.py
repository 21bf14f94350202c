"""
Retry with exponential backoff for model calls.

Delays double on each attempt: base_delay, 2x, 4x ... Errors whose message
carries an authentication or validation marker are re-raised immediately
without consuming the remaining attempts.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")

NON_RETRYABLE_MARKERS: tuple[str, ...] = (
    "401",
    "403",
    "invalid_api_key",
    "invalid api key",
    "authentication",
    "authorization",
    "400",
    "bad request",
    "invalid request",
)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 0.1


def is_non_retryable(error: BaseException) -> bool:
    """True if the error message matches a permanent-failure marker."""
    message = str(error).lower()
    return any(marker in message for marker in NON_RETRYABLE_MARKERS)


def _should_retry(error: BaseException) -> bool:
    # Cancellation and other BaseExceptions propagate untouched.
    return isinstance(error, Exception) and not is_non_retryable(error)


class BackoffExecutor:
    """
    Single retry policy for every external call in the pipeline.

    The executor does not log; callers decide what a failure means.
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            sleep: Coroutine used between attempts (replaceable in tests)
        """
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_S,
    ) -> T:
        """
        Run ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Zero-argument coroutine function
            max_attempts: Total attempts, including the first
            base_delay: Seconds to wait before the first retry

        Returns:
            The operation's result

        Raises:
            The last error once attempts are exhausted, or the first
            non-retryable error as soon as it occurs.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
            retry=retry_if_exception(_should_retry),
            sleep=self._sleep,
            reraise=True,
        )
        # tenacity awaits only coroutine functions, not lambdas returning one
        async def attempt() -> T:
            return await operation()

        return await retrying(attempt)


_default_executor = BackoffExecutor()


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY_S,
) -> T:
    """Run ``operation`` through the shared default executor."""
    return await _default_executor.execute(operation, max_attempts, base_delay)
