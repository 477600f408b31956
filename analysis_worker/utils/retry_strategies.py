"""
Retry Strategies for Scoring Calls and Store I/O

Implements bounded exponential backoff with retryable-error classification.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from analysis_worker.exceptions import FatalError, RetryableError
from analysis_worker.models.config import RetryPolicy
from analysis_worker.models.stats import RetryStats
from analysis_worker.utils import structured_log

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


DEFAULT_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
    backoff_multiplier=2.0,
)

# Analyses are slow; fewer attempts, longer pause between them.
ANALYSIS_RETRY_POLICY = RetryPolicy(
    max_attempts=2,
    base_delay=3.0,
    max_delay=5.0,
    backoff_multiplier=2.0,
)


def calculate_delay(attempt: int, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> float:
    """
    Calculate the pause after a failed attempt.

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        policy: Retry policy supplying base, multiplier and cap

    Returns:
        Delay in the policy's unit, capped at ``policy.max_delay``
    """
    delay = policy.base_delay * policy.backoff_multiplier ** (attempt - 1)
    return min(delay, policy.max_delay)


def is_retryable_error(error: BaseException, policy: RetryPolicy = DEFAULT_RETRY_POLICY) -> bool:
    """
    Decide whether an error is worth another attempt.

    Tagged errors decide for themselves. Untagged errors are matched
    case-insensitively against the policy's known transient signatures.
    """
    if isinstance(error, RetryableError):
        return True
    if isinstance(error, FatalError):
        return False
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(pattern.lower() in message for pattern in policy.retryable_errors)


class RetryStatsTracker:
    """Running totals of retried units of work."""

    def __init__(self):
        self._stats = RetryStats()

    def record(self, attempts: int, success: bool) -> None:
        stats = self._stats
        stats.total_retries += 1
        if success:
            stats.successful_retries += 1
        else:
            stats.failed_retries += 1
        stats.average_attempts = (
            stats.average_attempts * (stats.total_retries - 1) + attempts
        ) / stats.total_retries

    def get_stats(self) -> RetryStats:
        return self._stats.model_copy()

    def reset(self) -> None:
        self._stats = RetryStats()


async def run_with_retry(
    unit_of_work: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    context: Optional[str] = None,
    *,
    sleep: SleepFn = asyncio.sleep,
    tracker: Optional[RetryStatsTracker] = None,
) -> T:
    """
    Run an async unit of work with bounded retries.

    Args:
        unit_of_work: Zero-argument coroutine function to attempt
        policy: Attempts, backoff and retryable signatures
        context: Label used in log lines (e.g. the call being scored)
        sleep: Awaitable sleep; only the awaiting task is suspended
        tracker: Optional statistics tracker

    Returns:
        The first successful result

    Raises:
        The last error, once it is not retryable or attempts are exhausted
    """
    label = f" for {context}" if context else ""
    attempts = 0

    def _wait(retry_state: RetryCallState) -> float:
        return calculate_delay(retry_state.attempt_number, policy)

    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Attempt %d/%d failed%s: %s. Retrying in %.2fs...",
            retry_state.attempt_number,
            policy.max_attempts,
            label,
            error,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    async def _attempt() -> T:
        nonlocal attempts
        attempts += 1
        logger.info("Attempt %d/%d%s", attempts, policy.max_attempts, label)
        try:
            result = await unit_of_work()
        except Exception as e:
            structured_log.log_retry_attempt(
                context=context,
                attempt=attempts,
                max_attempts=policy.max_attempts,
                status="failed",
                error=f"{type(e).__name__}: {e}",
            )
            raise
        structured_log.log_retry_attempt(
            context=context,
            attempt=attempts,
            max_attempts=policy.max_attempts,
            status="success",
        )
        if attempts > 1:
            logger.info("Succeeded on attempt %d%s", attempts, label)
        return result

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=_wait,
        retry=retry_if_exception(lambda e: is_retryable_error(e, policy)),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )

    try:
        result = await retrying(_attempt)
    except Exception:
        logger.error("All %d attempt(s) failed%s", attempts, label)
        if tracker is not None:
            tracker.record(attempts, success=False)
        raise

    if tracker is not None:
        tracker.record(attempts, success=True)
    return result


async def retry_analysis(
    unit_of_work: Callable[[], Awaitable[T]],
    call_id: str,
    call_name: Optional[str] = None,
    *,
    policy: RetryPolicy = ANALYSIS_RETRY_POLICY,
    sleep: SleepFn = asyncio.sleep,
    tracker: Optional[RetryStatsTracker] = None,
) -> T:
    """Retry wrapper tuned for scoring calls; the context label names the call."""
    context = f"{call_name or 'call'} ({call_id[:8]}...)"
    return await run_with_retry(unit_of_work, policy, context, sleep=sleep, tracker=tracker)
