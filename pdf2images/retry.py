"""One retry utility shared by page-count reads, page renders and materialization."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

from .cancellation import CancellationToken
from .errors import FileTimeoutError, RunAborted

log = logging.getLogger(__name__)

T = TypeVar("T")

DelayFn = Callable[[int, BaseException], float]


def linear_backoff(base_s: float) -> DelayFn:
    """``base_s * attempt`` seconds after the n-th failed attempt."""
    return lambda attempt, exc: base_s * attempt


def fixed_delay(delay_s: float) -> DelayFn:
    return lambda attempt, exc: delay_s


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts, how long to wait, what to retry and what to do first.

    ``delay`` receives the 1-based number of the attempt that just failed
    and its exception. ``before_retry`` runs before the wait, e.g. to
    re-trigger a cloud download.
    """

    max_attempts: int
    delay: DelayFn
    retry_on: Callable[[BaseException], bool] = lambda exc: True
    before_retry: Optional[Callable[[BaseException], None]] = None


def _never_retry(exc: BaseException) -> bool:
    return isinstance(exc, (RunAborted, FileTimeoutError))


def call_with_retry(
    fn: Callable[..., T],
    policy: RetryPolicy,
    token: CancellationToken,
    *args: Any,
    label: str = "operation",
    **kwargs: Any,
) -> T:
    """Call ``fn`` under ``policy``; the last exception is re-raised on exhaustion."""

    def _wait(state: RetryCallState) -> float:
        exc = state.outcome.exception()
        return max(0.0, policy.delay(state.attempt_number, exc))

    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception()
        log.warning(
            "%s failed (attempt %s/%s), retrying in %.1fs: %s",
            label,
            state.attempt_number,
            policy.max_attempts,
            state.next_action.sleep if state.next_action else 0.0,
            exc,
        )
        if policy.before_retry is not None:
            policy.before_retry(exc)

    retryer = Retrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=_wait,
        retry=retry_if_exception(
            lambda exc: not _never_retry(exc) and policy.retry_on(exc)
        ),
        before_sleep=_before_sleep,
        sleep=token.sleep,
        reraise=True,
    )
    return retryer(fn, *args, **kwargs)
