from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from brandguard.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_MULTIPLIER = 3
TRANSIENT_MULTIPLIER = 2


class RetryableError(RuntimeError):
    """
    A transient failure worth retrying.

    ``rate_limited`` selects the steeper backoff curve; ``retry_after`` (seconds), when
    the upstream provided one, replaces the computed delay.
    """

    def __init__(
        self,
        message: str,
        *,
        rate_limited: bool = False,
        retry_after: Optional[float] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.rate_limited = rate_limited
        self.retry_after = retry_after
        self.status_code = status_code


class RetryExhaustedError(RuntimeError):
    def __init__(self, last_error: RetryableError, attempts: int, *, deadline_reached: bool = False) -> None:
        reason = "deadline reached" if deadline_reached else "gave up"
        super().__init__(f"{last_error} ({reason} after {attempts} attempts)")
        self.last_error = last_error
        self.attempts = attempts
        self.deadline_reached = deadline_reached


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a ``Retry-After`` header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def compute_backoff_delay(
    attempt: int,
    error: RetryableError,
    *,
    base_delay: float,
    max_delay: float,
) -> float:
    """Delay in seconds before the attempt following ``attempt`` (1-based), never above ``max_delay``."""
    if error.retry_after is not None:
        return min(max_delay, error.retry_after)
    multiplier = RATE_LIMIT_MULTIPLIER if error.rate_limited else TRANSIENT_MULTIPLIER
    return min(max_delay, base_delay * (multiplier ** (attempt - 1)))


def retry_budget_seconds(
    per_attempt_seconds: float,
    *,
    max_attempts: Optional[int] = None,
    max_delay: Optional[float] = None,
) -> float:
    """Upper bound on the wall time ``with_retry`` can spend on calls that each take ``per_attempt_seconds``."""
    attempts = settings.RETRY_MAX_ATTEMPTS if max_attempts is None else max_attempts
    ceiling = settings.RETRY_MAX_DELAY_SECONDS if max_delay is None else max_delay
    return attempts * per_attempt_seconds + (attempts - 1) * ceiling


def with_retry(
    fn: Callable[[], T],
    *,
    operation: str = "operation",
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    deadline: Optional[float] = None,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Call ``fn`` until it succeeds, retrying only ``RetryableError``.

    Any other exception propagates unchanged on the attempt it was raised. After
    ``max_attempts`` retryable failures a ``RetryExhaustedError`` is raised from the
    last one. With a ``deadline`` (on the ``clock`` timeline) no backoff is slept past
    it; the last error is raised as exhausted with ``deadline_reached`` set instead.
    """
    attempts_allowed = int(settings.RETRY_MAX_ATTEMPTS if max_attempts is None else max_attempts)
    if attempts_allowed < 1:
        raise ValueError("max_attempts must be at least 1")
    base = float(settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay)
    ceiling = float(settings.RETRY_MAX_DELAY_SECONDS if max_delay is None else max_delay)

    for attempt in range(1, attempts_allowed + 1):
        try:
            return fn()
        except RetryableError as exc:
            if attempt >= attempts_allowed:
                logger.warning(
                    "retry.exhausted",
                    extra={"operation": operation, "attempts": attempt, "error": str(exc)},
                )
                raise RetryExhaustedError(exc, attempt) from exc
            delay = compute_backoff_delay(attempt, exc, base_delay=base, max_delay=ceiling)
            if deadline is not None and clock() + delay >= deadline:
                logger.warning(
                    "retry.deadline_reached",
                    extra={"operation": operation, "attempts": attempt, "error": str(exc)},
                )
                raise RetryExhaustedError(exc, attempt, deadline_reached=True) from exc
            logger.info(
                "retry.backoff",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "rate_limited": exc.rate_limited,
                    "error": str(exc),
                },
            )
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
