import pytest

from brandguard.services.retry import (
    RetryableError,
    RetryExhaustedError,
    compute_backoff_delay,
    retry_budget_seconds,
    parse_retry_after,
    with_retry,
)


def _failing_then(value, failures, error_factory):
    calls = {"count": 0}

    def _fn():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise error_factory()
        return value

    return _fn, calls


def test_rate_limit_backoff_grows_by_factor_three():
    sleeps: list[float] = []
    fn, calls = _failing_then("ok", 3, lambda: RetryableError("429 Too Many Requests", rate_limited=True))

    result = with_retry(fn, max_attempts=5, base_delay=2.0, max_delay=30.0, sleep=sleeps.append)

    assert result == "ok"
    assert calls["count"] == 4
    assert sleeps == [2.0, 6.0, 18.0]


def test_transient_backoff_grows_by_factor_two_and_caps():
    sleeps: list[float] = []
    fn, _ = _failing_then("ok", 4, lambda: RetryableError("503 unavailable"))

    with_retry(fn, max_attempts=5, base_delay=10.0, max_delay=30.0, sleep=sleeps.append)

    assert sleeps == [10.0, 20.0, 30.0, 30.0]


def test_retry_after_overrides_computed_delay():
    sleeps: list[float] = []
    fn, _ = _failing_then(
        "ok", 1, lambda: RetryableError("rate limited", rate_limited=True, retry_after=7.5)
    )

    with_retry(fn, max_attempts=3, base_delay=2.0, max_delay=30.0, sleep=sleeps.append)

    assert sleeps == [7.5]


def test_non_retryable_error_propagates_immediately():
    sleeps: list[float] = []
    calls = {"count": 0}

    def _fn():
        calls["count"] += 1
        raise ValueError("bad request")

    with pytest.raises(ValueError, match="bad request"):
        with_retry(fn=_fn, max_attempts=5, sleep=sleeps.append)

    assert calls["count"] == 1
    assert sleeps == []


def test_exhaustion_names_attempt_count_and_chains_last_error():
    sleeps: list[float] = []
    fn, calls = _failing_then("never", 10, lambda: RetryableError("upstream 500"))

    with pytest.raises(RetryExhaustedError) as excinfo:
        with_retry(fn, max_attempts=3, base_delay=1.0, max_delay=30.0, sleep=sleeps.append)

    assert calls["count"] == 3
    assert len(sleeps) == 2
    assert "gave up after 3 attempts" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RetryableError)
    assert excinfo.value.attempts == 3


def test_compute_backoff_delay_first_attempt_uses_base():
    error = RetryableError("x", rate_limited=True)
    assert compute_backoff_delay(1, error, base_delay=2.0, max_delay=30.0) == 2.0
    assert compute_backoff_delay(4, error, base_delay=2.0, max_delay=30.0) == 30.0


def test_parse_retry_after():
    assert parse_retry_after("12") == 12.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None


def test_zero_max_attempts_is_rejected():
    with pytest.raises(ValueError, match="at least 1"):
        with_retry(lambda: "ok", max_attempts=0)


def test_retry_after_is_capped_at_max_delay():
    error = RetryableError("rate limited", rate_limited=True, retry_after=600)
    assert compute_backoff_delay(1, error, base_delay=2.0, max_delay=30.0) == 30.0


def test_backoff_is_not_slept_past_deadline():
    clock = {"now": 0.0}
    sleeps: list[float] = []

    def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock["now"] += seconds

    fn, calls = _failing_then("ok", 10, lambda: RetryableError("503 unavailable"))

    with pytest.raises(RetryExhaustedError) as excinfo:
        with_retry(
            fn,
            max_attempts=5,
            base_delay=2.0,
            max_delay=30.0,
            sleep=_sleep,
            deadline=5.0,
            clock=lambda: clock["now"],
        )

    assert excinfo.value.deadline_reached is True
    assert sleeps == [2.0]
    assert calls["count"] == 2
    assert "deadline reached after 2 attempts" in str(excinfo.value)


def test_retry_budget_covers_attempts_and_backoff():
    assert retry_budget_seconds(60.0, max_attempts=5, max_delay=30.0) == 420.0
