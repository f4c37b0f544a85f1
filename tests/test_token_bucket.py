"""Unit tests for the token bucket primitive and the global limiter."""

import pytest

from app.adapters.rate_limit.token_bucket import (
    GlobalTokenBucketLimiter,
    TokenBucket,
    advisory_retry_after,
)


def test_admits_burst_then_denies(clock) -> None:
    bucket = TokenBucket(rate=1.0, burst=5, clock=clock)

    assert [bucket.allow() for _ in range(5)] == [True] * 5
    assert bucket.allow() is False


def test_refills_one_token_per_second(clock) -> None:
    bucket = TokenBucket(rate=1.0, burst=5, clock=clock)
    for _ in range(5):
        bucket.allow()
    assert bucket.allow() is False

    clock.advance(1.0)

    assert bucket.allow() is True
    assert bucket.allow() is False


def test_refill_is_capped_at_burst(clock) -> None:
    bucket = TokenBucket(rate=10.0, burst=3, clock=clock)
    bucket.allow()

    clock.advance(3600)

    assert bucket.tokens_available() == 3.0
    assert [bucket.allow() for _ in range(4)] == [True, True, True, False]


def test_tokens_available_does_not_consume(clock) -> None:
    bucket = TokenBucket(rate=1.0, burst=2, clock=clock)

    assert bucket.tokens_available() == 2.0
    assert bucket.tokens_available() == 2.0
    assert bucket.is_full() is True

    bucket.allow()
    assert bucket.tokens_available() == 1.0
    assert bucket.is_full() is False


def test_retire_requires_full_and_idle(clock) -> None:
    bucket = TokenBucket(rate=1.0, burst=2, clock=clock)
    bucket.allow()

    # Refilled but accessed too recently
    clock.advance(1.0)
    assert bucket.retire_if_idle(idle_seconds=60) is False

    clock.advance(60)
    assert bucket.retire_if_idle(idle_seconds=60) is True
    assert bucket.retired is True


def test_partially_drained_bucket_is_never_retired(clock) -> None:
    bucket = TokenBucket(rate=0.01, burst=5, clock=clock)
    for _ in range(5):
        bucket.allow()

    clock.advance(120)

    assert bucket.retire_if_idle(idle_seconds=60) is False


def test_retired_bucket_refuses_to_decide(clock) -> None:
    bucket = TokenBucket(rate=1.0, burst=1, clock=clock)
    assert bucket.retire_if_idle(idle_seconds=0) is True

    assert bucket.try_allow() is None
    assert bucket.allow() is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"rate": 0, "burst": 1},
        {"rate": -1.0, "burst": 1},
        {"rate": 1.0, "burst": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        TokenBucket(**kwargs)


@pytest.mark.parametrize(
    ("rate", "expected"),
    [(10.0, 1), (1.0, 1), (0.5, 2), (0.2, 5)],
)
def test_advisory_retry_after(rate: float, expected: int) -> None:
    assert advisory_retry_after(rate) == expected


class TestGlobalTokenBucketLimiter:
    """The global limiter shares one bucket across every key."""

    def test_keys_share_the_same_budget(self, clock) -> None:
        limiter = GlobalTokenBucketLimiter(rate=1.0, burst=2, clock=clock)

        assert limiter.consume("10.0.0.1").allowed is True
        assert limiter.consume("10.0.0.2").allowed is True
        assert limiter.consume("10.0.0.3").allowed is False

    def test_denied_result_carries_advisory_fields(self, clock) -> None:
        limiter = GlobalTokenBucketLimiter(rate=2.0, burst=1, clock=clock)
        limiter.consume("k")

        result = limiter.consume("k")

        assert result.allowed is False
        assert result.limit == 2.0
        assert result.remaining == 0
        assert result.retry_after_seconds == 1
        assert result.window_seconds is None

    def test_sweep_is_a_noop(self, clock) -> None:
        limiter = GlobalTokenBucketLimiter(rate=1.0, burst=1, clock=clock)
        limiter.consume("k")

        assert limiter.sweep() == 0
        assert len(limiter) == 0
