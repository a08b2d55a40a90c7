"""Tests for rate limiting."""

import time

import pytest

from storeprofit.clients.ratelimit import AsyncTokenBucket


@pytest.mark.asyncio
async def test_token_bucket_rate():
    """Bucket enforces the refill rate once the burst is spent."""
    bucket = AsyncTokenBucket(rate_per_sec=10, capacity=5)
    t0 = time.monotonic()

    for _ in range(5):
        await bucket.acquire()

    # 6th token should require waiting ~0.1s
    await bucket.acquire()
    elapsed = time.monotonic() - t0

    assert elapsed >= 0.09


@pytest.mark.asyncio
async def test_token_bucket_burst():
    """Bucket allows a burst up to capacity without waiting."""
    bucket = AsyncTokenBucket(rate_per_sec=10, capacity=20)

    t0 = time.monotonic()
    for _ in range(20):
        await bucket.acquire()
    elapsed = time.monotonic() - t0

    assert elapsed < 0.05


@pytest.mark.asyncio
async def test_penalize_blocks_until_retry_after():
    bucket = AsyncTokenBucket(rate_per_sec=1000, capacity=10)
    bucket.penalize(0.1)

    assert bucket.tokens == 0.0

    t0 = time.monotonic()
    await bucket.acquire()
    assert time.monotonic() - t0 >= 0.09


def test_refill_caps_at_capacity():
    now = [0.0]
    bucket = AsyncTokenBucket(rate_per_sec=2, capacity=4, time_fn=lambda: now[0])
    bucket.tokens = 0.0

    now[0] = 1.0
    bucket._refill()
    assert bucket.tokens == pytest.approx(2.0)

    now[0] = 100.0
    bucket._refill()
    assert bucket.tokens == 4
