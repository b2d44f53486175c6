"""Tests for the async concurrency helpers used by the executor."""

from __future__ import annotations

import asyncio

import pytest

from roadmap_verifier.utils.concurrency import ConcurrencyLimit, gather_ordered, run_with_timeout


async def _delayed(value: int, delay: float) -> int:
    await asyncio.sleep(delay)
    return value


@pytest.mark.asyncio
async def test_gather_ordered_keeps_submission_order() -> None:
    results = await gather_ordered([_delayed(1, 0.03), _delayed(2, 0.0), _delayed(3, 0.01)])

    assert results == [1, 2, 3]


@pytest.mark.asyncio
async def test_gather_ordered_never_exceeds_the_limit() -> None:
    limit = ConcurrencyLimit(2)

    results = await gather_ordered((_delayed(index, 0.01) for index in range(6)), limit=limit)

    assert results == list(range(6))
    assert limit.high_water == 2
    assert limit.active == 0


@pytest.mark.asyncio
async def test_limit_is_shared_across_gathers() -> None:
    limit = ConcurrencyLimit(3)

    await asyncio.gather(
        gather_ordered((_delayed(i, 0.01) for i in range(4)), limit=limit),
        gather_ordered((_delayed(i, 0.01) for i in range(4)), limit=limit),
    )

    assert limit.high_water == 3


@pytest.mark.parametrize("bad", [0, -1, True])
def test_limit_rejects_non_positive_values(bad: int) -> None:
    with pytest.raises(ValueError, match="concurrency limit"):
        ConcurrencyLimit(bad)


@pytest.mark.asyncio
async def test_slot_is_released_when_the_body_raises() -> None:
    limit = ConcurrencyLimit(1)

    with pytest.raises(RuntimeError):
        async with limit.slot():
            raise RuntimeError("boom")

    assert limit.active == 0
    assert await gather_ordered([_delayed(5, 0.0)], limit=limit) == [5]


@pytest.mark.asyncio
async def test_run_with_timeout_returns_value() -> None:
    assert await run_with_timeout(_delayed(7, 0.0), 1.0) == 7


@pytest.mark.asyncio
async def test_run_with_timeout_raises_timeout_error() -> None:
    with pytest.raises(TimeoutError, match="timed out after 0.01 seconds"):
        await run_with_timeout(_delayed(1, 1.0), 0.01)


@pytest.mark.asyncio
async def test_run_with_timeout_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        await run_with_timeout(_delayed(1, 0.0), 0)
