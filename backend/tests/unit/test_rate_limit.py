import pytest

from app.infra.rate_limit import allow


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
    assert await allow("search", "u5", limit=2, window_seconds=60, now=120.0)
    assert await allow("search", "u5", limit=2, window_seconds=60, now=121.0)


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
    await allow("search:suggest", "u6", limit=1, window_seconds=60, now=120.0)
    assert not await allow("search:suggest", "u6", limit=1, window_seconds=60, now=130.0)


@pytest.mark.asyncio
async def test_rate_limit_resets_in_next_window():
    await allow("search", "u7", limit=1, window_seconds=60, now=120.0)
    assert await allow("search", "u7", limit=1, window_seconds=60, now=180.0)


@pytest.mark.asyncio
async def test_zero_budget_always_blocks():
    assert not await allow("search", "u8", limit=0)
