import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.resultbridge.domain.models import TaskStatus
from src.resultbridge.infrastructure.memory.cache import InMemoryResultCache

TTL = 1800


@pytest.mark.asyncio
async def test_put_then_get_returns_entry(cache: InMemoryResultCache) -> None:
    await cache.put("t-1", TaskStatus.SUCCESS, ["https://x/a.mp4"])

    entry = await cache.get("t-1")

    assert entry is not None
    assert entry.status is TaskStatus.SUCCESS
    assert entry.result_urls == ["https://x/a.mp4"]


@pytest.mark.asyncio
async def test_second_put_overwrites_without_merging(cache: InMemoryResultCache) -> None:
    await cache.put("t-1", TaskStatus.SUCCESS, ["https://x/a.mp4"])
    await cache.put("t-1", TaskStatus.FAILED, None, "boom")

    entry = await cache.get("t-1")

    assert entry is not None
    assert entry.status is TaskStatus.FAILED
    assert entry.result_urls == []
    assert entry.error == "boom"


@pytest.mark.asyncio
async def test_entry_lives_until_ttl(cache: InMemoryResultCache, clock) -> None:
    await cache.put("t-1", TaskStatus.SUCCESS, ["https://x/a.mp4"])

    clock.advance(TTL - 1)
    assert await cache.get("t-1") is not None

    clock.advance(2)
    assert await cache.get("t-1") is None
    assert (await cache.stats())["size"] == 0


@pytest.mark.asyncio
async def test_put_sweeps_expired_entries(cache: InMemoryResultCache, clock) -> None:
    await cache.put("old", TaskStatus.SUCCESS, ["https://x/old.png"])
    clock.advance(TTL + 5)
    await cache.put("new", TaskStatus.PROCESSING)

    assert await cache.stats() == {"size": 1, "entries": ["new"]}


@pytest.mark.asyncio
async def test_expire_removes_entry(cache: InMemoryResultCache) -> None:
    await cache.put("t-1", TaskStatus.PROCESSING)

    await cache.expire("t-1")
    await cache.expire("missing")

    assert await cache.get("t-1") is None


@pytest.mark.asyncio
async def test_stats_lists_live_keys(cache: InMemoryResultCache) -> None:
    await cache.put("a", TaskStatus.PROCESSING)
    await cache.put("b", TaskStatus.SUCCESS, ["https://x/b.png"])

    stats = await cache.stats()

    assert stats["size"] == 2
    assert sorted(stats["entries"]) == ["a", "b"]


def test_guarded_writes_from_many_threads_keep_terminal_state(clock) -> None:
    cache = InMemoryResultCache(clock=clock)
    statuses = [TaskStatus.PROCESSING] * 20
    statuses.insert(7, TaskStatus.SUCCESS)

    def write(status: TaskStatus) -> bool:
        urls = ["https://x/a.png"] if status is TaskStatus.SUCCESS else None
        _, written = asyncio.run(cache.put_if_allowed("t-1", status, urls))
        return written

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(write, statuses))

    stored = asyncio.run(cache.get("t-1"))
    assert stored.status is TaskStatus.SUCCESS
    assert stored.result_urls == ["https://x/a.png"]


def test_interleaved_puts_and_reads_from_threads(clock) -> None:
    cache = InMemoryResultCache(clock=clock)

    def churn(index: int) -> None:
        task_id = f"t-{index % 4}"
        asyncio.run(cache.put(task_id, TaskStatus.PROCESSING))
        assert asyncio.run(cache.get(task_id)) is not None

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(churn, range(64)))

    assert asyncio.run(cache.stats())["size"] == 4


@pytest.mark.asyncio
async def test_guarded_write_rejects_regression(cache: InMemoryResultCache) -> None:
    await cache.put("t-1", TaskStatus.FAILED, None, "boom")

    entry, written = await cache.put_if_allowed("t-1", TaskStatus.PROCESSING)

    assert written is False
    assert entry.status is TaskStatus.FAILED
