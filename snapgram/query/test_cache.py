# snapgram/query/test_cache.py
"""
쿼리 캐시 / QueryClient 테스트

사용법: python -m pytest snapgram/query/test_cache.py -v
"""

import asyncio

import pytest

from snapgram.core.errors import NotFound
from snapgram.query.cache import QueryCache, QueryStatus
from snapgram.query.client import QueryClient, Mutation

RECENT = ("getRecentPosts",)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_client(**kwargs):
    return QueryClient(QueryCache(gc_time=None, **kwargs))


def counting_fetch(result="posts"):
    calls = []

    async def fetch():
        calls.append(1)
        return result

    return fetch, calls


@pytest.mark.asyncio
async def test_second_read_uses_cache():
    client = make_client()
    fetch, calls = counting_fetch()

    assert await client.fetch_query(RECENT, fetch) == "posts"
    assert await client.fetch_query(RECENT, fetch) == "posts"
    assert len(calls) == 1
    assert client.get_query_state(RECENT).status == QueryStatus.SUCCESS


@pytest.mark.asyncio
async def test_concurrent_reads_share_one_fetch():
    client = make_client()
    release = asyncio.Event()
    calls = []

    async def fetch():
        calls.append(1)
        await release.wait()
        return "posts"

    first = asyncio.create_task(client.fetch_query(RECENT, fetch))
    second = asyncio.create_task(client.fetch_query(RECENT, fetch))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert client.get_query_state(RECENT).status == QueryStatus.PENDING

    release.set()
    assert await asyncio.gather(first, second) == ["posts", "posts"]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_invalidate_marks_stale_and_refetches():
    client = make_client()
    fetch, calls = counting_fetch()
    await client.fetch_query(RECENT, fetch)

    assert client.invalidate_queries(RECENT) == [RECENT]
    assert client.get_query_state(RECENT).status == QueryStatus.STALE
    # 이미 STALE이면 아무것도 바뀌지 않습니다.
    assert client.invalidate_queries(RECENT) == []

    await client.fetch_query(RECENT, fetch)
    assert len(calls) == 2
    assert client.get_query_state(RECENT).status == QueryStatus.SUCCESS


@pytest.mark.asyncio
async def test_invalidate_by_prefix_only_touches_matching_keys():
    client = make_client()
    fetch, _ = counting_fetch()
    await client.fetch_query(("getPostById", "post1"), fetch)
    await client.fetch_query(("getPostById", "post2"), fetch)
    await client.fetch_query(("searchPosts", "beach"), fetch)

    changed = client.invalidate_queries(("getPostById",))

    assert sorted(changed) == [("getPostById", "post1"), ("getPostById", "post2")]
    assert client.get_query_state(("searchPosts", "beach")).status == QueryStatus.SUCCESS


@pytest.mark.asyncio
async def test_error_is_kept_until_invalidated():
    client = make_client()
    calls = []

    async def failing_fetch():
        calls.append(1)
        raise NotFound("없음", operation="get_post_by_id")

    with pytest.raises(NotFound):
        await client.fetch_query(RECENT, failing_fetch)
    with pytest.raises(NotFound):
        await client.fetch_query(RECENT, failing_fetch)
    assert len(calls) == 1
    assert client.get_query_state(RECENT).status == QueryStatus.ERROR

    client.invalidate_queries(RECENT)
    with pytest.raises(NotFound):
        await client.fetch_query(RECENT, failing_fetch)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_failed_refetch_keeps_last_data():
    client = make_client()
    fetch, _ = counting_fetch("old")
    await client.fetch_query(RECENT, fetch)

    async def failing_fetch():
        raise NotFound("없음")

    with pytest.raises(NotFound):
        await client.fetch_query(RECENT, failing_fetch, force=True)

    entry = client.get_query_state(RECENT)
    assert entry.status == QueryStatus.ERROR
    assert entry.data == "old"


@pytest.mark.asyncio
async def test_force_refetches_fresh_entry():
    client = make_client()
    fetch, calls = counting_fetch()
    await client.fetch_query(RECENT, fetch)
    await client.fetch_query(RECENT, fetch, force=True)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_disabled_query_does_not_fetch():
    client = make_client()
    fetch, calls = counting_fetch()

    assert await client.fetch_query(("getPostById", ""), fetch, enabled=False) is None
    assert calls == []
    assert client.get_query_state(("getPostById", "")) is None


@pytest.mark.asyncio
async def test_late_result_after_remove_is_dropped():
    client = make_client()
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return "late"

    task = asyncio.create_task(client.fetch_query(RECENT, fetch))
    await asyncio.sleep(0)
    assert client.remove_queries(RECENT) == 1

    release.set()
    # 호출자는 결과를 받지만 캐시에는 반영되지 않습니다.
    assert await task == "late"
    assert client.get_query_state(RECENT) is None


@pytest.mark.asyncio
async def test_invalidation_during_fetch_stores_result_as_stale():
    client = make_client()
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return "posts"

    task = asyncio.create_task(client.fetch_query(RECENT, fetch))
    await asyncio.sleep(0)
    assert client.invalidate_queries(RECENT) == [RECENT]

    release.set()
    assert await task == "posts"
    entry = client.get_query_state(RECENT)
    assert entry.status == QueryStatus.STALE
    assert entry.data == "posts"


@pytest.mark.asyncio
async def test_set_query_data_discards_in_flight_result():
    client = make_client()
    release = asyncio.Event()

    async def fetch():
        await release.wait()
        return "from-server"

    task = asyncio.create_task(client.fetch_query(RECENT, fetch))
    await asyncio.sleep(0)
    client.set_query_data(RECENT, "local")

    release.set()
    await task
    assert client.get_query_data(RECENT) == "local"


@pytest.mark.asyncio
async def test_failed_mutation_invalidates_nothing():
    client = make_client()
    fetch, _ = counting_fetch()
    await client.fetch_query(RECENT, fetch)

    async def failing_write(variables):
        raise NotFound("없음")

    mutation = Mutation(name="delete_post", mutation_fn=failing_write, invalidates=lambda data, v: [RECENT])
    with pytest.raises(NotFound):
        await client.mutate(mutation, {})
    assert client.get_query_state(RECENT).status == QueryStatus.SUCCESS


@pytest.mark.asyncio
async def test_unused_entries_are_collected_after_gc_time():
    clock = FakeClock()
    client = QueryClient(QueryCache(gc_time=10, clock=clock))
    fetch, _ = counting_fetch()
    await client.fetch_query(RECENT, fetch)
    await client.fetch_query(("getPostById", "post1"), fetch)
    unsubscribe = client.subscribe(("getPostById", "post1"), lambda entry: None)

    clock.now = 11
    expired = client.cache.collect_garbage()

    # 구독 중인 항목은 남습니다.
    assert expired == [RECENT]
    assert client.get_query_state(("getPostById", "post1")) is not None

    unsubscribe()
    clock.now = 22
    assert client.cache.collect_garbage() == [("getPostById", "post1")]
    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_subscriber_sees_status_changes():
    client = make_client()
    fetch, _ = counting_fetch()
    seen = []
    unsubscribe = client.subscribe(RECENT, lambda entry: seen.append(entry.status))

    await client.fetch_query(RECENT, fetch)
    client.invalidate_queries(RECENT)
    unsubscribe()
    await client.fetch_query(RECENT, fetch)

    assert seen == [QueryStatus.PENDING, QueryStatus.SUCCESS, QueryStatus.STALE]


def test_clear_empties_cache():
    client = make_client()
    client.set_query_data(RECENT, "posts")
    client.clear()
    assert client.get_query_data(RECENT) is None
