# snapgram/query/client.py
"""
읽기(query)와 쓰기(mutation)를 캐시와 연결하는 QueryClient.

- 읽기: 키별로 결과를 캐시하고, 같은 키에 대한 동시 조회는 진행 중인 원격 호출 하나를 공유합니다.
- 쓰기: 성공하면 선언된 대상 키(prefix)들을 STALE로 표시합니다. 다시 읽을 때 새로 가져옵니다.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from snapgram.query.cache import QueryCache, QueryCacheEntry, QueryStatus, Listener
from snapgram.query.keys import QueryKey
from snapgram.query.pagination import NO_MORE_PAGES

logger = logging.getLogger(__name__)

QueryFn = Callable[[], Awaitable[Any]]
PageFn = Callable[[Any], Awaitable[Any]]
NextPageParamFn = Callable[[Any], Any]


@dataclass
class InfiniteData:
    """무한 스크롤 쿼리의 캐시 값. pages[i]는 page_params[i]로 가져온 페이지입니다."""
    pages: List[Any] = field(default_factory=list)
    page_params: List[Any] = field(default_factory=list)


def _no_invalidation(data: Any, variables: Any) -> Iterable[QueryKey]:
    return ()


@dataclass
class Mutation:
    """
    쓰기 작업 정의.

    :param mutation_fn: variables를 받아 원격 쓰기를 수행하는 코루틴 함수
    :param invalidates: (결과, variables) -> 성공 시 무효화할 키 prefix 목록
    """
    name: str
    mutation_fn: Callable[[Any], Awaitable[Any]]
    invalidates: Callable[[Any, Any], Iterable[QueryKey]] = _no_invalidation


def _consume_exception(task: asyncio.Task):
    # 모든 호출자가 관심을 끊은 뒤 실패한 조회의 예외를 회수합니다.
    if not task.cancelled():
        task.exception()


class QueryClient:
    """캐시 관리 객체. 앱 시작 시 만들어지고, 테스트에서는 clear()로 비울 수 있습니다."""

    def __init__(self, cache: Optional[QueryCache] = None):
        self.cache = cache or QueryCache()

    # --- 읽기 ---
    async def fetch_query(self, key: QueryKey, fn: QueryFn, force: bool = False, enabled: bool = True) -> Any:
        """
        캐시된 결과를 돌려주거나, 필요하면 fn을 호출해 새로 가져옵니다.

        - PENDING: 진행 중인 호출을 함께 기다립니다.
        - SUCCESS / ERROR (force 아님): 원격 호출 없이 저장된 결과를 돌려주거나 저장된 오류를 다시 던집니다.
        - EMPTY / STALE / force: 새로 가져옵니다.
        - enabled가 False이면 호출하지 않고 None을 돌려줍니다.
        """
        if not enabled:
            return None

        entry = self.cache.build(key)
        if entry.status == QueryStatus.PENDING:
            return await self._join(entry)
        if not force:
            if entry.status == QueryStatus.SUCCESS:
                return entry.data
            if entry.status == QueryStatus.ERROR:
                raise entry.error
        return await self._join(self._start_fetch(entry, fn))

    async def fetch_infinite_query(self, key: QueryKey, fetch_page: PageFn, get_next_page_param: NextPageParamFn,
                                   initial_page_param: Any = None, force: bool = False) -> InfiniteData:
        """
        무한 스크롤 쿼리의 첫 페이지를 가져옵니다.
        STALE 상태에서 다시 가져올 때는 이미 불러온 페이지 수만큼 순서대로 다시 가져옵니다.
        """
        async def _load_pages() -> InfiniteData:
            entry = self.cache.find(key)
            previous = entry.data if entry is not None and isinstance(entry.data, InfiniteData) else None
            page_count = max(len(previous.pages), 1) if previous else 1

            result = InfiniteData()
            param = initial_page_param
            for index in range(page_count):
                if index > 0:
                    param = get_next_page_param(result.pages[-1])
                    if param is NO_MORE_PAGES:
                        break
                result.pages.append(await fetch_page(param))
                result.page_params.append(param)
            return result

        return await self.fetch_query(key, _load_pages, force=force)

    async def fetch_next_page(self, key: QueryKey, fetch_page: PageFn, get_next_page_param: NextPageParamFn,
                              initial_page_param: Any = None) -> InfiniteData:
        """
        마지막 페이지로부터 커서를 계산해 다음 페이지를 가져옵니다.
        더 가져올 페이지가 없으면 원격 호출 없이 현재 데이터를 돌려줍니다.
        STALE 상태이면 불러온 페이지를 모두 다시 가져온 뒤, 새로 받은 마지막 페이지로 커서를 계산합니다.
        """
        entry = self.cache.find(key)
        if entry is not None and entry.is_pending:
            await self._join(entry)
            entry = self.cache.find(key)

        if entry is None or not isinstance(entry.data, InfiniteData) or not entry.data.pages:
            return await self.fetch_infinite_query(key, fetch_page, get_next_page_param,
                                                   initial_page_param=initial_page_param, force=True)

        if entry.status in (QueryStatus.STALE, QueryStatus.EMPTY):
            await self.fetch_infinite_query(key, fetch_page, get_next_page_param,
                                            initial_page_param=initial_page_param)
            entry = self.cache.find(key)
            if entry is None or not isinstance(entry.data, InfiniteData) or not entry.data.pages:
                return await self.fetch_infinite_query(key, fetch_page, get_next_page_param,
                                                       initial_page_param=initial_page_param, force=True)

        current: InfiniteData = entry.data
        next_param = get_next_page_param(current.pages[-1])
        if next_param is NO_MORE_PAGES:
            logger.debug(f"더 가져올 페이지가 없습니다 (key: {key})")
            return current

        async def _load_next_page() -> InfiniteData:
            page = await fetch_page(next_param)
            return InfiniteData(pages=current.pages + [page], page_params=current.page_params + [next_param])

        return await self._join(self._start_fetch(self.cache.build(key), _load_next_page))

    def has_next_page(self, key: QueryKey, get_next_page_param: NextPageParamFn) -> bool:
        entry = self.cache.find(key)
        if entry is None or not isinstance(entry.data, InfiniteData) or not entry.data.pages:
            return False
        return get_next_page_param(entry.data.pages[-1]) is not NO_MORE_PAGES

    def _start_fetch(self, entry: QueryCacheEntry, fn: QueryFn) -> QueryCacheEntry:
        entry.invalidated_during_fetch = False
        entry.fetch_count += 1
        task = asyncio.get_running_loop().create_task(self._run_fetch(entry, fn))
        task.add_done_callback(_consume_exception)
        entry.fetch_task = task
        entry.set_status(QueryStatus.PENDING)
        logger.debug(f"쿼리 조회 시작 (key: {entry.key}, fetch #{entry.fetch_count})")
        return entry

    async def _join(self, entry: QueryCacheEntry) -> Any:
        # shield: 호출자가 취소되어도 공유 중인 조회는 계속 진행됩니다.
        return await asyncio.shield(entry.fetch_task)

    def _is_current(self, entry: QueryCacheEntry, task: Optional[asyncio.Task]) -> bool:
        """결과를 반영해도 되는지: 항목이 아직 캐시에 있고, 이 조회가 그 항목의 진행 중 조회인지"""
        return self.cache.find(entry.key) is entry and entry.fetch_task is task

    async def _run_fetch(self, entry: QueryCacheEntry, fn: QueryFn) -> Any:
        task = asyncio.current_task()
        try:
            data = await fn()
        except asyncio.CancelledError:
            if self._is_current(entry, task):
                entry.fetch_task = None
                entry.set_status(QueryStatus.STALE if entry.has_data else QueryStatus.EMPTY)
            raise
        except Exception as e:
            if self._is_current(entry, task):
                entry.error = e
                entry.error_updated_at = self.cache.clock()
                entry.fetch_task = None
                stale = entry.invalidated_during_fetch
                entry.invalidated_during_fetch = False
                entry.set_status(QueryStatus.STALE if stale else QueryStatus.ERROR)
                logger.debug(f"쿼리 조회 실패 (key: {entry.key}): {e!r}")
            else:
                logger.debug(f"버려진 쿼리의 실패 결과 무시 (key: {entry.key})")
            raise

        if self._is_current(entry, task):
            entry.data = data
            entry.error = None
            entry.data_updated_at = self.cache.clock()
            entry.fetch_task = None
            stale = entry.invalidated_during_fetch
            entry.invalidated_during_fetch = False
            entry.set_status(QueryStatus.STALE if stale else QueryStatus.SUCCESS)
        else:
            logger.debug(f"버려진 쿼리의 결과 무시 (key: {entry.key})")
        return data

    # --- 쓰기 ---
    async def mutate(self, mutation: Mutation, variables: Any = None) -> Any:
        """
        쓰기를 실행하고, 성공하면 선언된 키들을 무효화합니다.
        실패하면 아무것도 무효화하지 않고 오류를 그대로 전파합니다.
        """
        try:
            data = await mutation.mutation_fn(variables)
        except Exception as e:
            logger.warning(f"쓰기 실패 ({mutation.name}): {e!r}")
            raise

        for prefix in mutation.invalidates(data, variables):
            self.invalidate_queries(prefix)
        return data

    # --- 캐시 직접 조작 ---
    def invalidate_queries(self, *prefixes: QueryKey) -> List[QueryKey]:
        """prefix와 일치하는 항목들을 STALE로 표시하고, 바뀐 키 목록을 반환합니다."""
        changed = []
        for prefix in prefixes:
            changed.extend(self.cache.mark_stale(tuple(prefix)))
        return changed

    def get_query_data(self, key: QueryKey) -> Any:
        entry = self.cache.find(key)
        return entry.data if entry is not None else None

    def set_query_data(self, key: QueryKey, data: Any):
        """원격 호출 없이 항목에 값을 직접 넣습니다. (진행 중인 조회 결과는 버려집니다)"""
        entry = self.cache.build(key)
        entry.fetch_task = None
        entry.invalidated_during_fetch = False
        entry.data = data
        entry.error = None
        entry.data_updated_at = self.cache.clock()
        entry.set_status(QueryStatus.SUCCESS)

    def get_query_state(self, key: QueryKey) -> Optional[QueryCacheEntry]:
        return self.cache.find(key)

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        return self.cache.subscribe(key, listener)

    def remove_queries(self, prefix: QueryKey = ()) -> int:
        entries = self.cache.find_all(prefix)
        for entry in entries:
            self.cache.remove(entry.key)
        return len(entries)

    def clear(self):
        self.cache.clear()
