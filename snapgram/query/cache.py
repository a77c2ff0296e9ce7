# snapgram/query/cache.py
"""
쿼리 캐시 저장소.

캐시 항목 하나의 상태 전이:
    EMPTY -> PENDING -> SUCCESS | ERROR -> STALE -> PENDING -> ...

- 항목은 처음 읽을 때 만들어지고, 보관 정책(gc_time)에 따라 제거됩니다.
- STALE은 무효화로만 발생하며 시간이 지나 자동으로 STALE이 되지는 않습니다.
- 모든 변경은 이벤트 루프 위에서 await 없이 동기적으로 이루어지므로,
  같은 키를 읽는 쪽이 반쯤 바뀐 항목을 보는 일은 없습니다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from snapgram.query.keys import QueryKey, matches_prefix

logger = logging.getLogger(__name__)

Listener = Callable[["QueryCacheEntry"], None]


class QueryStatus(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    STALE = "stale"


@dataclass
class QueryCacheEntry:
    """
    캐시 항목. data는 마지막으로 성공한 결과이며, 이후 조회가 실패해도 유지됩니다.
    """
    key: QueryKey
    status: QueryStatus = QueryStatus.EMPTY
    data: Any = None
    error: Optional[BaseException] = None
    data_updated_at: Optional[float] = None
    error_updated_at: Optional[float] = None
    fetch_count: int = 0
    last_accessed_at: float = 0.0
    listeners: List[Listener] = field(default_factory=list, repr=False)
    fetch_task: Optional[asyncio.Task] = field(default=None, repr=False)
    # 조회 중에 무효화되면 도착한 결과를 STALE로 저장합니다.
    invalidated_during_fetch: bool = False

    @property
    def subscriber_count(self) -> int:
        return len(self.listeners)

    @property
    def has_data(self) -> bool:
        return self.data_updated_at is not None

    @property
    def is_pending(self) -> bool:
        return self.status == QueryStatus.PENDING

    def set_status(self, status: QueryStatus):
        self.status = status
        for listener in list(self.listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"캐시 구독자 알림 실패 (key: {self.key}): {e}", exc_info=True)


class QueryCache:
    """
    쿼리 캐시 항목의 수명을 단독으로 관리하는 저장소.
    UI 코드는 항목을 직접 바꾸지 않고 QueryClient를 통해서만 읽고/무효화합니다.
    """

    def __init__(self, gc_time: Optional[float] = 300, clock: Callable[[], float] = time.monotonic):
        """
        :param gc_time: 구독자가 없는 항목을 보관하는 시간(초). None 또는 0 이하이면 제거하지 않음
        :param clock: 시간 함수 (테스트에서 주입)
        """
        self._entries: Dict[QueryKey, QueryCacheEntry] = {}
        self.gc_time = gc_time if gc_time and gc_time > 0 else None
        self.clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return tuple(key) in self._entries

    def build(self, key: QueryKey) -> QueryCacheEntry:
        """항목을 찾고, 없으면 EMPTY 상태로 새로 만듭니다."""
        self.collect_garbage()
        key = tuple(key)
        entry = self._entries.get(key)
        if entry is None:
            entry = QueryCacheEntry(key=key)
            self._entries[key] = entry
        entry.last_accessed_at = self.clock()
        return entry

    def find(self, key: QueryKey) -> Optional[QueryCacheEntry]:
        return self._entries.get(tuple(key))

    def find_all(self, prefix: QueryKey = ()) -> List[QueryCacheEntry]:
        return [entry for key, entry in self._entries.items() if matches_prefix(key, prefix)]

    def remove(self, key: QueryKey) -> bool:
        """
        항목을 제거합니다. 진행 중인 조회는 취소하지 않으며,
        그 결과는 도착하더라도 캐시에 반영되지 않습니다.
        """
        return self._entries.pop(tuple(key), None) is not None

    def clear(self):
        self._entries.clear()

    def mark_stale(self, prefix: QueryKey) -> List[QueryKey]:
        """
        prefix와 일치하는 항목을 STALE로 표시하고, 실제로 바뀐 키 목록을 반환합니다.
        이미 STALE이거나 EMPTY인 항목은 건드리지 않습니다.
        """
        changed = []
        for entry in self.find_all(prefix):
            if entry.status in (QueryStatus.SUCCESS, QueryStatus.ERROR):
                entry.set_status(QueryStatus.STALE)
                changed.append(entry.key)
            elif entry.status == QueryStatus.PENDING and not entry.invalidated_during_fetch:
                entry.invalidated_during_fetch = True
                changed.append(entry.key)
        if changed:
            logger.debug(f"캐시 무효화 (prefix: {prefix}): {changed}")
        return changed

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """
        항목의 상태 변경을 구독합니다.
        :return: 구독 해제 함수
        """
        entry = self.build(key)
        entry.listeners.append(listener)

        def unsubscribe():
            if listener in entry.listeners:
                entry.listeners.remove(listener)
                entry.last_accessed_at = self.clock()

        return unsubscribe

    def collect_garbage(self) -> List[QueryKey]:
        """구독자가 없고 조회 중이 아닌 항목 중 gc_time 이상 쓰이지 않은 항목을 제거합니다."""
        if self.gc_time is None:
            return []

        now = self.clock()
        expired = [
            key for key, entry in self._entries.items()
            if entry.subscriber_count == 0
            and not entry.is_pending
            and now - entry.last_accessed_at >= self.gc_time
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"캐시 항목 만료 제거: {expired}")
        return expired
