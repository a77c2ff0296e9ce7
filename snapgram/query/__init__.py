# snapgram/query/__init__.py
"""
쿼리 캐시 계층

원격 호출을 읽기(캐시, 키 단위)와 쓰기(성공 시 무효화)로 감쌉니다.
"""

from .cache import QueryCache, QueryCacheEntry, QueryStatus
from .client import QueryClient, Mutation, InfiniteData
from .keys import QueryKeys
from .pagination import get_next_page_param, NO_MORE_PAGES
from .queries import SnapgramQueries, INVALIDATIONS
from .runtime import LoopRunner

__all__ = [
    'QueryCache', 'QueryCacheEntry', 'QueryStatus',
    'QueryClient', 'Mutation', 'InfiniteData',
    'QueryKeys',
    'get_next_page_param', 'NO_MORE_PAGES',
    'SnapgramQueries', 'INVALIDATIONS',
    'LoopRunner'
]
