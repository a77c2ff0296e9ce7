# snapgram/query/keys.py
"""
쿼리 캐시 키 네임스페이스.

캐시 키는 (쿼리 이름, 파라미터...) 형태의 튜플입니다.
무효화는 키의 앞부분(prefix)이 일치하는 모든 항목에 적용됩니다.
"""

from typing import Any, Tuple

QueryKey = Tuple[Any, ...]

class QueryKeys:
    """읽기 쿼리 분류 상수"""
    GET_RECENT_POSTS = "getRecentPosts"
    GET_POSTS = "getInfinitePosts"   # 일반/무한 스크롤 게시물 목록
    GET_POST_BY_ID = "getPostById"
    GET_CURRENT_USER = "getCurrentUser"
    SEARCH_POSTS = "searchPosts"

def recent_posts_key() -> QueryKey:
    return (QueryKeys.GET_RECENT_POSTS,)

def posts_key() -> QueryKey:
    return (QueryKeys.GET_POSTS,)

def post_by_id_key(post_id: str) -> QueryKey:
    return (QueryKeys.GET_POST_BY_ID, post_id)

def current_user_key(account_id: str) -> QueryKey:
    # 식별 정보를 키에 포함해 계정별로 캐시를 분리합니다.
    return (QueryKeys.GET_CURRENT_USER, account_id)

def search_posts_key(search_term: str) -> QueryKey:
    return (QueryKeys.SEARCH_POSTS, search_term)

def matches_prefix(key: QueryKey, prefix: QueryKey) -> bool:
    """key가 prefix로 시작하는지 확인합니다. 빈 prefix는 모든 키와 일치합니다."""
    return tuple(key[:len(prefix)]) == tuple(prefix)
