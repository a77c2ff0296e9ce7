# snapgram/query/queries.py
"""
화면에서 사용하는 읽기/쓰기 선언.

원격 호출 함수(AuthService, PostService)를 QueryClient로 감싸
읽기는 키로 캐시하고, 쓰기는 성공 시 아래 INVALIDATIONS 표에 선언된 키를 무효화합니다.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from snapgram.api.auth.services import AuthService
from snapgram.api.posts.services import PostService
from snapgram.core.errors import NotAuthenticated
from snapgram.models.post import NewPost, UpdatePost, PostPage, PostRecord
from snapgram.models.save import SaveRecord
from snapgram.models.user import NewUser, ClientContext, Session, UserRecord
from snapgram.query.client import QueryClient, Mutation, InfiniteData
from snapgram.query.keys import (
    QueryKey, QueryKeys,
    recent_posts_key, posts_key, post_by_id_key, current_user_key, search_posts_key,
)
from snapgram.query.pagination import get_next_page_param

InvalidationRule = Callable[[Any, Dict[str, Any]], Iterable[QueryKey]]

def _nothing(data, variables) -> List[QueryKey]:
    return []

def _feeds_and_current_user(data, variables) -> List[QueryKey]:
    return [(QueryKeys.GET_RECENT_POSTS,), (QueryKeys.GET_POSTS,), (QueryKeys.GET_CURRENT_USER,)]

# 쓰기 종류별 무효화 대상
INVALIDATIONS: Dict[str, InvalidationRule] = {
    "create_user_account": _nothing,
    "sign_in_account": _nothing,
    "sign_out_account": _nothing,
    # 새 게시물이 최근 목록에 보이도록
    "create_post": lambda data, variables: [(QueryKeys.GET_RECENT_POSTS,)],
    # 상세 화면, 최근 목록, 전체 목록의 좋아요 수와 프로필의 좋아요 목록
    "like_post": lambda data, variables: [
        (QueryKeys.GET_POST_BY_ID, variables['post_id']),
        (QueryKeys.GET_RECENT_POSTS,),
        (QueryKeys.GET_POSTS,),
        (QueryKeys.GET_CURRENT_USER,),
    ],
    "save_post": _feeds_and_current_user,
    "delete_saved_post": _feeds_and_current_user,
    "update_post": lambda data, variables: [(QueryKeys.GET_POST_BY_ID, data.id)],
    # 삭제 후 남은 게시물을 다시 보여주기 위해
    "delete_post": lambda data, variables: [(QueryKeys.GET_RECENT_POSTS,)],
}


class SnapgramQueries:
    """읽기/쓰기 진입점. UI 폼 컨트롤러는 이 객체만 사용합니다."""

    def __init__(self, auth_service: AuthService, post_service: PostService, query_client: QueryClient):
        self.auth = auth_service
        self.posts = post_service
        self.client = query_client
        self._mutations = {
            "create_user_account": lambda v: self.auth.create_user_account(v['user']),
            "sign_in_account": lambda v: self.auth.sign_in_account(v['ctx'], v['email'], v['password']),
            "sign_out_account": lambda v: self.auth.sign_out_account(v['ctx']),
            "create_post": lambda v: self.posts.create_post(v['post']),
            "like_post": lambda v: self.posts.like_post(v['post_id'], v['likes']),
            "save_post": lambda v: self.posts.save_post(v['post_id'], v['user_id']),
            "delete_saved_post": lambda v: self.posts.delete_saved_post(v['saved_record_id']),
            "update_post": lambda v: self.posts.update_post(v['post']),
            "delete_post": lambda v: self.posts.delete_post(v['post_id'], v['image_id']),
        }

    def mutation(self, name: str) -> Mutation:
        return Mutation(name=name, mutation_fn=self._mutations[name], invalidates=INVALIDATIONS[name])

    async def _mutate(self, name: str, **variables) -> Any:
        return await self.client.mutate(self.mutation(name), variables)

    # --- 쓰기 ---
    async def create_user_account(self, user: NewUser) -> UserRecord:
        return await self._mutate("create_user_account", user=user)

    async def sign_in_account(self, ctx: ClientContext, email: str, password: str) -> Session:
        return await self._mutate("sign_in_account", ctx=ctx, email=email, password=password)

    async def sign_out_account(self, ctx: ClientContext) -> Dict[str, str]:
        """
        로그아웃 후 해당 계정의 현재 사용자 항목을 캐시에서 제거합니다.
        무효화(STALE)가 아니라 제거이므로 다른 계정의 항목은 그대로 남습니다.
        """
        account_id = ctx.account_id if ctx is not None else None
        result = await self._mutate("sign_out_account", ctx=ctx)
        if account_id:
            self.client.remove_queries(current_user_key(account_id))
        return result

    async def create_post(self, post: NewPost) -> PostRecord:
        return await self._mutate("create_post", post=post)

    async def like_post(self, post_id: str, likes: List[str]) -> PostRecord:
        return await self._mutate("like_post", post_id=post_id, likes=likes)

    async def save_post(self, post_id: str, user_id: str) -> SaveRecord:
        return await self._mutate("save_post", post_id=post_id, user_id=user_id)

    async def delete_saved_post(self, saved_record_id: str) -> Dict[str, str]:
        return await self._mutate("delete_saved_post", saved_record_id=saved_record_id)

    async def update_post(self, post: UpdatePost) -> PostRecord:
        return await self._mutate("update_post", post=post)

    async def delete_post(self, post_id: str, image_id: str) -> Dict[str, str]:
        return await self._mutate("delete_post", post_id=post_id, image_id=image_id)

    # --- 읽기 ---
    async def get_recent_posts(self, force: bool = False) -> PostPage:
        return await self.client.fetch_query(recent_posts_key(), self.posts.get_recent_posts, force=force)

    async def get_current_user(self, ctx: ClientContext, force: bool = False) -> UserRecord:
        if ctx is None or ctx.session is None:
            raise NotAuthenticated("활성 세션이 없습니다. 로그인이 필요합니다.", operation="get_current_user")
        return await self.client.fetch_query(
            current_user_key(ctx.account_id), lambda: self.auth.get_current_user(ctx), force=force
        )

    async def get_post_by_id(self, post_id: str, force: bool = False) -> Optional[PostRecord]:
        # post_id가 없으면 조회하지 않습니다.
        return await self.client.fetch_query(
            post_by_id_key(post_id), lambda: self.posts.get_post_by_id(post_id),
            force=force, enabled=bool(post_id)
        )

    async def search_posts(self, search_term: str, force: bool = False) -> Optional[PostPage]:
        return await self.client.fetch_query(
            search_posts_key(search_term), lambda: self.posts.search_posts(search_term),
            force=force, enabled=bool(search_term and search_term.strip())
        )

    async def get_posts(self, force: bool = False) -> InfiniteData:
        """무한 스크롤 피드. 처음 호출하면 첫 페이지를 가져옵니다."""
        return await self.client.fetch_infinite_query(
            posts_key(), self.posts.get_infinite_posts, get_next_page_param, force=force
        )

    async def get_posts_next_page(self) -> InfiniteData:
        return await self.client.fetch_next_page(posts_key(), self.posts.get_infinite_posts, get_next_page_param)

    def has_more_posts(self) -> bool:
        return self.client.has_next_page(posts_key(), get_next_page_param)
