# snapgram/api/posts/services.py
import logging
from typing import Any, Dict, List, Optional

from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from snapgram.core.errors import SnapgramError, ValidationError, NotFound, RemoteUnavailable
from snapgram.models.post import NewPost, UpdatePost, PostRecord, PostPage, ImageFile
from snapgram.models.save import SaveRecord
from snapgram.services.remote import run_remote, run_compensation
from snapgram.services.storage_service import StorageService
from snapgram.utils.datetime_utils import DateTimeUtils
from snapgram.utils.tags import parse_tags, caption_keywords

# Firestore array_contains_any 연산자가 허용하는 최대 값 개수
MAX_SEARCH_TERMS = 30

class PostService:
    """
    게시물/좋아요/저장 관련 원격 호출을 담당하는 서비스 클래스.
    상태를 갖지 않는 통과(pass-through) 계층이며, 게시물 생성/수정만 여러 단계로 이루어집니다.
    """
    def __init__(self, storage_service: StorageService, db=None, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.db = db or firestore.client()
        self.storage = storage_service
        self.posts_ref = self.db.collection(config.get('POSTS_COLLECTION', 'posts'))
        self.saves_ref = self.db.collection(config.get('SAVES_COLLECTION', 'saves'))
        self.recent_limit = int(config.get('RECENT_POSTS_LIMIT', 20))
        self.page_size = int(config.get('INFINITE_PAGE_SIZE', 9))
        self.timeout = config.get('REMOTE_TIMEOUT')

    # --- 이미지 업로드 (생성/수정 공통) ---
    async def _upload_image(self, file: ImageFile, operation: str) -> Dict[str, str]:
        """
        이미지를 업로드하고 미리보기 URL을 발급합니다.
        URL 발급이 실패하면 방금 올린 파일을 삭제하고 RemoteUnavailable을 던집니다.
        """
        uploaded = await self.storage.upload_file(file)
        file_id = uploaded['file_id']

        try:
            file_url = await self.storage.get_file_preview(file_id)
        except SnapgramError as e:
            await run_compensation(f"{operation}.delete_file", self.storage.delete_file, file_id)
            raise RemoteUnavailable(f"이미지 미리보기 URL 발급 실패: {e.message}", operation=operation) from e

        return {"file_id": file_id, "file_url": file_url}

    # --- 게시물 생성 ---
    async def create_post(self, draft: NewPost) -> PostRecord:
        """
        새 게시물을 생성합니다.
        1) 이미지 업로드 -> 2) 미리보기 URL 발급 -> 3) 게시물 문서 저장
        각 단계는 순서대로 실행되며, 2)나 3)이 실패하면 업로드한 파일을 삭제합니다.
        """
        if not draft.user_id:
            raise ValidationError("게시물 작성자 ID가 필요합니다.", operation="create_post")
        if draft.file is None:
            raise ValidationError("게시물 이미지가 필요합니다.", operation="create_post")

        image = await self._upload_image(draft.file, "create_post")

        now = DateTimeUtils.now()
        doc_ref = self.posts_ref.document()
        data = {
            'creator': draft.user_id,
            'caption': draft.caption,
            'imageUrl': image['file_url'],
            'imageId': image['file_id'],
            'location': draft.location,
            'tags': parse_tags(draft.tags),
            'likes': [],
            'captionKeywords': caption_keywords(draft.caption),
            'createdAt': now,
            'updatedAt': now,
        }

        try:
            await run_remote("create_post", doc_ref.set, data, timeout=self.timeout)
        except SnapgramError as e:
            # 저장소에 주인 없는 파일이 남지 않도록 삭제합니다.
            await run_compensation("create_post.delete_file", self.storage.delete_file, image['file_id'])
            raise RemoteUnavailable(f"게시물 저장 실패: {e.message}", operation="create_post") from e

        logging.info(f"게시물 생성 완료 (post_id: {doc_ref.id}, creator: {draft.user_id})")
        return PostRecord.from_document(doc_ref.id, data)

    # --- 게시물 수정 ---
    async def update_post(self, draft: UpdatePost) -> PostRecord:
        """
        게시물을 수정합니다. 새 이미지가 있을 때만 업로드/URL 발급을 수행하고,
        없으면 기존 imageUrl/imageId를 그대로 유지합니다.
        문서 수정이 실패하면 새로 올린 파일을 삭제합니다.
        """
        if not draft.post_id:
            raise ValidationError("수정할 게시물 ID가 필요합니다.", operation="update_post")

        image = {"file_url": draft.image_url, "file_id": draft.image_id}
        has_new_image = draft.file is not None
        if has_new_image:
            image = await self._upload_image(draft.file, "update_post")

        post_ref = self.posts_ref.document(draft.post_id)
        update_data = {
            'caption': draft.caption,
            'imageUrl': image['file_url'],
            'imageId': image['file_id'],
            'location': draft.location,
            'tags': parse_tags(draft.tags),
            'captionKeywords': caption_keywords(draft.caption),
            'updatedAt': DateTimeUtils.now(),
        }

        def _update_and_read():
            post_ref.update(update_data)
            return post_ref.get()

        try:
            snapshot = await run_remote("update_post", _update_and_read, timeout=self.timeout)
        except SnapgramError as e:
            if has_new_image:
                await run_compensation("update_post.delete_file", self.storage.delete_file, image['file_id'])
            if isinstance(e, (NotFound, ValidationError)):
                raise
            raise RemoteUnavailable(f"게시물 수정 실패: {e.message}", operation="update_post") from e

        if has_new_image and draft.image_id and draft.image_id != image['file_id']:
            # 교체된 이전 이미지 정리
            await run_compensation("update_post.delete_previous_file", self.storage.delete_file, draft.image_id)

        logging.info(f"게시물 수정 완료 (post_id: {draft.post_id}, new_image: {has_new_image})")
        return PostRecord.from_document(snapshot.id, snapshot.to_dict())

    # --- 게시물 삭제 ---
    async def delete_post(self, post_id: str, image_id: str) -> Dict[str, str]:
        """
        게시물 문서를 삭제한 뒤 연결된 이미지도 삭제합니다.
        이미지 삭제 실패는 로그로만 남깁니다. (문서는 이미 삭제된 상태)
        """
        if not post_id or not image_id:
            raise ValidationError("게시물 ID와 이미지 ID가 모두 필요합니다.", operation="delete_post")

        await run_remote("delete_post", self.posts_ref.document(post_id).delete, timeout=self.timeout)
        await run_compensation("delete_post.delete_file", self.storage.delete_file, image_id)
        logging.info(f"게시물 삭제 완료 (post_id: {post_id})")
        return {"status": "ok"}

    # --- 조회 ---
    async def get_post_by_id(self, post_id: str) -> PostRecord:
        if not post_id:
            raise ValidationError("게시물 ID가 필요합니다.", operation="get_post_by_id")

        snapshot = await run_remote("get_post_by_id", self.posts_ref.document(post_id).get, timeout=self.timeout)
        if not snapshot.exists:
            raise NotFound(f"게시물을 찾을 수 없습니다: {post_id}", operation="get_post_by_id")
        return PostRecord.from_document(snapshot.id, snapshot.to_dict())

    async def get_recent_posts(self) -> PostPage:
        """최근 생성된 게시물을 createdAt 내림차순으로 가져옵니다."""
        query = self.posts_ref.order_by('createdAt', direction=firestore.Query.DESCENDING).limit(self.recent_limit)
        return await self._list("get_recent_posts", query)

    async def get_infinite_posts(self, page_param: Optional[str] = None) -> PostPage:
        """
        무한 스크롤 피드의 한 페이지를 가져옵니다. (updatedAt 내림차순, 페이지당 9개)

        :param page_param: 이전 페이지 마지막 게시물의 ID. None이면 첫 페이지
        """
        posts_ref = self.posts_ref
        page_size = self.page_size

        def _fetch_page():
            query = posts_ref.order_by('updatedAt', direction=firestore.Query.DESCENDING)
            if page_param:
                cursor_doc = posts_ref.document(page_param).get()
                if not cursor_doc.exists:
                    return None
                query = query.start_after(cursor_doc)
            return list(query.limit(page_size).stream())

        docs = await run_remote("get_infinite_posts", _fetch_page, timeout=self.timeout)
        if docs is None:
            raise NotFound(f"페이지 커서에 해당하는 게시물이 없습니다: {page_param}", operation="get_infinite_posts")
        return PostPage(documents=[PostRecord.from_document(doc.id, doc.to_dict()) for doc in docs])

    async def search_posts(self, search_term: str) -> PostPage:
        """캡션에 검색어의 단어 중 하나라도 포함된 게시물을 찾습니다."""
        terms = caption_keywords(search_term)[:MAX_SEARCH_TERMS]
        if not terms:
            raise ValidationError("검색어가 비어 있습니다.", operation="search_posts")

        query = self.posts_ref.where(filter=FieldFilter('captionKeywords', 'array_contains_any', terms))
        return await self._list("search_posts", query)

    async def _list(self, operation: str, query) -> PostPage:
        docs = await run_remote(operation, lambda: list(query.stream()), timeout=self.timeout)
        return PostPage(documents=[PostRecord.from_document(doc.id, doc.to_dict()) for doc in docs])

    # --- 좋아요 / 저장 ---
    async def like_post(self, post_id: str, likes: List[str]) -> PostRecord:
        """게시물의 likes 배열을 주어진 목록으로 교체합니다."""
        if not post_id:
            raise ValidationError("게시물 ID가 필요합니다.", operation="like_post")

        post_ref = self.posts_ref.document(post_id)

        def _update_likes():
            post_ref.update({'likes': list(likes or []), 'updatedAt': DateTimeUtils.now()})
            return post_ref.get()

        snapshot = await run_remote("like_post", _update_likes, timeout=self.timeout)
        return PostRecord.from_document(snapshot.id, snapshot.to_dict())

    async def save_post(self, post_id: str, user_id: str) -> SaveRecord:
        """사용자가 게시물을 저장(북마크)한 기록을 만듭니다."""
        if not post_id or not user_id:
            raise ValidationError("게시물 ID와 사용자 ID가 모두 필요합니다.", operation="save_post")

        doc_ref = self.saves_ref.document()
        data = {'user': user_id, 'post': post_id, 'createdAt': DateTimeUtils.now()}
        await run_remote("save_post", doc_ref.set, data, timeout=self.timeout)
        return SaveRecord.from_document(doc_ref.id, data)

    async def delete_saved_post(self, saved_record_id: str) -> Dict[str, str]:
        """저장 기록을 삭제합니다."""
        if not saved_record_id:
            raise ValidationError("저장 기록 ID가 필요합니다.", operation="delete_saved_post")

        await run_remote("delete_saved_post", self.saves_ref.document(saved_record_id).delete, timeout=self.timeout)
        return {"status": "ok"}
