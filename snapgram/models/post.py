# snapgram/models/post.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from snapgram.utils.datetime_utils import DateTimeUtils

@dataclass
class ImageFile:
    """업로드할 이미지 파일 (폼에서 받은 원본 바이트)."""
    filename: str
    content: bytes
    content_type: str = "image/jpeg"

    @property
    def extension(self) -> str:
        return self.filename.rsplit('.', 1)[-1].lower() if '.' in self.filename else ''

@dataclass
class NewPost:
    """게시물 생성 폼 입력값. tags는 쉼표로 구분된 자유 텍스트입니다."""
    user_id: str
    caption: str
    file: ImageFile
    location: Optional[str] = None
    tags: Optional[str] = None

@dataclass
class UpdatePost:
    """
    게시물 수정 폼 입력값.
    file이 없으면 기존 image_url/image_id를 그대로 유지합니다.
    """
    post_id: str
    caption: str
    image_url: Optional[str]
    image_id: Optional[str]
    location: Optional[str] = None
    tags: Optional[str] = None
    file: Optional[ImageFile] = None

@dataclass
class PostRecord:
    """
    Firestore 'posts' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    """
    id: str
    creator_id: str
    caption: str
    image_url: Optional[str]
    image_id: Optional[str]
    location: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    likes: List[str] = field(default_factory=list) # 좋아요를 누른 user id 목록
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "PostRecord":
        return cls(
            id=doc_id,
            creator_id=data.get('creator'),
            caption=data.get('caption', ''),
            image_url=data.get('imageUrl'),
            image_id=data.get('imageId'),
            location=data.get('location'),
            tags=list(data.get('tags') or []),
            likes=list(data.get('likes') or []),
            created_at=DateTimeUtils.from_firestore(data.get('createdAt')),
            updated_at=DateTimeUtils.from_firestore(data.get('updatedAt')),
        )

@dataclass
class PostPage:
    """게시물 목록 조회 결과 한 페이지."""
    documents: List[PostRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.documents)
