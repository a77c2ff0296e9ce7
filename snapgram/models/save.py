# snapgram/models/save.py
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from snapgram.utils.datetime_utils import DateTimeUtils

@dataclass
class SaveRecord:
    """
    Firestore 'saves' 컬렉션의 문서 구조. "사용자가 게시물을 저장(북마크)함"을 나타냅니다.
    게시물의 likes 배열과는 독립적으로 생성/삭제됩니다.
    """
    id: str
    user_id: str
    post_id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "SaveRecord":
        return cls(
            id=doc_id,
            user_id=data.get('user'),
            post_id=data.get('post'),
            created_at=DateTimeUtils.from_firestore(data.get('createdAt')),
        )
