# snapgram/models/user.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from snapgram.utils.datetime_utils import DateTimeUtils

@dataclass
class NewUser:
    """회원가입 폼에서 넘어오는 입력값."""
    name: str
    username: str
    email: str
    password: str

@dataclass
class AccountRecord:
    """Firebase Auth 계정 정보. (uid, 표시 이름, 이메일)"""
    id: str
    name: str
    email: str

@dataclass
class UserRecord:
    """
    Firestore 'users' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    계정(accountId) 하나에 사용자 문서는 정확히 하나입니다.
    """
    id: str
    account_id: str
    name: str
    email: str
    username: str
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "UserRecord":
        return cls(
            id=doc_id,
            account_id=data.get('accountId'),
            name=data.get('name'),
            email=data.get('email'),
            username=data.get('username'),
            image_url=data.get('imageUrl'),
            created_at=DateTimeUtils.from_firestore(data.get('createdAt')),
        )

@dataclass
class Session:
    """한 계정에 묶인 임시 자격 증명 (Identity Toolkit의 ID 토큰/리프레시 토큰)."""
    account_id: str
    id_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

@dataclass
class ClientContext:
    """
    현재 클라이언트의 인증 상태를 명시적으로 전달하기 위한 컨텍스트.
    컨텍스트 하나에는 활성 세션이 최대 하나만 존재합니다.
    """
    session: Optional[Session] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def account_id(self) -> Optional[str]:
        return self.session.account_id if self.session else None
