# snapgram/utils/datetime_utils.py
"""
게시물/사용자/저장 문서와 세션에서 쓰는 시간 값 유틸리티

- 앱 안의 모든 시간은 UTC timezone-aware datetime입니다.
- Firestore에서 읽은 createdAt/updatedAt 값과 토큰 만료 시각(epoch 초)을 datetime으로 맞춥니다.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union
from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

class DateTimeUtils:
    """문서 타임스탬프와 세션 만료 시각 변환"""

    @staticmethod
    def now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def as_utc(dt: datetime) -> datetime:
        """naive datetime은 UTC로 간주하고, aware datetime은 UTC로 옮깁니다."""
        return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)

    @staticmethod
    def parse_iso_datetime(value: str) -> datetime:
        """
        ISO 8601 문자열을 UTC datetime으로 파싱합니다. ('Z' 접미사, 오프셋, 오프셋 없음 모두 허용)
        :raises ValueError: 비어 있거나 형식이 잘못된 경우
        """
        if not value:
            raise ValueError("빈 문자열은 날짜로 읽을 수 없습니다")
        try:
            parsed = dateutil_parser.isoparse(value)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"잘못된 ISO 날짜 형식입니다: {value}") from e
        return DateTimeUtils.as_utc(parsed)

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        return DateTimeUtils.as_utc(dt).isoformat().replace('+00:00', 'Z')

    @staticmethod
    def from_epoch(seconds: Union[int, float, str, None]) -> Optional[datetime]:
        """ID 토큰의 exp/iat 클레임(epoch 초)을 datetime으로 바꿉니다."""
        if seconds in (None, ''):
            return None
        return datetime.fromtimestamp(float(seconds), tz=timezone.utc)

    @staticmethod
    def expires_after(seconds: Union[int, str, None], default: int = 3600) -> datetime:
        """
        지금부터 seconds초 뒤의 시각. Identity Toolkit의 expiresIn은 문자열로 옵니다.
        """
        return DateTimeUtils.now() + timedelta(seconds=int(seconds or default))

    @staticmethod
    def from_firestore(value: Any) -> Optional[datetime]:
        """
        문서의 시간 필드를 datetime으로 읽습니다.
        Firestore Timestamp(DatetimeWithNanoseconds)는 datetime의 하위 클래스입니다.
        예전에 문자열로 저장된 값도 읽고, 읽을 수 없는 값은 경고를 남기고 None으로 둡니다.
        """
        if value is None:
            return None
        if isinstance(value, datetime):
            return DateTimeUtils.as_utc(value)
        if isinstance(value, str):
            try:
                return DateTimeUtils.parse_iso_datetime(value)
            except ValueError:
                logger.warning(f"문서 시간 필드를 읽을 수 없습니다: {value!r}")
                return None
        if hasattr(value, 'timestamp'):
            return DateTimeUtils.from_epoch(value.timestamp())
        logger.warning(f"지원하지 않는 시간 값 형식: {type(value).__name__}")
        return None
