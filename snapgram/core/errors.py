# snapgram/core/errors.py
"""
원격 호출 실패를 표현하는 타입이 있는 예외 계층.

모든 실패는 ErrorKind 하나로 분류되며, 어떤 작업(operation)에서 발생했는지와
사람이 읽을 수 있는 메시지를 함께 가집니다. 원본 SDK 예외는 `raise ... from e`로
연결(__cause__)되어 보존됩니다.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """실패 유형. 값은 API 응답의 error_code로 그대로 사용됩니다."""
    VALIDATION_ERROR = "VALIDATION_ERROR"        # 원격 호출 전에 걸러지는 잘못된/누락된 입력
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"      # 활성 세션이나 계정이 없음
    NOT_FOUND = "NOT_FOUND"                      # 있어야 할 레코드가 없음
    CONFLICT = "CONFLICT"                        # 원격 상태와 충돌 (중복 이메일, 이미 활성인 세션 등)
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"    # 네트워크/플랫폼 장애, 다단계 쓰기 중간 실패 포함


# 실패 유형별 HTTP 상태 코드
HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.REMOTE_UNAVAILABLE: 503,
}


class SnapgramError(Exception):
    """모든 Snapgram 실패의 기반 클래스."""
    kind: ErrorKind = ErrorKind.REMOTE_UNAVAILABLE

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        """API 응답 본문 형식으로 변환합니다."""
        body: Dict[str, Any] = {"error_code": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, operation={self.operation!r}, message={self.message!r})"


class ValidationError(SnapgramError):
    kind = ErrorKind.VALIDATION_ERROR


class NotAuthenticated(SnapgramError):
    kind = ErrorKind.NOT_AUTHENTICATED


class NotFound(SnapgramError):
    kind = ErrorKind.NOT_FOUND


class Conflict(SnapgramError):
    kind = ErrorKind.CONFLICT


class RemoteUnavailable(SnapgramError):
    kind = ErrorKind.REMOTE_UNAVAILABLE

