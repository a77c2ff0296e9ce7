# snapgram/services/remote.py
"""
원격 플랫폼(Firebase) SDK 호출 공통 처리.

firebase_admin / google-cloud SDK는 동기(blocking) API이므로 호출 하나를
워커 스레드에서 실행하고, 이벤트 루프는 네트워크 경계에서만 양보합니다.
SDK가 던지는 예외는 모두 snapgram.core.errors의 실패 유형 하나로 변환됩니다.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import requests
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as gcp_exceptions

from snapgram.core.errors import (
    SnapgramError, ValidationError, NotAuthenticated, NotFound, Conflict, RemoteUnavailable
)

def translate_remote_error(operation: str, exc: BaseException) -> SnapgramError:
    """SDK 예외를 Snapgram 실패 유형으로 변환합니다. (예외를 던지지 않고 반환만 합니다)"""
    if isinstance(exc, SnapgramError):
        return exc

    message = str(exc) or type(exc).__name__

    # 토큰 관련 예외는 InvalidArgumentError의 하위 클래스이므로 먼저 검사합니다.
    if isinstance(exc, (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError,
                        firebase_exceptions.UnauthenticatedError, firebase_exceptions.PermissionDeniedError,
                        gcp_exceptions.Unauthenticated, gcp_exceptions.PermissionDenied)):
        return NotAuthenticated(message, operation=operation)

    if isinstance(exc, (firebase_exceptions.NotFoundError, gcp_exceptions.NotFound)):
        return NotFound(message, operation=operation)

    if isinstance(exc, (firebase_exceptions.AlreadyExistsError, firebase_exceptions.ConflictError,
                        firebase_exceptions.AbortedError, gcp_exceptions.Conflict)):
        return Conflict(message, operation=operation)

    if isinstance(exc, (firebase_exceptions.InvalidArgumentError, gcp_exceptions.InvalidArgument, ValueError)):
        return ValidationError(message, operation=operation)

    # 네트워크 오류, 플랫폼 장애, 그 밖의 모든 예외
    if isinstance(exc, (requests.RequestException, firebase_exceptions.FirebaseError, gcp_exceptions.GoogleAPIError)):
        return RemoteUnavailable(message, operation=operation)
    return RemoteUnavailable(f"{type(exc).__name__}: {message}", operation=operation)


async def run_remote(operation: str, fn: Callable[..., Any], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> Any:
    """
    원격 호출 하나를 실행합니다.

    :param operation: 로그와 오류에 남길 작업 이름 (예: 'create_post.upload_file')
    :param fn: 동기 SDK 호출
    :param timeout: 최대 대기 시간(초). None이면 제한 없음
    :raises SnapgramError: 변환된 실패 (원본 예외는 __cause__로 연결)
    """
    try:
        call = asyncio.to_thread(fn, *args, **kwargs)
        if timeout:
            return await asyncio.wait_for(call, timeout)
        return await call
    except asyncio.TimeoutError as e:
        logging.error(f"원격 호출 시간 초과 ({operation}, timeout={timeout}s)")
        raise RemoteUnavailable(f"원격 호출이 {timeout}초 안에 끝나지 않았습니다.", operation=operation) from e
    except SnapgramError:
        raise
    except Exception as e:
        error = translate_remote_error(operation, e)
        if isinstance(error, RemoteUnavailable):
            logging.error(f"원격 호출 실패 ({operation}): {e}", exc_info=True)
        else:
            logging.warning(f"원격 호출 거부 ({operation}, {error.kind.value}): {e}")
        raise error from e


async def run_compensation(operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """
    다단계 쓰기가 중간에 실패했을 때 실행하는 보상 작업 (업로드한 파일 삭제 등).
    보상 작업의 실패는 로그로만 남기고 호출자에게 전파하지 않습니다.

    :param fn: 보상 작업 코루틴 함수
    :return: 보상 작업 성공 여부
    """
    try:
        await fn(*args, **kwargs)
        logging.info(f"보상 작업 완료 ({operation})")
        return True
    except Exception as e:
        logging.error(f"보상 작업 실패 ({operation}): {e}", exc_info=True)
        return False
