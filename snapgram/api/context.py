# snapgram/api/context.py
"""블루프린트에서 공통으로 사용하는 요청 헬퍼."""

from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Coroutine
from flask import current_app, request

from snapgram.core.errors import RemoteUnavailable
from snapgram.models.user import ClientContext

def run_query(coro: Coroutine) -> Any:
    """
    코루틴을 쿼리 이벤트 루프에서 실행하고 결과를 기다립니다.
    REQUEST_TIMEOUT 안에 끝나지 않으면 RemoteUnavailable이 됩니다. (진행 중인 조회는 계속되어 캐시에 반영됩니다)
    """
    runner = current_app.services['runner']
    timeout = current_app.config.get('REQUEST_TIMEOUT')
    operation = getattr(coro, '__qualname__', None)
    try:
        return runner.run(coro, timeout=timeout)
    except FutureTimeoutError as e:
        raise RemoteUnavailable(f"요청이 {timeout}초 안에 끝나지 않았습니다.", operation=operation) from e

def client_context() -> ClientContext:
    """
    Authorization: Bearer <id_token> 헤더로부터 요청의 인증 컨텍스트를 만듭니다.
    헤더가 없으면 세션 없는 컨텍스트를 돌려줍니다. 잘못되었거나 폐기된 토큰은 NotAuthenticated가 됩니다.
    """
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return ClientContext()

    id_token = header[len('Bearer '):].strip()
    auth_service = current_app.services['auth']
    session = run_query(auth_service.restore_session(id_token))
    return ClientContext(session=session)
