# snapgram/query/runtime.py
"""
쿼리 캐시가 사용하는 단일 이벤트 루프.

Flask 요청은 여러 스레드에서 처리되지만, 캐시 상태와 원격 호출 코루틴은 모두
이 루프 하나에서만 실행됩니다. 요청 스레드는 run()으로 코루틴을 넘기고 결과를 기다립니다.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, Optional

class LoopRunner:
    """백그라운드 스레드에서 asyncio 이벤트 루프를 돌리는 실행기."""

    def __init__(self, name: str = "snapgram-query-loop"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> "LoopRunner":
        with self._lock:
            if self._thread is not None:
                return self
            loop = asyncio.new_event_loop()
            started = threading.Event()

            def _run():
                asyncio.set_event_loop(loop)
                loop.call_soon(started.set)
                loop.run_forever()

            self._loop = loop
            self._thread = threading.Thread(target=_run, name=self.name, daemon=True)
            self._thread.start()
            started.wait()
            logging.info(f"쿼리 이벤트 루프 시작 ({self.name})")
        return self

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """
        코루틴을 루프에 넘기고 결과를 기다립니다. 코루틴의 예외는 그대로 전파됩니다.
        시간 초과 시 기다리기만 멈추며, 진행 중인 원격 호출은 계속되어 캐시에 반영됩니다.
        """
        if self._loop is None:
            coro.close()
            raise RuntimeError("LoopRunner가 시작되지 않았습니다. start()를 먼저 호출해주세요.")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def stop(self):
        with self._lock:
            if self._loop is None:
                return
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            self._loop.close()
            self._loop = None
            self._thread = None
            logging.info(f"쿼리 이벤트 루프 종료 ({self.name})")
