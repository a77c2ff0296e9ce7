# snapgram/query/test_runtime.py
"""
LoopRunner 테스트

사용법: python -m pytest snapgram/query/test_runtime.py -v
"""

import asyncio
import threading

import pytest

from snapgram.core.errors import NotFound
from snapgram.query.runtime import LoopRunner


@pytest.fixture
def runner():
    runner = LoopRunner(name="test-loop").start()
    yield runner
    runner.stop()


def test_run_returns_result_from_loop_thread(runner):
    async def which_thread():
        await asyncio.sleep(0)
        return threading.current_thread().name

    assert runner.is_running
    assert runner.run(which_thread()) == "test-loop"


def test_run_propagates_errors(runner):
    async def failing():
        raise NotFound("없음", operation="get_post_by_id")

    with pytest.raises(NotFound):
        runner.run(failing())


def test_start_is_idempotent(runner):
    assert runner.start() is runner


def test_run_before_start_fails():
    async def noop():
        return None

    with pytest.raises(RuntimeError):
        LoopRunner().run(noop())


def test_stop_shuts_down_loop():
    runner = LoopRunner().start()
    runner.stop()
    assert not runner.is_running
