"""
Tests for async_utils module.

Covers run_sync, run_sync_limited, gather_limited, and init_semaphore.
"""

import asyncio
import threading

import pytest

import jcr_mcp_server.core.async_utils as async_utils
from jcr_mcp_server.core.async_utils import (
    gather_limited,
    init_semaphore,
    run_sync,
    run_sync_limited,
)


@pytest.fixture(autouse=True)
def restore_semaphore():
    original = async_utils._semaphore
    yield
    async_utils._semaphore = original


def _sync_add(a: int, b: int) -> int:
    return a + b


async def test_run_sync_calls_function():
    assert await run_sync(_sync_add, 3, 4) == 7


async def test_run_sync_passes_kwargs():
    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    assert await run_sync(_kw_func, name="world") == "hello world"


async def test_run_sync_runs_in_worker_thread():
    main_thread = threading.get_ident()
    worker = await run_sync(threading.get_ident)
    assert worker != main_thread


async def test_run_sync_limited_without_semaphore():
    async_utils._semaphore = None
    assert await run_sync_limited(_sync_add, 1, 2) == 3


async def test_run_sync_limited_bounds_concurrency():
    init_semaphore(2)
    lock = threading.Lock()
    active = 0
    peak = 0

    def _work():
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        threading.Event().wait(0.05)
        with lock:
            active -= 1

    await asyncio.gather(*(run_sync_limited(_work) for _ in range(6)))
    assert peak <= 2


async def test_gather_limited_keeps_order():
    async def _value(i):
        await asyncio.sleep(0.01 * (3 - i))
        return i

    assert await gather_limited([_value(i) for i in range(3)]) == [0, 1, 2]


async def test_gather_limited_propagates_error():
    async def _fail():
        raise RuntimeError("boom")

    async def _ok():
        return 1

    with pytest.raises(RuntimeError, match="boom"):
        await gather_limited([_ok(), _fail()])


async def test_gather_limited_empty():
    assert await gather_limited([]) == []
