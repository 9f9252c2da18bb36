from __future__ import annotations

import asyncio
import atexit
import functools
import logging
import threading
from typing import Any, AsyncGenerator, Callable, Coroutine, Iterator, Optional

logger = logging.getLogger(__name__)

# The shared httpx.AsyncClient is only ever used from this background loop,
# the loop it was created on. See on_bg_loop.

_bg_loop: Optional[asyncio.AbstractEventLoop] = None
_bg_thread: Optional[threading.Thread] = None
_bg_started = threading.Event()


def _loop_thread_target() -> None:
    global _bg_loop
    loop = asyncio.new_event_loop()
    _bg_loop = loop
    asyncio.set_event_loop(loop)
    _bg_started.set()
    try:
        loop.run_forever()
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except RuntimeError as exc:
            logger.debug(f"Failed to shut down async generators: {exc!r}")
        loop.close()
        _bg_loop = None


def _ensure_bg_loop_started() -> None:
    global _bg_thread
    if _bg_loop is not None:
        return
    if _bg_thread is not None and _bg_thread.is_alive():
        return
    _bg_started.clear()
    _bg_thread = threading.Thread(
        target=_loop_thread_target, name="meilipoll-bg-loop", daemon=True
    )
    _bg_thread.start()
    _bg_started.wait()


def _bg_run(coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
    _ensure_bg_loop_started()
    assert _bg_loop is not None
    fut = asyncio.run_coroutine_threadsafe(coro, _bg_loop)
    return fut.result(timeout=timeout)


def _bg_submit(coro: Coroutine[Any, Any, Any]):
    _ensure_bg_loop_started()
    assert _bg_loop is not None
    return asyncio.run_coroutine_threadsafe(coro, _bg_loop)


def _stop_bg_loop() -> None:
    global _bg_loop, _bg_thread
    loop = _bg_loop
    if loop is None:
        return
    if not loop.is_closed():
        loop.call_soon_threadsafe(loop.stop)
    if _bg_thread and _bg_thread.is_alive():
        _bg_thread.join(timeout=2.0)
    _bg_loop = None
    _bg_thread = None


atexit.register(_stop_bg_loop)

_END = object()


async def _anext(agen: AsyncGenerator[Any, None]) -> Any:
    try:
        return await agen.__anext__()
    except StopAsyncIteration:
        return _END


async def _aclose(agen: AsyncGenerator[Any, None]) -> None:
    await agen.aclose()


async def on_bg_loop(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Await ``coro`` on the background loop from whichever loop the caller runs on.

    Work bound to the shared ``httpx.AsyncClient`` goes through here; everything
    else (sleeping, iterating caller-provided handles) stays on the caller's loop.
    """
    if asyncio.get_running_loop() is _bg_loop:
        return await coro
    return await asyncio.wrap_future(_bg_submit(coro))


def sync_compatible(async_fn: Callable[..., Coroutine[Any, Any, Any]]):
    """
    Make an async method callable from both sync and async code.

    Without a running event loop the call blocks on the background loop and
    returns the result. Inside a running loop it returns the coroutine, which the
    caller awaits on its own loop.
    """

    @functools.wraps(async_fn)
    def wrapper(self, *args, **kwargs):
        coro = async_fn(self, *args, **kwargs)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return _bg_run(coro)
        return coro

    return wrapper


def sync_compatible_generator(async_gen_fn: Callable[..., AsyncGenerator[Any, None]]):
    """
    Make an async generator method iterable from both sync and async code.

    Without a running loop the generator is advanced one step per ``next()`` on
    the background loop, so the producer never runs ahead of the consumer. Inside
    a running loop the async generator itself is returned.
    """

    def sync_iter(agen: AsyncGenerator[Any, None]) -> Iterator[Any]:
        try:
            while True:
                item = _bg_run(_anext(agen))
                if item is _END:
                    return
                yield item
        finally:
            _bg_run(_aclose(agen))

    @functools.wraps(async_gen_fn)
    def wrapper(self, *args, **kwargs):
        agen = async_gen_fn(self, *args, **kwargs)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return sync_iter(agen)
        return agen

    return wrapper
