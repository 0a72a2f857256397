"""
Concurrency helpers.

- `OnceCell`: a compute-once slot. The first caller runs the initializer while
  later callers block on the slot and observe the same published value.
- `run_sync`: run a blocking callable from a coroutine without blocking the
  event loop (used to bridge async channel calls to blocking ones).
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class OnceCell(Generic[T]):
    """
    Lazily-initialized, thread-safe slot.

    If the initializer raises, nothing is published and the next call to
    `get_or_init` runs the initializer again.
    """

    __slots__ = ("_lock", "_value", "_initialized")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get(self) -> T | None:
        """Return the published value, or None while the cell is empty."""
        return self._value if self._initialized else None

    def get_or_init(self, init: Callable[[], T]) -> T:
        if self._initialized:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._initialized:
                self._value = init()
                self._initialized = True
        return self._value  # type: ignore[return-value]


def _default_max_workers() -> int:
    # Mirrors ThreadPoolExecutor's default sizing heuristics.
    return min(32, (os.cpu_count() or 1) + 4)


_EXECUTOR = ThreadPoolExecutor(max_workers=_default_max_workers())


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """
    Run a synchronous callable in a shared thread pool.

    A dedicated executor (vs. asyncio's default) keeps behavior predictable
    across environments and tests.
    """
    # Poll the concurrent future rather than relying on call_soon_threadsafe
    # wakeups, which can hang in some sandboxed event loops.
    future = _EXECUTOR.submit(partial(func, *args, **kwargs))
    try:
        while True:
            if future.done():
                return future.result()
            await asyncio.sleep(0.001)
    except asyncio.CancelledError:
        future.cancel()
        raise


__all__ = ["OnceCell", "run_sync"]
