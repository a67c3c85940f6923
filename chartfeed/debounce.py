from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Callable, Optional, Tuple


class Debouncer:
    """Delay ``func`` until ``wait`` seconds pass without another call.

    Only the arguments of the last call are used. Must be called from a
    running event loop; coroutine functions are scheduled as tasks.
    """

    def __init__(self, func: Callable[..., Any], wait: float) -> None:
        self.func = func
        self.wait = wait
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[Any, ...] = ()
        self._kwargs: dict = {}
        self._tasks: set = set()
        functools.update_wrapper(self, func)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        self._args, self._kwargs = args, kwargs
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.wait, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> None:
        if self._handle is not None:
            self.cancel()
            self._fire()

    def _fire(self) -> None:
        self._handle = None
        result = self.func(*self._args, **self._kwargs)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)


def debounce(wait: float) -> Callable[[Callable[..., Any]], Debouncer]:
    def decorator(func: Callable[..., Any]) -> Debouncer:
        return Debouncer(func, wait)

    return decorator
