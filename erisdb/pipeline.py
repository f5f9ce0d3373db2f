"""
Lazy asynchronous sequence helpers.

Messages move between the application and the wire as async iterators. A
consumer drives progress by awaiting ``__anext__``; nothing is read ahead of
demand unless a stage says so. ``StopAsyncIteration`` plays the role of the
"done" signal.
"""

import asyncio
import logging
from collections import deque
from functools import reduce
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

Stage = Callable[[AsyncIterator[Any]], AsyncIterator[Any]]


# Outcome kinds held by PushIterator while no pull is waiting
_VALUE = "value"
_ERROR = "error"
_END = object()


async def close_source(source: Any) -> None:
    """Close an upstream sequence if it can be closed; others are left alone."""
    close = getattr(source, "aclose", None)
    if close is not None:
        await close()


class AsyncMap:
    """
    Apply ``func`` to every element of ``source``.

    Ordering and end-of-sequence are preserved; one element is pulled from
    ``source`` per element requested downstream. An exception raised by
    ``source`` or by ``func`` rejects that one pull only: the next pull goes
    on with the following element, and the sequence ends when ``source``
    does.
    """

    def __init__(self, func: Callable[[T], U], source: AsyncIterator[T]):
        self.func = func
        self.source = source

    def __aiter__(self) -> "AsyncMap":
        return self

    async def __anext__(self) -> Any:
        item = await self.source.__anext__()
        return self.func(item)

    async def aclose(self) -> None:
        await close_source(self.source)


def amap(func: Callable[[T], U], source: AsyncIterator[T]) -> AsyncIterator[U]:
    return AsyncMap(func, source)


def mapper(func: Callable[[T], U]) -> Stage:
    """Curried form of :func:`amap`, for use with :func:`compose`."""
    def stage(source: AsyncIterator[T]) -> AsyncIterator[U]:
        return amap(func, source)
    return stage


async def pull_serially(source: AsyncIterator[Awaitable[T]]) -> AsyncIterator[T]:
    """
    Await each produced awaitable before pulling the next one from ``source``.

    This is what turns a sequence of pending round trips into a strictly
    one-at-a-time exchange.
    """
    try:
        async for pending in source:
            yield await pending
    finally:
        await close_source(source)


def compose(*stages: Stage) -> Stage:
    """
    Compose sequence stages left to right.

    ``compose(a, b, c)(source)`` is ``c(b(a(source)))``.
    """
    def composed(source: AsyncIterator[Any]) -> AsyncIterator[Any]:
        return reduce(lambda acc, stage: stage(acc), stages, source)
    return composed


class PushIterator:
    """
    Adapt a push-style source (callbacks) into a pull-style async iterator.

    The producer calls :meth:`push`, :meth:`fail` and :meth:`end`. The consumer
    iterates. Only one pull may be outstanding at a time; events that arrive
    while nobody is pulling are kept in arrival order and handed out on the
    following pulls.

    A failure makes exactly one pull raise; the sequence continues afterwards.
    After :meth:`end` every pull reports completion and further pushes are
    discarded.
    """

    def __init__(self, name: str = "push-iterator"):
        self.name = name
        self._backlog: Deque[Tuple[str, Any]] = deque()
        self._waiter: Optional[asyncio.Future] = None
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def push(self, value: Any) -> None:
        self._deliver(_VALUE, value)

    def fail(self, error: BaseException) -> None:
        self._deliver(_ERROR, error)

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            waiter.set_result(_END)

    def _deliver(self, kind: str, payload: Any) -> None:
        if self._ended:
            logger.debug(f"{self.name}: dropping {kind} pushed after end")
            return
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            if kind == _VALUE:
                waiter.set_result(payload)
            else:
                waiter.set_exception(payload)
        else:
            self._backlog.append((kind, payload))

    def __aiter__(self) -> "PushIterator":
        return self

    async def __anext__(self) -> Any:
        if self._waiter is not None:
            raise RuntimeError(f"{self.name}: another pull is already pending")

        if self._backlog:
            kind, payload = self._backlog.popleft()
            if kind == _ERROR:
                raise payload
            return payload

        if self._ended:
            raise StopAsyncIteration

        waiter = asyncio.get_running_loop().create_future()
        self._waiter = waiter
        try:
            result = await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
        if result is _END:
            raise StopAsyncIteration
        return result
