'''Lazy pipelines over a stream of data in an async context.

The target use case is that one or more operations is I/O bound,
hence can benefit from async concurrency.
Such operations are attached by ``map_async``, ``filter_async``, ``for_each_async``
and run "concurrently" when a terminal method is called with ``concurrency > 1``.

In a typical use, one starts with a ``LazyAsyncIterator`` object and calls its methods
in a "chained" fashion:

    pipeline = (
        LazyAsyncIterator(urls)
        .map_async(fetch)
        .filter(is_ok)
        .map(parse)
        )

Then use ``pipeline`` in one of the following ways:

    async for elem in pipeline:
        ...

    result = await pipeline.collect(concurrency=8)

    outcomes = await pipeline.collect_settled(concurrency=8)

Please refer to the sync counterpart ``LazyIterator`` for additional info.
'''

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import (
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Iterable,
    Iterator,
)
from typing import Any, Generic, TypeVar

from typing_extensions import Self  # In 3.11, import this from `typing`

from ._common import (
    DEFAULT_CONCURRENCY,
    DONE,
    Done,
    NOTSET,
    Elem,
    Fulfilled,
    PullResult,
    Rejected,
    Settled,
    Value,
    check_concurrency,
    check_count,
    isasynciterable,
    isiterable,
)
from ._ops import (
    Filter,
    FilterAsync,
    ForEach,
    ForEachAsync,
    Map,
    MapAsync,
    Op,
    Reduce,
)
from ._tee import async_tee

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def _call(func: Callable, *args):
    # `func` may be a sync or async function.
    z = func(*args)
    if inspect.isawaitable(z):
        z = await z
    return z


class LazyAsyncIterator(AsyncIterator, Generic[Elem]):
    """
    Async counterpart of :class:`~lazyiter.LazyIterator`.

    The input stream may be sync or async. Operations may be sync
    (:meth:`map`, :meth:`filter`, :meth:`for_each`) or async
    (:meth:`map_async`, :meth:`filter_async`, :meth:`for_each_async`);
    they are run on every element in the order they were attached.

    Every terminal method takes a ``concurrency`` argument. The elements are
    pulled in batches of ``concurrency``: the pulls in a batch are started
    together and the next batch starts only after all of them have finished.
    The pulls of the input stream itself are serialized; the async operations
    of the elements in a batch overlap. The results of a batch are in the order
    its pulls were issued, not the order they finished. (A pull whose element
    is filtered out moves on to the next element of the input stream, so with
    a filter and ``concurrency > 1`` two pulls of a batch may swap places
    relative to the input stream.) A batch may pull up to ``concurrency - 1``
    elements beyond the point where a method decides to stop.

    Every terminal method has a "settled" counterpart (e.g. :meth:`collect_settled`)
    that does not raise when processing an element fails; instead it returns
    a list of :class:`~lazyiter.Fulfilled` and :class:`~lazyiter.Rejected`
    entries.
    """

    def __init__(
        self,
        instream: AsyncIterable[Elem]
        | AsyncIterator[Elem]
        | Iterable[Elem]
        | Iterator[Elem],
        /,
    ):
        """
        Parameters
        ----------
        instream
            The input stream of elements, possibly unlimited.
            An async iterator, an async iterable, an iterator, or an iterable.
        """
        if instream is None:
            raise TypeError('LazyAsyncIterator cannot be created from None')
        if hasattr(instream, '__anext__'):
            self._instream = instream
            self._is_async = True
        elif hasattr(instream, '__next__'):
            self._instream = instream
            self._is_async = False
        elif isasynciterable(instream):
            self._instream = aiter(instream)
            self._is_async = True
        elif isiterable(instream):
            self._instream = iter(instream)
            self._is_async = False
        else:
            raise TypeError(
                f"expecting an async iterable or iterable but got {type(instream).__name__}"
            )
        self.ops: list[Op] = []
        self.exhausted = False
        self.index = 0
        self._instream_lock = asyncio.Lock()
        # An async generator can't be advanced by two tasks at once.

    @classmethod
    def from_iterable(cls, instream, /) -> LazyAsyncIterator:
        return cls(instream)

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> Elem:
        z = await self.pull()
        if z is DONE:
            raise StopAsyncIteration
        return z.value

    def _attach(self, op: Op) -> Self:
        if self.ops and isinstance(self.ops[-1], Reduce):
            raise ValueError('no operation can be attached after `reduce`')
        self.ops.append(op)
        return self

    def map(
        self, func: Callable[..., Any], /, with_index: bool = False, **kwargs
    ) -> Self:
        """
        Transform each element with ``func``.

        If ``with_index`` is ``True``, ``func`` is called as ``func(x, idx)``,
        where ``idx`` is the position of the element in the input stream,
        counting from 0 and including elements that are filtered out.
        The same goes for the other operations.
        """
        return self._attach(Map(func, with_index=with_index, **kwargs))

    def filter(
        self, func: Callable[..., bool], /, with_index: bool = False, **kwargs
    ) -> Self:
        return self._attach(Filter(func, with_index=with_index, **kwargs))

    def for_each(
        self, func: Callable[..., Any], /, with_index: bool = False, **kwargs
    ) -> Self:
        return self._attach(ForEach(func, with_index=with_index, **kwargs))

    def map_async(
        self,
        func: Callable[..., Awaitable[Any]],
        /,
        with_index: bool = False,
        **kwargs,
    ) -> Self:
        """
        Transform each element with the async function ``func``.

        ``func`` is awaited in place; while it waits, other elements of the
        same batch are processed.
        """
        return self._attach(MapAsync(func, with_index=with_index, **kwargs))

    def filter_async(
        self,
        func: Callable[..., Awaitable[bool]],
        /,
        with_index: bool = False,
        **kwargs,
    ) -> Self:
        return self._attach(FilterAsync(func, with_index=with_index, **kwargs))

    def for_each_async(
        self,
        func: Callable[..., Awaitable[Any]],
        /,
        with_index: bool = False,
        **kwargs,
    ) -> Self:
        return self._attach(ForEachAsync(func, with_index=with_index, **kwargs))

    def reduce(
        self,
        func: Callable[..., Any],
        /,
        initial: Any = NOTSET,
        with_index: bool = False,
    ) -> AsyncReduceExecutor:
        """
        Attach the terminal fold and return an executor for it::

            total = await LazyAsyncIterator(data).map_async(price).reduce(operator.add, 0).execute()

        ``func`` may be a sync or async function. If ``with_index`` is ``True``,
        it is called as ``func(acc, x, idx)``, where ``idx`` is the position
        of ``x`` among the elements being folded.
        """
        self._attach(Reduce(func, initial, with_index=with_index))
        return AsyncReduceExecutor(self)

    async def _pull_instream(self) -> tuple[int, Any] | Done:
        # Return the element along with its position in the input stream.
        async with self._instream_lock:
            if self.exhausted:
                return DONE
            try:
                if self._is_async:
                    x = await self._instream.__anext__()
                else:
                    x = next(self._instream)
            except (StopAsyncIteration, StopIteration):
                self.exhausted = True
                return DONE
            idx = self.index
            self.index += 1
            return idx, x

    async def _apply(self, x, idx: int) -> Value | None:
        try:
            for op in self.ops:
                match op:
                    case Map():
                        x = op(x, idx)
                    case MapAsync():
                        x = await op(x, idx)
                    case Filter():
                        if not op(x, idx):
                            return None
                    case FilterAsync():
                        if not await op(x, idx):
                            return None
                    case ForEach():
                        op(x, idx)
                    case ForEachAsync():
                        await op(x, idx)
                    case Reduce():
                        pass
                    case _:
                        raise TypeError(f"unsupported operation: {op!r}")
        except (StopIteration, StopAsyncIteration) as e:
            # Leaking out of `__anext__`, these would look like the end of the stream.
            raise RuntimeError(f"{op!r} raised {type(e).__name__}") from e
        return Value(x)

    async def pull(self) -> PullResult:
        """
        Return the next element that makes it through all the operations,
        wrapped in :class:`~lazyiter.Value`, or :data:`~lazyiter.DONE`.

        ``StopIteration`` and ``StopAsyncIteration`` raised by an operation
        are turned into ``RuntimeError``.
        """
        if self.exhausted:
            return DONE
        while True:
            z = await self._pull_instream()
            if z is DONE:
                return z
            z = await self._apply(z[1], z[0])
            if z is not None:
                return z

    async def _pull_batch(self, concurrency: int) -> list[PullResult | BaseException]:
        # The pulls are started in order; the outcomes are in the same order.
        return await asyncio.gather(
            *(self.pull() for _ in range(concurrency)), return_exceptions=True
        )

    async def _outcomes(self, concurrency: int):
        # Yield the outcomes of successive batches in pull order, leaving out
        # `DONE`. Stop after the batch in which `DONE` is seen; an element
        # pulled in the same batch may finish after the pull that found the
        # end, hence the whole batch is looked at.
        done = False
        while not done:
            for z in await self._pull_batch(concurrency):
                if z is DONE:
                    done = True
                elif isinstance(z, Value):
                    yield Fulfilled(z.value)
                elif isinstance(z, Exception):
                    yield Rejected(z)
                else:
                    # KeyboardInterrupt, CancelledError and the like.
                    raise z

    @contextlib.asynccontextmanager
    async def _terminal(self, name: str, concurrency: int):
        outcomes = self._outcomes(concurrency)
        try:
            async with contextlib.aclosing(outcomes):
                yield outcomes
        except Exception as e:
            logger.debug('`%s` failed after %d elements: %r', name, self.index, e)
            raise
        finally:
            self.exhausted = True

    def stop(self):
        """Mark the stream exhausted. Pulls in flight finish normally."""
        if not self.exhausted:
            logger.debug('%r stopped after %d elements', self, self.index)
        self.exhausted = True

    def abort(self, exc: BaseException | None = None):
        if not self.exhausted:
            logger.debug('%r aborted after %d elements: %r', self, self.index, exc)
        self.exhausted = True

    async def collect(self, concurrency: int = DEFAULT_CONCURRENCY) -> list[Elem]:
        """
        Return all the elements in a list.

        Raise the first exception (in the order of the stream) that occurs
        while processing an element.
        """
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('collect', concurrency) as outcomes:
            async for r in outcomes:
                match r:
                    case Fulfilled(x):
                        out.append(x)
                    case Rejected(e):
                        raise e
        return out

    async def to_list(self, concurrency: int = DEFAULT_CONCURRENCY) -> list[Elem]:
        return await self.collect(concurrency)

    async def collect_settled(
        self, concurrency: int = DEFAULT_CONCURRENCY
    ) -> list[Settled]:
        """
        Return the outcome of every element, successful or not, in a list.
        """
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('collect_settled', concurrency) as outcomes:
            async for r in outcomes:
                out.append(r)
        return out

    async def take(self, n: int, concurrency: int = DEFAULT_CONCURRENCY) -> list[Elem]:
        n = check_count('take', n)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('take', concurrency) as outcomes:
            if n == 0:
                return out
            async for r in outcomes:
                match r:
                    case Fulfilled(x):
                        out.append(x)
                    case Rejected(e):
                        raise e
                if len(out) >= n:
                    break
        return out

    async def take_settled(
        self, n: int, concurrency: int = DEFAULT_CONCURRENCY
    ) -> list[Settled]:
        """
        Return the outcomes of the first ``n`` elements. A failed element
        counts toward ``n``.
        """
        n = check_count('take_settled', n)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('take_settled', concurrency) as outcomes:
            if n == 0:
                return out
            async for r in outcomes:
                out.append(r)
                if len(out) >= n:
                    break
        return out

    async def drop(self, n: int, concurrency: int = DEFAULT_CONCURRENCY) -> list[Elem]:
        n = check_count('drop', n)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('drop', concurrency) as outcomes:
            k = 0
            async for r in outcomes:
                match r:
                    case Fulfilled(x):
                        if k < n:
                            k += 1
                        else:
                            out.append(x)
                    case Rejected(e):
                        raise e
        return out

    async def drop_settled(
        self, n: int, concurrency: int = DEFAULT_CONCURRENCY
    ) -> list[Settled]:
        """
        Skip the first ``n`` successful elements and return the outcomes of the rest.

        Failures are never skipped: a failure among the first elements is
        in the result and does not count toward ``n``.
        """
        n = check_count('drop_settled', n)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('drop_settled', concurrency) as outcomes:
            k = 0
            async for r in outcomes:
                if isinstance(r, Fulfilled) and k < n:
                    k += 1
                    continue
                out.append(r)
        return out

    async def take_while(
        self,
        func: Callable[..., bool] | Callable[..., Awaitable[bool]],
        /,
        concurrency: int = DEFAULT_CONCURRENCY,
        with_index: bool = False,
    ) -> list[Elem]:
        """
        Return elements up to, not including, the first one for which
        ``func`` is falsy. ``func`` may be a sync or async function.

        If ``with_index`` is ``True``, ``func`` is called as ``func(x, idx)``,
        where ``idx`` is the position of ``x`` among the successful elements
        that reach this method.
        """
        pred = Filter(func, with_index=with_index)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('take_while', concurrency) as outcomes:
            idx = 0
            async for r in outcomes:
                match r:
                    case Fulfilled(x):
                        if not await _call(pred, x, idx):
                            break
                        idx += 1
                        out.append(x)
                    case Rejected(e):
                        raise e
        return out

    async def take_while_settled(
        self,
        func: Callable[..., bool] | Callable[..., Awaitable[bool]],
        /,
        concurrency: int = DEFAULT_CONCURRENCY,
        with_index: bool = False,
    ) -> list[Settled]:
        """
        Return outcomes up to, not including, the first successful element
        for which ``func`` is falsy.

        If ``func`` itself raises on an element, that element is recorded
        as :class:`~lazyiter.Rejected` with the exception raised by ``func``.
        ``with_index`` is as in :meth:`take_while`.
        """
        pred = Filter(func, with_index=with_index)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('take_while_settled', concurrency) as outcomes:
            idx = 0
            async for r in outcomes:
                if isinstance(r, Fulfilled):
                    try:
                        ok = await _call(pred, r.value, idx)
                    except Exception as e:
                        out.append(Rejected(e))
                        continue
                    finally:
                        idx += 1
                    if not ok:
                        break
                out.append(r)
        return out

    async def drop_while(
        self,
        func: Callable[..., bool] | Callable[..., Awaitable[bool]],
        /,
        concurrency: int = DEFAULT_CONCURRENCY,
        with_index: bool = False,
    ) -> list[Elem]:
        """
        Skip elements while ``func`` is truthy, then return all the rest.
        Once an element fails ``func``, no later element is skipped.
        ``with_index`` is as in :meth:`take_while`.
        """
        pred = Filter(func, with_index=with_index)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('drop_while', concurrency) as outcomes:
            dropping = True
            idx = 0
            async for r in outcomes:
                match r:
                    case Fulfilled(x):
                        if dropping and await _call(pred, x, idx):
                            idx += 1
                            continue
                        dropping = False
                        out.append(x)
                    case Rejected(e):
                        raise e
        return out

    async def drop_while_settled(
        self,
        func: Callable[..., bool] | Callable[..., Awaitable[bool]],
        /,
        concurrency: int = DEFAULT_CONCURRENCY,
        with_index: bool = False,
    ) -> list[Settled]:
        pred = Filter(func, with_index=with_index)
        concurrency = check_concurrency(concurrency)
        out = []
        async with self._terminal('drop_while_settled', concurrency) as outcomes:
            dropping = True
            idx = 0
            async for r in outcomes:
                if dropping and isinstance(r, Fulfilled):
                    try:
                        skip = await _call(pred, r.value, idx)
                    except Exception as e:
                        out.append(Rejected(e))
                        continue
                    finally:
                        idx += 1
                    if skip:
                        continue
                    dropping = False
                out.append(r)
        return out

    def tee(self, count: int) -> tuple[LazyAsyncIterator[Elem], ...]:
        """
        Fork this stream into ``count`` independent ``LazyAsyncIterator`` objects.
        See :func:`lazyiter.async_tee`.
        """
        return tuple(type(self)(f) for f in async_tee(self, count))


class AsyncReduceExecutor(Generic[Elem]):
    def __init__(self, instream: LazyAsyncIterator[Elem]):
        self._instream = instream
        self._executed = False

    async def execute(self, concurrency: int = DEFAULT_CONCURRENCY):
        if self._executed:
            raise RuntimeError('the reduction has already been executed')
        self._executed = True
        op = self._instream.ops[-1]
        values = await self._instream.collect(concurrency)
        acc = op.initial
        for idx, x in enumerate(values):
            if acc is NOTSET:
                acc = x
            else:
                acc = await _call(op, acc, x, idx)
        if acc is NOTSET:
            raise TypeError('reduce() of empty stream with no initial value')
        return acc
