from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from typing import Generic

from ._common import (
    DONE,
    Elem,
    PullResult,
    Value,
    check_count,
    isasynciterable,
    isiterable,
)

logger = logging.getLogger(__name__)


class _BufferMixin:
    # Shared bookkeeping of the sync and async groups.
    #
    # `_positions[i]` is the index into `_buffer` of the next element
    # fork `i` will read, or `None` once fork `i` is finished (stopped or
    # reached the end). Finished forks are left out of the minimum so that
    # a fork that is abandoned early does not pin the buffer.
    #
    # None of these methods suspends, hence in the async group they
    # are atomic with respect to the other forks.

    def _init_buffer(self, n: int):
        self._positions: list[int | None] = [0] * n
        self._buffer: deque = deque()
        self._exhausted = False
        self._error: Exception | None = None

    @property
    def buffer_size(self) -> int:
        """Number of elements held for the forks that are lagging behind."""
        return len(self._buffer)

    def _trim(self):
        active = [p for p in self._positions if p is not None]
        if not active:
            self._buffer.clear()
            return
        m = min(active)
        if m == 0:
            return
        for _ in range(m):
            self._buffer.popleft()
        self._positions = [None if p is None else p - m for p in self._positions]

    def _read_buffered(self, idx: int) -> PullResult | None:
        pos = self._positions[idx]
        if pos is None:
            return DONE
        if pos < len(self._buffer):
            x = self._buffer[pos]
            self._positions[idx] = pos + 1
            self._trim()
            return Value(x)
        return None

    def _accept(self, idx: int, z: PullResult) -> PullResult:
        # Record the outcome of a fresh pull from the source made by fork `idx`.
        if z is DONE:
            self._positions[idx] = None
        else:
            self._buffer.append(z.value)
            self._positions[idx] += 1
        self._trim()
        return z

    def _finish(self, idx: int):
        if self._positions[idx] is not None:
            self._positions[idx] = None
            self._trim()

    def _is_finished(self, idx: int) -> bool:
        return self._positions[idx] is None

    def _on_exhausted(self):
        self._exhausted = True
        logger.debug('tee source exhausted; %d elements buffered', len(self._buffer))

    def _on_error(self, e: Exception):
        self._error = e
        logger.debug('tee source raised %r; it will be re-raised to all forks', e)


class TeeGroup(_BufferMixin):
    """
    The state shared by the forks created by one call to :func:`tee`.

    The group owns the single iterator over the input stream.
    Every element pulled off it is kept in a buffer until the slowest
    unfinished fork has read it.
    """

    def __init__(self, instream: Iterator, n: int):
        self._instream = instream
        self._init_buffer(n)
        self._lock = threading.Lock()

    def _pull_source(self) -> PullResult:
        if self._exhausted:
            return DONE
        if self._error is not None:
            raise self._error
        try:
            x = next(self._instream)
        except StopIteration:
            self._on_exhausted()
            return DONE
        except Exception as e:
            self._on_error(e)
            raise
        return Value(x)

    def pull(self, idx: int) -> PullResult:
        with self._lock:
            z = self._read_buffered(idx)
            if z is not None:
                return z
            return self._accept(idx, self._pull_source())

    def stop(self, idx: int):
        with self._lock:
            self._finish(idx)

    def is_finished(self, idx: int) -> bool:
        return self._is_finished(idx)


class AsyncTeeGroup(_BufferMixin):
    """
    Async counterpart of :class:`TeeGroup`.

    Pulling the input stream is "single-flight": one lock guards both the
    decision to go to the source and the source pull itself, so forks that
    miss the buffer at the same time do not pull the source twice. Reading
    an already buffered element never waits on the lock.
    """

    def __init__(self, instream: AsyncIterator | Iterator, n: int):
        self._instream = instream
        self._is_async = hasattr(instream, '__anext__')
        self._init_buffer(n)
        self._lock = asyncio.Lock()

    async def _pull_source(self) -> PullResult:
        if self._exhausted:
            return DONE
        if self._error is not None:
            raise self._error
        try:
            if self._is_async:
                x = await self._instream.__anext__()
            else:
                x = next(self._instream)
        except (StopAsyncIteration, StopIteration):
            self._on_exhausted()
            return DONE
        except Exception as e:
            self._on_error(e)
            raise
        return Value(x)

    async def pull(self, idx: int) -> PullResult:
        z = self._read_buffered(idx)
        if z is not None:
            return z
        async with self._lock:
            # A sibling may have filled the buffer while we were waiting.
            z = self._read_buffered(idx)
            if z is not None:
                return z
            z = await self._pull_source()
            if self._is_finished(idx):
                # Stopped while the pull was in flight.
                if z is not DONE:
                    self._buffer.append(z.value)
                    self._trim()
                return DONE
            return self._accept(idx, z)

    def stop(self, idx: int):
        self._finish(idx)

    def is_finished(self, idx: int) -> bool:
        return self._is_finished(idx)


class Fork(Iterator, Generic[Elem]):
    """One of the independent iterators returned by :func:`tee`."""

    def __init__(self, group: TeeGroup, idx: int):
        self._group = group
        self._idx = idx

    @property
    def done(self) -> bool:
        return self._group.is_finished(self._idx)

    def pull(self) -> PullResult:
        return self._group.pull(self._idx)

    def __iter__(self):
        return self

    def __next__(self) -> Elem:
        z = self.pull()
        if z is DONE:
            raise StopIteration
        return z.value

    def stop(self):
        """Finish this fork. The other forks are not affected."""
        self._group.stop(self._idx)

    def abort(self, exc: BaseException):
        """Finish this fork and raise ``exc``."""
        self.stop()
        raise exc


class AsyncFork(AsyncIterator, Generic[Elem]):
    """One of the independent async iterators returned by :func:`async_tee`."""

    def __init__(self, group: AsyncTeeGroup, idx: int):
        self._group = group
        self._idx = idx

    @property
    def done(self) -> bool:
        return self._group.is_finished(self._idx)

    async def pull(self) -> PullResult:
        return await self._group.pull(self._idx)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Elem:
        z = await self.pull()
        if z is DONE:
            raise StopAsyncIteration
        return z.value

    def stop(self):
        self._group.stop(self._idx)

    def abort(self, exc: BaseException):
        self.stop()
        raise exc


def tee(instream: Iterable[Elem], count: int, /) -> tuple[Fork[Elem], ...]:
    """
    ``tee`` produces ``count`` "copies" of the input data stream,
    to be used in different ways.

    Suppose we have a data stream that can be walked only once
    (a generator, a file, a network response), and we want to apply
    two different lines of operations on it. Re-walking the stream is not
    possible, and materializing it could be too expensive.
    With this function::

        it1, it2 = tee(data, 2)

    ``it1`` and ``it2`` each yield every element of ``data``, in order,
    and can be consumed at their own pace. ``data`` is walked exactly once.

    Internally, an element is held in a buffer from the moment the fastest
    fork pulls it off ``data`` until the slowest unfinished fork has read it.
    Hence the memory held is proportional to the distance between the fastest
    and the slowest fork, not to the length of ``data``. A fork that is no
    longer needed should be stopped (:meth:`Fork.stop`) so that it does not
    hold elements in the buffer.

    If pulling ``data`` raises an exception, the exception is cached and
    raised to every fork that tries to read past that point.

    Parameters
    ----------
    instream
        An iterable or iterator. Once passed in, it should not be iterated
        by anyone else.
    count
        Number of forks.
    """
    count = check_count('tee', count)
    if instream is None or not isiterable(instream):
        raise TypeError(f"expecting an iterable but got {type(instream).__name__}")
    if not hasattr(instream, '__next__'):
        instream = iter(instream)
    group = TeeGroup(instream, count)
    return tuple(Fork(group, i) for i in range(count))


def async_tee(
    instream: AsyncIterable[Elem] | Iterable[Elem], count: int, /
) -> tuple[AsyncFork[Elem], ...]:
    """
    Async counterpart of :func:`tee`.

    ``instream`` may be async or sync. The forks are async iterators.
    """
    count = check_count('tee', count)
    if instream is None:
        raise TypeError('expecting an async iterable or iterable but got None')
    if hasattr(instream, '__anext__') or hasattr(instream, '__next__'):
        pass
    elif isasynciterable(instream):
        instream = aiter(instream)
    elif isiterable(instream):
        instream = iter(instream)
    else:
        raise TypeError(
            f"expecting an async iterable or iterable but got {type(instream).__name__}"
        )
    group = AsyncTeeGroup(instream, count)
    return tuple(AsyncFork(group, i) for i in range(count))
