# Iterable vs iterator
#
# `LazyIterator` is both: `__iter__` returns the object itself.
# Consequently a `LazyIterator` can be walked only once, like the
# generators it usually wraps.

from __future__ import annotations

import contextlib
import functools
import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar

from typing_extensions import Self  # In 3.11, import this from `typing`

from ._common import (
    DONE,
    NOTSET,
    Elem,
    PullResult,
    Value,
    check_count,
    isiterable,
)
from ._ops import Filter, ForEach, Map, Op, Reduce
from ._tee import tee

logger = logging.getLogger(__name__)

T = TypeVar('T')  # indicates input data element


class LazyIterator(Iterator, Generic[Elem]):
    """
    A lazy, single-pass pipeline over an iterator.

    User constructs a ``LazyIterator`` by passing an iterable or iterator
    to it, then attaches operations in a "chained" fashion::

        it = LazyIterator(data).map(parse).filter(is_valid).for_each(log)

    The methods modify the object in-place and return it, hence the above is
    equivalent to calling them one by one::

        it = LazyIterator(data)
        it.map(parse)
        it.filter(is_valid)
        it.for_each(log)

    Attaching an operation does no work. The work happens when the iterator
    is consumed, either by iterating it directly or by one of the "terminal"
    methods :meth:`collect`, :meth:`take`, :meth:`drop`, :meth:`take_while`,
    :meth:`drop_while`, :meth:`reduce`. Every element pulled off the input
    goes through all the operations, in the order they were attached,
    before the next element is pulled.

    A terminal method consumes the object: once it returns (or raises),
    the object is exhausted and any further pull returns nothing.

    .. note:: Attaching operations is not thread-safe. Build the pipeline
        in one thread.
    """

    def __init__(self, instream: Iterable[Elem] | Iterator[Elem], /):
        """
        Parameters
        ----------
        instream
            The input stream of elements, possibly unlimited.
            Either an iterator (something with ``__next__``) or
            an iterable (something with ``__iter__``).
        """
        if instream is None:
            raise TypeError('LazyIterator cannot be created from None')
        if hasattr(instream, '__next__'):
            self._instream = instream
        elif isiterable(instream):
            self._instream = iter(instream)
        else:
            raise TypeError(
                f"expecting an iterable or iterator but got {type(instream).__name__}"
            )
        self.ops: list[Op] = []
        self.exhausted = False
        self.index = 0
        # Count of elements pulled off `instream`, including those
        # that were filtered out.

    @classmethod
    def from_iterable(cls, instream: Iterable[T] | Iterator[T], /) -> LazyIterator[T]:
        return cls(instream)

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> Elem:
        z = self.pull()
        if z is DONE:
            raise StopIteration
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
        Perform a simple transformation on each data element.

        This is a 1-to-1 transform from the input stream to the output stream.

        Parameters
        ----------
        func
            A function that takes a data element and returns a new value.
        with_index
            If ``True``, ``func`` is called as ``func(x, idx)``, where ``idx``
            is the position of the element in the input stream, counting from 0
            and including elements that are filtered out.
        *kwargs
            Additional keyword arguments to ``func``, after the first argument, which
            is the data element.
        """
        return self._attach(Map(func, with_index=with_index, **kwargs))

    def filter(
        self, func: Callable[..., bool], /, with_index: bool = False, **kwargs
    ) -> Self:
        """
        Select data elements to keep in the stream according to the predicate ``func``.

        An element for which ``func`` returns a falsy value is dropped; the
        stream goes on with the next element. ``with_index`` is as in :meth:`map`.
        """
        return self._attach(Filter(func, with_index=with_index, **kwargs))

    def for_each(
        self, func: Callable[..., Any], /, with_index: bool = False, **kwargs
    ) -> Self:
        """
        Call ``func`` on each element for its side effect, e.g. logging.

        The return value of ``func`` is ignored; the element continues
        in the stream unchanged.
        """
        return self._attach(ForEach(func, with_index=with_index, **kwargs))

    def reduce(
        self,
        func: Callable[..., Any],
        /,
        initial: Any = NOTSET,
        with_index: bool = False,
    ) -> ReduceExecutor:
        """
        Attach the terminal fold and return an executor for it.

        Nothing happens until :meth:`ReduceExecutor.execute` is called::

            total = LazyIterator(data).map(price).reduce(operator.add, 0).execute()

        If ``initial`` is not given, the first element is the initial value.
        If ``with_index`` is ``True``, ``func`` is called as ``func(acc, x, idx)``,
        where ``idx`` is the position of ``x`` among the elements being folded.
        """
        self._attach(Reduce(func, initial, with_index=with_index))
        return ReduceExecutor(self)

    def _apply(self, x, idx: int) -> Value | None:
        # Run all operations on one element.
        # Return `None` if the element is filtered out.
        try:
            for op in self.ops:
                match op:
                    case Map():
                        x = op(x, idx)
                    case Filter():
                        if not op(x, idx):
                            return None
                    case ForEach():
                        op(x, idx)
                    case Reduce():
                        # Folded by `ReduceExecutor`.
                        pass
                    case _:
                        raise TypeError(f"unsupported operation in a sync pipeline: {op!r}")
        except StopIteration as e:
            # Leaking out of `__next__`, this would look like the end of the stream.
            raise RuntimeError(f"{op!r} raised StopIteration") from e
        return Value(x)

    def pull(self) -> PullResult:
        """
        Return the next element that makes it through all the operations,
        wrapped in :class:`Value`, or :data:`DONE` if the input stream is used up.

        Exceptions raised by the operations propagate to the caller,
        except that ``StopIteration`` is turned into ``RuntimeError``.
        """
        if self.exhausted:
            return DONE
        while True:
            try:
                x = next(self._instream)
            except StopIteration:
                self.exhausted = True
                return DONE
            idx = self.index
            self.index += 1
            z = self._apply(x, idx)
            if z is not None:
                return z

    def stop(self):
        """Mark the stream exhausted. The input stream is not touched."""
        if not self.exhausted:
            logger.debug('%r stopped after %d elements', self, self.index)
        self.exhausted = True

    def abort(self, exc: BaseException | None = None):
        """Like :meth:`stop`, but triggered by an error ``exc``."""
        if not self.exhausted:
            logger.debug('%r aborted after %d elements: %r', self, self.index, exc)
        self.exhausted = True

    @contextlib.contextmanager
    def _terminal(self, name: str):
        try:
            yield
        except Exception as e:
            logger.debug('`%s` failed on element #%d: %r', name, self.index, e)
            raise
        finally:
            self.exhausted = True

    def collect(self) -> list[Elem]:
        """
        Return all the elements in a list.

        .. warning:: Do not call this method on "big data".
        """
        with self._terminal('collect'):
            return list(self)

    def to_list(self) -> list[Elem]:
        return self.collect()

    def take(self, n: int) -> list[Elem]:
        """
        Return the first ``n`` elements (fewer if the stream ends before that).
        At most ``n`` elements are pulled.
        """
        n = check_count('take', n)
        out = []
        with self._terminal('take'):
            while len(out) < n:
                z = self.pull()
                if z is DONE:
                    break
                out.append(z.value)
        return out

    def drop(self, n: int) -> list[Elem]:
        """Skip the first ``n`` elements and return the rest."""
        n = check_count('drop', n)
        out = []
        with self._terminal('drop'):
            k = 0
            for x in self:
                if k < n:
                    k += 1
                    continue
                out.append(x)
        return out

    def take_while(
        self, func: Callable[..., bool], /, with_index: bool = False
    ) -> list[Elem]:
        """
        Return elements up to, not including, the first one for which
        ``func`` is falsy.

        If ``with_index`` is ``True``, ``func`` is called as ``func(x, idx)``,
        where ``idx`` is the position of ``x`` among the elements
        that reach this method.
        """
        pred = Filter(func, with_index=with_index)
        out = []
        with self._terminal('take_while'):
            for idx, x in enumerate(self):
                if not pred(x, idx):
                    break
                out.append(x)
        return out

    def drop_while(
        self, func: Callable[..., bool], /, with_index: bool = False
    ) -> list[Elem]:
        """
        Skip elements while ``func`` is truthy, then return all the rest.

        Once an element fails ``func``, no later element is skipped, whatever
        ``func`` says about it. ``with_index`` is as in :meth:`take_while`.
        """
        pred = Filter(func, with_index=with_index)
        out = []
        with self._terminal('drop_while'):
            dropping = True
            for idx, x in enumerate(self):
                if dropping and pred(x, idx):
                    continue
                dropping = False
                out.append(x)
        return out

    def tee(self, count: int) -> tuple[LazyIterator[Elem], ...]:
        """
        Fork this stream into ``count`` independent ``LazyIterator`` objects.

        Each fork yields the elements coming out of this stream's operations
        and starts with no operations of its own. See :func:`lazyiter.tee`.
        """
        return tuple(type(self)(f) for f in tee(self, count))


class ReduceExecutor(Generic[Elem]):
    """Returned by :meth:`LazyIterator.reduce`. Call :meth:`execute` once."""

    def __init__(self, instream: LazyIterator[Elem]):
        self._instream = instream
        self._executed = False

    def execute(self):
        if self._executed:
            raise RuntimeError('the reduction has already been executed')
        self._executed = True
        op = self._instream.ops[-1]
        values = self._instream.collect()
        if not op.with_index:
            if op.has_initial:
                return functools.reduce(op.func, values, op.initial)
            return functools.reduce(op.func, values)
        acc = op.initial
        for idx, x in enumerate(values):
            if acc is NOTSET:
                acc = x
            else:
                acc = op(acc, x, idx)
        if acc is NOTSET:
            raise TypeError('reduce() of empty iterable with no initial value')
        return acc
