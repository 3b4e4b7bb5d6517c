from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable

from ._common import NOTSET


class Op:
    """
    Base of the operation records kept by a pipeline.

    A record holds the user function; the pipelines decide what to do
    with it by matching on the record's class, and call the record
    itself to run the function on one element.

    If ``with_index`` is true, the function is called as ``func(x, idx)``,
    where ``idx`` is the position of the element in the input stream
    (counting from 0, including elements that are later filtered out).
    Otherwise it is called as ``func(x)``.
    """

    __slots__ = ('func', 'with_index')
    __match_args__ = ('func',)

    def __init__(self, func: Callable, /, with_index: bool = False, **kwargs):
        if not callable(func):
            raise TypeError(
                f"{type(self).__name__} expects a callable but got {type(func).__name__}"
            )
        self.func = functools.partial(func, **kwargs) if kwargs else func
        self.with_index = bool(with_index)

    def __call__(self, x, idx: int):
        if self.with_index:
            return self.func(x, idx)
        return self.func(x)

    def __repr__(self):
        return f'{type(self).__name__}({self.func!r})'


class Map(Op):
    __slots__ = ()
    func: Callable[..., Any]


class Filter(Op):
    __slots__ = ()
    func: Callable[..., bool]


class ForEach(Op):
    __slots__ = ()
    func: Callable[..., None]


class MapAsync(Op):
    __slots__ = ()
    func: Callable[..., Awaitable[Any]]


class FilterAsync(Op):
    __slots__ = ()
    func: Callable[..., Awaitable[bool]]


class ForEachAsync(Op):
    __slots__ = ()
    func: Callable[..., Awaitable[None]]


class Reduce(Op):
    """
    The terminal fold. At most one per pipeline, and always the last record.

    The function is called as ``func(acc, x)``, or ``func(acc, x, idx)``
    if ``with_index`` is true. Here ``idx`` is the position of ``x``
    among the elements being folded.
    """

    __slots__ = ('initial',)
    __match_args__ = ('func', 'initial')

    def __init__(
        self,
        func: Callable[..., Any],
        /,
        initial=NOTSET,
        with_index: bool = False,
    ):
        super().__init__(func, with_index=with_index)
        self.initial = initial

    def __call__(self, acc, x, idx: int):
        if self.with_index:
            return self.func(acc, x, idx)
        return self.func(acc, x)

    @property
    def has_initial(self) -> bool:
        return self.initial is not NOTSET
