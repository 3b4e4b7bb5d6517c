from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ._common import DONE, NOTSET
from ._tee import tee

logger = logging.getLogger(__name__)

_KINDS = ('map', 'filter', 'reduce', 'for_each')
_ALIASES = {'forEach': 'for_each', 'foreach': 'for_each'}


class Consumer:
    """
    Describes one use of the data in :func:`tee_consumers`.

    Parameters
    ----------
    kind
        One of ``'map'``, ``'filter'``, ``'reduce'``, ``'for_each'``.
    func
        For ``'map'``, ``'filter'`` and ``'for_each'``, a function of one element.
        For ``'reduce'``, a function ``func(acc, x)``.
    initial
        Initial value for ``'reduce'``. If not given, the first element is used.
    with_index
        If ``True``, ``func`` also gets the position of the element in
        ``items`` as its last argument: ``func(x, idx)``, or
        ``func(acc, x, idx)`` for ``'reduce'``.
    """

    __slots__ = ('kind', 'func', 'initial', 'with_index')

    def __init__(
        self,
        kind: str,
        func: Callable,
        initial: Any = NOTSET,
        with_index: bool = False,
    ):
        if not isinstance(kind, str):
            raise TypeError(f"consumer kind should be a str but got {type(kind).__name__}")
        kind = _ALIASES.get(kind, kind)
        if kind not in _KINDS:
            raise TypeError(f"unknown consumer kind {kind!r}; expecting one of {_KINDS}")
        if not callable(func):
            raise TypeError(
                f"consumer func should be callable but got {type(func).__name__}"
            )
        if initial is not NOTSET and kind != 'reduce':
            raise TypeError(f"`initial` is only used by 'reduce', not {kind!r}")
        self.kind = kind
        self.func = func
        self.initial = initial
        self.with_index = bool(with_index)

    @classmethod
    def from_mapping(cls, desc: Mapping) -> Consumer:
        if 'kind' not in desc:
            raise TypeError('consumer is missing its kind')
        func = desc.get('func', desc.get('fn'))
        if func is None:
            raise TypeError('consumer is missing its func')
        return cls(
            desc['kind'],
            func,
            desc.get('initial', NOTSET),
            with_index=desc.get('with_index', False),
        )

    def __repr__(self):
        return f"Consumer({self.kind!r}, {self.func!r})"


class _State:
    # Running result of one consumer.
    __slots__ = ('consumer', 'result')

    def __init__(self, consumer: Consumer):
        self.consumer = consumer
        if consumer.kind in ('map', 'filter'):
            self.result = []
        elif consumer.kind == 'reduce':
            self.result = consumer.initial
        else:
            self.result = None

    def feed(self, x, idx: int):
        c = self.consumer
        args = (x, idx) if c.with_index else (x,)
        match c.kind:
            case 'map':
                self.result.append(c.func(*args))
            case 'filter':
                if c.func(*args):
                    self.result.append(x)
            case 'reduce':
                if self.result is NOTSET:
                    self.result = x
                else:
                    self.result = c.func(self.result, *args)
            case 'for_each':
                c.func(*args)

    def finish(self):
        if self.result is NOTSET:
            # 'reduce' over no element without an initial value.
            return None
        return self.result


def tee_consumers(items: Sequence, /, *consumers: Consumer | Mapping) -> list:
    """
    Apply several consumers to ``items``, each getting its own pass
    over the data through :func:`~lazyiter.tee`.

    Returns one result per consumer, in the order of ``consumers``:
    a list for ``'map'`` and ``'filter'``, the folded value for ``'reduce'``,
    and ``None`` for ``'for_each'``.

    >>> tee_consumers(
    ...     [1, 2, 3],
    ...     Consumer('map', lambda x: x * 2),
    ...     Consumer('filter', lambda x: x % 2 == 1),
    ...     {'kind': 'reduce', 'func': lambda acc, x: acc + x, 'initial': 0},
    ... )
    [[2, 4, 6], [1, 3], 6]

    The forks are advanced together, one element at a time, so the
    consumers see element ``i`` before any of them sees element ``i + 1``.
    """
    if not isinstance(items, (list, tuple)):
        raise TypeError(
            f"tee_consumers expects a list or tuple but got {type(items).__name__}"
        )
    if not consumers:
        raise TypeError('at least one consumer must be provided')
    cc = []
    for c in consumers:
        if isinstance(c, Consumer):
            cc.append(c)
        elif isinstance(c, Mapping):
            cc.append(Consumer.from_mapping(c))
        else:
            raise TypeError(
                f"each consumer should be a Consumer or a mapping but got {type(c).__name__}"
            )

    states = [_State(c) for c in cc]
    forks = tee(items, len(states))
    n = 0
    while True:
        zz = [f.pull() for f in forks]
        if zz[0] is DONE:
            break
        for state, z in zip(states, zz):
            state.feed(z.value, n)
        n += 1
    logger.debug('%d consumers fed %d elements', len(states), n)
    return [s.finish() for s in states]
