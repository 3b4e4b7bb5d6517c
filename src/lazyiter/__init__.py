"""
The package ``lazyiter`` provides lazy, chainable processing of data streams, including

1. :class:`LazyIterator`, a single-pass pipeline of ``map``, ``filter`` and ``for_each``
   operations over an iterator, with terminal methods such as ``collect``, ``take``,
   ``drop_while``, ``reduce``.
2. :class:`LazyAsyncIterator`, the async counterpart, which accepts both sync and
   async operations and can process several elements concurrently. Each terminal
   method has a "settled" variant that reports failures per element instead of
   raising.
3. :func:`tee` and :func:`async_tee`, which fork a stream that can be walked only once
   into several independent iterators, holding in memory only the elements
   between the fastest and the slowest fork.

To install, do

::

   python3 -m pip install lazyiter
"""

__version__ = '0.3.0'


from ._common import (
    DEFAULT_CONCURRENCY,
    DONE,
    NOTSET,
    Done,
    Fulfilled,
    PullResult,
    Rejected,
    Settled,
    Value,
)
from ._fanout import Consumer, tee_consumers
from ._lazy_async_iterator import AsyncReduceExecutor, LazyAsyncIterator
from ._lazy_iterator import LazyIterator, ReduceExecutor
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
from ._tee import AsyncFork, AsyncTeeGroup, Fork, TeeGroup, async_tee, tee

__all__ = [
    'DEFAULT_CONCURRENCY',
    'DONE',
    'NOTSET',
    'Done',
    'Fulfilled',
    'PullResult',
    'Rejected',
    'Settled',
    'Value',
    'Consumer',
    'tee_consumers',
    'AsyncReduceExecutor',
    'LazyAsyncIterator',
    'LazyIterator',
    'ReduceExecutor',
    'Filter',
    'FilterAsync',
    'ForEach',
    'ForEachAsync',
    'Map',
    'MapAsync',
    'Op',
    'Reduce',
    'AsyncFork',
    'AsyncTeeGroup',
    'Fork',
    'TeeGroup',
    'async_tee',
    'tee',
]
