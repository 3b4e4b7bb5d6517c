from __future__ import annotations

from numbers import Integral
from typing import Generic, Literal, TypeVar, Union

NOTSET = object()

DEFAULT_CONCURRENCY = 1

Elem = TypeVar('Elem')


def isiterable(x):
    try:
        iter(x)
        return True
    except (TypeError, AttributeError):
        return False


def isasynciterable(x):
    try:
        aiter(x)
        return True
    except (TypeError, AttributeError):
        return False


class Done:
    """
    The "no more elements" outcome of a pull.

    There is a single instance, :data:`DONE`. Use ``result is DONE``
    to test for it; a ``None`` value coming out of a stream is a :class:`Value`.
    """

    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'DONE'

    def __reduce__(self):
        return (Done, ())


DONE = Done()


class Value(Generic[Elem]):
    """One element produced by a pull."""

    __slots__ = ('value',)
    __match_args__ = ('value',)

    def __init__(self, value: Elem, /):
        self.value = value

    def __eq__(self, other):
        if isinstance(other, Value):
            return self.value == other.value
        return NotImplemented

    def __hash__(self):
        return hash((Value, self.value))

    def __repr__(self):
        return f'Value({self.value!r})'


PullResult = Union[Value[Elem], Done]


class Fulfilled(Generic[Elem]):
    __slots__ = ('value',)
    __match_args__ = ('value',)

    status: Literal['fulfilled'] = 'fulfilled'

    def __init__(self, value: Elem, /):
        self.value = value

    def __eq__(self, other):
        if isinstance(other, Fulfilled):
            return self.value == other.value
        return NotImplemented

    def __hash__(self):
        return hash((Fulfilled, self.value))

    def __repr__(self):
        return f'Fulfilled({self.value!r})'


class Rejected:
    __slots__ = ('reason',)
    __match_args__ = ('reason',)

    status: Literal['rejected'] = 'rejected'

    def __init__(self, reason: BaseException, /):
        self.reason = reason

    def __eq__(self, other):
        # Exceptions don't define value equality, so compare type and args.
        if isinstance(other, Rejected):
            return type(self.reason) is type(other.reason) and (
                self.reason.args == other.reason.args
            )
        return NotImplemented

    def __hash__(self):
        return hash((Rejected, type(self.reason), self.reason.args))

    def __repr__(self):
        return f'Rejected({self.reason!r})'


Settled = Union[Fulfilled[Elem], Rejected]


def check_count(name: str, n) -> int:
    # `bool` is a subclass of `int` but `take(True)` is almost certainly a bug.
    if isinstance(n, bool) or not isinstance(n, Integral):
        raise TypeError(f"{name} expects an integer but got {type(n).__name__}")
    if n < 0:
        raise ValueError(f"{name} expects a non-negative integer but got {n}")
    return int(n)


def check_concurrency(concurrency) -> int:
    if isinstance(concurrency, bool) or not isinstance(concurrency, Integral):
        raise TypeError(
            f"`concurrency` should be an integer but got {type(concurrency).__name__}"
        )
    if concurrency < 1:
        raise ValueError(f"`concurrency` should be >= 1 but got {concurrency}")
    return int(concurrency)
