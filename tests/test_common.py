import functools
import pickle

import pytest

from lazyiter import (
    DONE,
    Done,
    Filter,
    Fulfilled,
    LazyIterator,
    Map,
    Reduce,
    Rejected,
    Value,
    tee,
)
from lazyiter._common import check_concurrency, check_count


def test_done():
    assert Done() is DONE
    assert pickle.loads(pickle.dumps(DONE)) is DONE
    assert repr(DONE) == 'DONE'
    assert Value(None) != DONE
    assert Value(None) == Value(None)


def test_settled():
    f = Fulfilled(3)
    r = Rejected(ValueError('a'))
    assert f.status == 'fulfilled'
    assert r.status == 'rejected'
    assert f == Fulfilled(3)
    assert r == Rejected(ValueError('a'))
    assert r != Rejected(ValueError('b'))
    assert r != Rejected(KeyError('a'))
    assert f != r


def test_ops():
    def shift(x, amount):
        return x + amount

    op = Map(shift, amount=3)
    assert op.func(1) == 4
    match op:
        case Filter(_):
            assert False
        case Map(func):
            assert func(2) == 5

    assert not Reduce(max).has_initial
    assert Reduce(max, None).has_initial
    with pytest.raises(TypeError):
        Filter(None)


def test_count_args():
    for check in (
        functools.partial(check_count, 'take'),
        lambda n: tee([1], n),
        lambda n: LazyIterator([1]).take(n),
    ):
        with pytest.raises(TypeError):
            check(True)
        with pytest.raises(TypeError):
            check(1.0)
        with pytest.raises(ValueError):
            check(-1)
    assert check_count('tee', 3) == 3
    with pytest.raises(TypeError):
        check_concurrency(False)
