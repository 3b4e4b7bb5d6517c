import operator

import pytest

from lazyiter import Consumer, tee_consumers


def test_tee_consumers():
    seen = []
    result = tee_consumers(
        [1, 2, 3, 4],
        Consumer('map', lambda x: x * 10),
        Consumer('filter', lambda x: x > 2),
        Consumer('reduce', operator.add, 100),
        Consumer('for_each', seen.append),
        Consumer('reduce', operator.mul),
    )
    assert result == [[10, 20, 30, 40], [3, 4], 110, None, 24]
    assert seen == [1, 2, 3, 4]


def test_tee_consumers_mapping():
    result = tee_consumers(
        (3, 1, 2),
        {'kind': 'map', 'fn': str},
        {'kind': 'reduce', 'func': max},
        {'kind': 'forEach', 'func': print},
    )
    assert result == [['3', '1', '2'], 3, None]


def test_tee_consumers_lockstep():
    log = []
    tee_consumers(
        [1, 2],
        Consumer('for_each', lambda x: log.append(('a', x))),
        Consumer('map', lambda x: log.append(('b', x))),
    )
    assert log == [('a', 1), ('b', 1), ('a', 2), ('b', 2)]


def test_tee_consumers_empty():
    assert tee_consumers(
        [],
        Consumer('map', str),
        Consumer('filter', bool),
        Consumer('reduce', operator.add),
        Consumer('reduce', operator.add, 0),
    ) == [[], [], None, 0]


def test_tee_consumers_error():
    def check(x):
        if x == 2:
            raise ValueError(x)
        return x

    with pytest.raises(ValueError):
        tee_consumers([1, 2, 3], Consumer('map', check))


def test_tee_consumers_args():
    with pytest.raises(TypeError):
        tee_consumers(iter([1, 2]), Consumer('map', str))
    with pytest.raises(TypeError):
        tee_consumers('abc', Consumer('map', str))
    with pytest.raises(TypeError):
        tee_consumers([1, 2])
    with pytest.raises(TypeError):
        tee_consumers([1, 2], {'func': str})
    with pytest.raises(TypeError):
        tee_consumers([1, 2], {'kind': 'map'})
    with pytest.raises(TypeError):
        tee_consumers([1, 2], {'kind': 'sort', 'func': sorted})
    with pytest.raises(TypeError):
        tee_consumers([1, 2], str)
    with pytest.raises(TypeError):
        Consumer('map', 'str')
    with pytest.raises(TypeError):
        Consumer('map', str, initial=0)


def test_tee_consumers_with_index():
    result = tee_consumers(
        ['a', 'b', 'c'],
        Consumer('map', lambda x, i: x * (i + 1), with_index=True),
        Consumer('filter', lambda x, i: i != 1, with_index=True),
        {
            'kind': 'reduce',
            'func': lambda acc, x, i: acc + [i],
            'initial': [],
            'with_index': True,
        },
        Consumer('reduce', lambda acc, x, i: acc + x + str(i), with_index=True),
    )
    assert result == [['a', 'bb', 'ccc'], ['a', 'c'], [0, 1, 2], 'ab1c2']
