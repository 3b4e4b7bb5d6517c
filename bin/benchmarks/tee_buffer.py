import random
import time

from lazyiter import LazyIterator, tee

NX = 1_000_000


def data():
    for i in range(NX):
        yield i


def lockstep(n):
    forks = tee(data(), n)
    group = forks[0]._group
    peak = 0
    t0 = time.perf_counter()
    for _ in range(NX):
        for f in forks:
            next(f)
        peak = max(peak, group.buffer_size)
    t1 = time.perf_counter()

    print('forks:', n, 'time elapsed:', t1 - t0, 'peak buffer:', peak)
    assert peak <= 1


def drifting(n, lag):
    # The forks advance at random, but none gets more than `lag` ahead of the slowest.
    forks = tee(data(), n)
    group = forks[0]._group
    pos = [0] * n
    peak = 0
    t0 = time.perf_counter()
    while min(pos) < NX:
        i = random.randrange(n)
        if pos[i] < NX and pos[i] - min(pos) < lag:
            next(forks[i])
            pos[i] += 1
        peak = max(peak, group.buffer_size)
    t1 = time.perf_counter()

    print('forks:', n, 'lag:', lag, 'time elapsed:', t1 - t0, 'peak buffer:', peak)
    assert peak <= lag


def piped(n):
    t0 = time.perf_counter()
    forks = LazyIterator(data()).tee(n)
    results = [f.map(lambda x: x + 1).reduce(max).execute() for f in forks]
    t1 = time.perf_counter()

    print('forks:', n, 'time elapsed:', t1 - t0)
    assert results == [NX] * n


print('lockstep')
lockstep(2)
lockstep(10)

print('')
print('drifting')
drifting(3, 100)

print('')
print('piped')
piped(3)
# The forks are drained one after another, so the buffer peaks at NX.
