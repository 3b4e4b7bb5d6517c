import asyncio
import time

from lazyiter import LazyAsyncIterator

NX = 100


async def inc(x):
    await asyncio.sleep(0.1)
    return x + 1


async def is_even(x):
    await asyncio.sleep(0.01)
    return x % 2 == 0


def data():
    for i in range(NX):
        yield i


async def plain():
    result = []
    t0 = time.perf_counter()
    for x in data():
        result.append(await inc(x))
    t1 = time.perf_counter()

    print('time elapsed:', t1 - t0)
    assert result == list(range(1, NX+1))


async def piped(concurrency):
    t0 = time.perf_counter()
    result = await LazyAsyncIterator(data()).map_async(inc).collect(concurrency)
    t1 = time.perf_counter()

    print('concurrency:', concurrency, 'time elapsed:', t1 - t0)
    assert result == list(range(1, NX+1))


async def settled(concurrency):
    t0 = time.perf_counter()
    result = await (
        LazyAsyncIterator(data())
        .map_async(inc)
        .filter_async(is_even)
        .collect_settled(concurrency)
    )
    t1 = time.perf_counter()

    print('concurrency:', concurrency, 'time elapsed:', t1 - t0)
    assert len(result) == NX // 2


print('plain')
asyncio.run(plain())
# about 10 seconds

for c in (1, 10, 100):
    print('')
    print('piped')
    asyncio.run(piped(c))
# about 10, 1, 0.1 seconds

for c in (1, 10, 100):
    print('')
    print('settled')
    asyncio.run(settled(c))
