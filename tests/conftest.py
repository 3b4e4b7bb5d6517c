import asyncio
import logging

import pytest


class Counted:
    # Iterator over `data` that records how many times it was pulled,
    # including the final pull that finds the end.
    def __init__(self, data, *, fail_at=None):
        self._data = list(data)
        self._idx = 0
        self._fail_at = fail_at
        self.pulls = 0

    def __iter__(self):
        return self

    def __next__(self):
        self.pulls += 1
        if self._fail_at is not None and self._idx == self._fail_at:
            self._idx += 1
            raise ValueError(self._fail_at)
        if self._idx >= len(self._data):
            raise StopIteration
        x = self._data[self._idx]
        self._idx += 1
        return x


class AsyncCounted(Counted):
    def __init__(self, data, *, fail_at=None, delay=0.0):
        super().__init__(data, fail_at=fail_at)
        self._delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    def __aiter__(self):
        return self

    async def __anext__(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
            try:
                return self.__next__()
            except StopIteration:
                raise StopAsyncIteration
        finally:
            self.in_flight -= 1


@pytest.fixture
def counted():
    return Counted


@pytest.fixture
def async_counted():
    return AsyncCounted


@pytest.fixture(autouse=True)
def _debug_logs(caplog):
    caplog.set_level(logging.DEBUG, logger='lazyiter')
