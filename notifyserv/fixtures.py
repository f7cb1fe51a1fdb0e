"""
Test doubles for driving a session without a network or a clock.
"""

import pytest

from . import connection
from . import schedule
from .client import Reactor


class FakeTransport:
    """
    Stands in for a connected Transport. Data queued with ``feed`` (or an
    exception queued with ``fail``) is returned by ``read``; everything
    written is kept as text lines in ``lines``.
    """

    def __init__(self):
        self.socket = object()
        self.incoming = []
        self.written = []
        self.closed = False

    def feed(self, data):
        if isinstance(data, str):
            data = data.encode('utf-8')
        self.incoming.append(data)

    def fail(self, exc):
        self.incoming.append(exc)

    def read(self):
        if not self.incoming:
            return b''
        item = self.incoming.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def write(self, data):
        if self.closed:
            raise connection.WriteError("Transport is closed")
        self.written.append(data)

    def close(self):
        self.closed = True
        self.socket = None

    @property
    def lines(self):
        return [
            line
            for chunk in self.written
            for line in chunk.decode('utf-8').split('\r\n')
            if line
        ]


class FakeFactory:
    """
    A connect factory handing out FakeTransports. Queue a ConnectError with
    ``refuse`` to make the next attempt fail.
    """

    def __init__(self):
        self.transports = []
        self.attempts = []
        self.failures = []

    def refuse(self, exc=None):
        self.failures.append(exc or connection.ConnectRefused("Connection refused"))

    def __call__(self, server_address):
        self.attempts.append(server_address)
        if self.failures:
            raise self.failures.pop(0)
        transport = FakeTransport()
        self.transports.append(transport)
        return transport

    @property
    def transport(self):
        "the most recent transport"
        return self.transports[-1]


class ManualScheduler(schedule.IScheduler):
    """
    A scheduler on a simulated clock that only moves when told to.
    """

    def __init__(self):
        self.now = 0
        self.queue = []

    def execute_every(self, period, func):
        self.queue.append([self.now + period, period, func])

    def execute_after(self, delay, func):
        self.queue.append([self.now + delay, None, func])

    def run_pending(self):
        due = [item for item in self.queue if item[0] <= self.now]
        for item in due:
            when, period, func = item
            if period is None:
                self.queue.remove(item)
            else:
                item[0] = when + period
            func()

    def advance(self, seconds):
        """Move the clock forward, running work as it comes due."""
        target = self.now + seconds
        while True:
            upcoming = [item[0] for item in self.queue if item[0] <= target]
            if not upcoming:
                break
            self.now = max(self.now, min(upcoming))
            self.run_pending()
        self.now = target


class ManualReactor(Reactor):
    scheduler_class = ManualScheduler


@pytest.fixture
def reactor():
    return ManualReactor()


@pytest.fixture
def factory():
    return FakeFactory()
