import json

import pytest

from connection import Connection
from rate_limiter import RateLimiter
from registry import RoomRegistry
from relay import MessageRouter


class FakeConnection(Connection):
    """In-memory transport that records what the relay sends."""

    def __init__(self, name: str = None, open: bool = True, fail_send: bool = False, answers_ping: bool = True):
        super().__init__(connection_id=name)
        self.open = open
        self.fail_send = fail_send
        self.answers_ping = answers_ping
        self.sent = []
        self.pings = 0
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self.open and not self.closed

    async def send(self, text: str):
        if self.fail_send:
            raise ConnectionError("peer went away")
        self.sent.append(text)

    async def close(self):
        self.closed = True

    async def ping(self):
        self.pings += 1
        if self.answers_ping:
            self.mark_alive()

    @property
    def received(self):
        return [json.loads(text) for text in self.sent]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(max_messages=50, window_seconds=10, clock=clock)


@pytest.fixture
def router(registry, rate_limiter):
    return MessageRouter(registry, rate_limiter)


@pytest.fixture
def make_connection():
    def _make(name=None, **kwargs):
        return FakeConnection(name, **kwargs)
    return _make
