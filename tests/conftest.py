"""Shared test fixtures for tttmirror."""

import pytest

from tttmirror.config import ClientConfig
from tttmirror.core.keys import Identity
from tttmirror.core.ledger import InMemoryLedger

T0 = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return InMemoryLedger(clock=clock)


@pytest.fixture
def alice():
    return Identity.generate()


@pytest.fixture
def bob():
    return Identity.generate()


@pytest.fixture
def slow_config():
    """Keep-alive loop that never ticks during a test."""
    return ClientConfig(keep_alive_interval_ms=60_000)


@pytest.fixture
def fast_config():
    """Keep-alive loop ticking every 10 ms."""
    return ClientConfig(keep_alive_interval_ms=10)
