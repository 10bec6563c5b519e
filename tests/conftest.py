"""Shared fixtures: settings come from env, the store is in-process, the clock is manual."""
import os

os.environ.setdefault("TOKEN_SECRET", "test-secret-0123456789abcdef")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("TELEGRAM_BOT_USERNAME", "nightpass_bot")

import pytest

from nightpass.access.manager import AccessWindowManager
from nightpass.store.memory import InMemoryStore
from nightpass.utils.time import HOUR_MS


T0 = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def advance_hours(self, hours: float) -> None:
        self.now += int(hours * HOUR_MS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def access(store, clock):
    return AccessWindowManager(store, clock=clock)
