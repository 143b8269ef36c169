import time
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from database.memory_store import MemoryStore
from services.collection_service import CollectionManager, CollectionRepository
from services.config import AppConfig, RedisConfig


class FakeClock:
    """Monotonic clock for the store, advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RacingStore(MemoryStore):
    """MemoryStore that runs queued callbacks right before a transaction commits.

    Lets a test slip a competing write between another writer's WATCH and EXEC.
    """

    def __init__(self, clock=time.monotonic):
        super().__init__(clock=clock)
        self.before_execute = []

    def _begin(self, key):
        txn = super()._begin(key)
        commit = txn.execute

        def execute():
            while self.before_execute:
                self.before_execute.pop(0)()
            return commit()

        txn.execute = execute
        return txn


class SteppingDatetime:
    """Wall clock for item timestamps, one second per call."""

    def __init__(self):
        self.current = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return RacingStore(clock=clock)


@pytest.fixture
def manager(store):
    return CollectionManager(store, base_url="http://clip.test")


@pytest.fixture
def repository(store):
    return CollectionRepository(store, clock=SteppingDatetime())


@pytest.fixture
def collection(manager):
    created, _ = manager.create()
    return created


@pytest.fixture
def client(store):
    config = AppConfig(base_url="http://clip.test/", redis=RedisConfig(in_memory=True))
    return TestClient(create_app(store=store, config=config))
