from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional, Union

StoreValue = Union[bytes, str]

# Sentinels returned by ttl() and pttl(), same meaning as the redis TTL command.
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


class StoreTransaction(ABC):
    """
    Optimistic transaction scope bound to one watched key.

    Reads (``get``/``ttl``) run immediately. After ``multi()`` writes are only
    queued, and ``execute()`` applies them atomically unless the watched key
    was modified by someone else since the watch began.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[StoreValue]:
        pass

    @abstractmethod
    def ttl(self, key: str) -> int:
        pass

    @abstractmethod
    def pttl(self, key: str) -> int:
        pass

    @abstractmethod
    def multi(self) -> None:
        pass

    @abstractmethod
    def queue_set(self, key: str, value: StoreValue) -> None:
        pass

    @abstractmethod
    def queue_expire(self, key: str, ttl_seconds: int) -> None:
        pass

    @abstractmethod
    def queue_pexpire(self, key: str, ttl_millis: int) -> None:
        pass

    @abstractmethod
    def execute(self) -> bool:
        """Return True when committed, False when aborted by a concurrent write."""

    @abstractmethod
    def unwatch(self) -> None:
        pass

    @abstractmethod
    def release(self) -> None:
        """Drop watch state and return any held connection. Safe to call twice."""


class KeyValueStore(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[StoreValue]:
        pass

    @abstractmethod
    def set(self, key: str, value: StoreValue) -> bool:
        pass

    @abstractmethod
    def set_with_expiry(self, key: str, value: StoreValue, ttl_seconds: int) -> bool:
        pass

    @abstractmethod
    def ttl(self, key: str) -> int:
        pass

    @abstractmethod
    def pttl(self, key: str) -> int:
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    def ping(self) -> bool:
        pass

    @abstractmethod
    def _begin(self, key: str) -> StoreTransaction:
        pass

    @contextmanager
    def watch(self, key: str) -> Iterator[StoreTransaction]:
        """Watch ``key`` for the duration of the block; always released on exit."""
        txn = self._begin(key)
        try:
            yield txn
        finally:
            txn.release()

    def close(self) -> None:
        pass
