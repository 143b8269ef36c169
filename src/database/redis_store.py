"""
Redis-backed key-value store for ClipShare.

Wraps a redis-py client and exposes only the commands the collection
services need. Optimistic transactions use a pipeline in WATCH mode.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
from redis.exceptions import RedisError, WatchError

from database.base import KeyValueStore, StoreTransaction, StoreValue
from database.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except WatchError:
        raise
    except RedisError as e:
        logger.error(f"Redis {operation} failed: {e}")
        raise StoreUnavailable(f"Redis {operation} failed: {e}") from e


class RedisTransaction(StoreTransaction):

    def __init__(self, pipeline: "redis.client.Pipeline", key: str):
        self._pipe = pipeline
        self._key = key
        self._released = False
        try:
            with _translate_errors("WATCH"):
                self._pipe.watch(key)
        except StoreUnavailable:
            self.release()
            raise

    def get(self, key: str) -> Optional[StoreValue]:
        with _translate_errors("GET"):
            return self._pipe.get(key)

    def ttl(self, key: str) -> int:
        with _translate_errors("TTL"):
            return int(self._pipe.ttl(key))

    def pttl(self, key: str) -> int:
        with _translate_errors("PTTL"):
            return int(self._pipe.pttl(key))

    def multi(self) -> None:
        self._pipe.multi()

    def queue_set(self, key: str, value: StoreValue) -> None:
        self._pipe.set(key, value)

    def queue_expire(self, key: str, ttl_seconds: int) -> None:
        self._pipe.expire(key, ttl_seconds)

    def queue_pexpire(self, key: str, ttl_millis: int) -> None:
        self._pipe.pexpire(key, ttl_millis)

    def execute(self) -> bool:
        try:
            with _translate_errors("EXEC"):
                self._pipe.execute()
        except WatchError:
            logger.debug(f"Transaction on {self._key} aborted by a concurrent write")
            return False
        return True

    def unwatch(self) -> None:
        with _translate_errors("UNWATCH"):
            self._pipe.unwatch()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._pipe.reset()
        except RedisError as e:
            # reset() disconnects the connection on failure, watch state dies with it
            logger.warning(f"Failed to reset pipeline for {self._key}: {e}")


class RedisStore(KeyValueStore):
    """
    Key-value store backed by a redis server.

    Args:
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password (if required)
        decode_responses: Decode responses to strings
        socket_timeout: Socket timeout in seconds
        ssl: Use TLS (``rediss://``)
        client: Pre-built redis client; connection arguments are ignored
    """

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0,
                 password: Optional[str] = None, decode_responses: bool = True,
                 socket_timeout: Optional[float] = None, ssl: bool = False,
                 client: Optional[redis.Redis] = None):
        self.client = client if client is not None else redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=decode_responses,
            socket_timeout=socket_timeout,
            ssl=ssl,
        )

    def get(self, key: str) -> Optional[StoreValue]:
        with _translate_errors("GET"):
            return self.client.get(key)

    def set(self, key: str, value: StoreValue) -> bool:
        with _translate_errors("SET"):
            return bool(self.client.set(key, value))

    def set_with_expiry(self, key: str, value: StoreValue, ttl_seconds: int) -> bool:
        with _translate_errors("SET"):
            return bool(self.client.set(key, value, ex=ttl_seconds))

    def ttl(self, key: str) -> int:
        with _translate_errors("TTL"):
            return int(self.client.ttl(key))

    def pttl(self, key: str) -> int:
        with _translate_errors("PTTL"):
            return int(self.client.pttl(key))

    def delete(self, key: str) -> bool:
        with _translate_errors("DEL"):
            return bool(self.client.delete(key))

    def ping(self) -> bool:
        with _translate_errors("PING"):
            return bool(self.client.ping())

    def _begin(self, key: str) -> RedisTransaction:
        return RedisTransaction(self.client.pipeline(transaction=True), key)

    def close(self):
        self.client.close()
