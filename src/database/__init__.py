"""
Storage package for ClipShare.

Provides the key-value store interface and its redis and in-memory backends.
"""

from database.base import TTL_MISSING, TTL_NO_EXPIRY, KeyValueStore, StoreTransaction
from database.memory_store import MemoryStore
from database.redis_store import RedisStore

__all__ = [
    'KeyValueStore',
    'StoreTransaction',
    'MemoryStore',
    'RedisStore',
    'TTL_MISSING',
    'TTL_NO_EXPIRY',
]
