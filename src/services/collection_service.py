"""
Shared clipboard collections.

``CollectionManager`` creates and reads collection records.
``CollectionRepository`` applies single-item mutations with an optimistic
WATCH/MULTI/EXEC cycle so that concurrent writers never overwrite each
other: a writer whose watched record changed gets ``ConflictError`` and
nothing is written. Neither class retries; retrying on conflict is left to
the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from database.base import TTL_MISSING, TTL_NO_EXPIRY, KeyValueStore, StoreTransaction
from database.exceptions import (
    CollectionNotFound,
    ConflictError,
    CorruptedCollection,
    ItemNotFound,
    StoreUnavailable,
)
from models.clipboarditem import ClipboardItem, NewClipboardItem, new_id, utc_now
from models.collection import (
    SharedClipCollection,
    collection_key,
    deserialize_collection,
    serialize_collection,
)
from services.config import DEFAULT_BASE_URL, DEFAULT_COLLECTION_TTL

logger = logging.getLogger(__name__)


def share_url(base_url: str, collection_id: str) -> str:
    return f"{base_url.rstrip('/')}/clip/{collection_id}"


class CollectionManager:

    def __init__(
        self,
        store: KeyValueStore,
        *,
        base_url: str = DEFAULT_BASE_URL,
        ttl_seconds: int = DEFAULT_COLLECTION_TTL,
        id_fn: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be a positive number of seconds")
        self.store = store
        self.base_url = base_url
        self.ttl_seconds = ttl_seconds
        self._id_fn = id_fn or new_id
        self._clock = clock or utc_now

    def create(self) -> Tuple[SharedClipCollection, str]:
        """
        Create an empty collection with a fresh id and the configured TTL.

        Returns:
            Tuple of the stored collection and its share URL

        Raises:
            StoreUnavailable: the record could not be written
        """
        collection = SharedClipCollection(id=self._id_fn(), items=[], createdAt=self._clock())
        written = self.store.set_with_expiry(
            collection.key, serialize_collection(collection), self.ttl_seconds)
        if not written:
            logger.error(f"Store refused to save new collection {collection.id}")
            raise StoreUnavailable("Failed to save new collection data.")

        logger.info(f"Created collection {collection.id} (ttl={self.ttl_seconds}s)")
        return collection, share_url(self.base_url, collection.id)

    def read(self, collection_id: str) -> SharedClipCollection:
        raw = self.store.get(collection_key(collection_id))
        if raw is None:
            raise CollectionNotFound(f"Collection {collection_id} not found")
        try:
            return deserialize_collection(raw)
        except CorruptedCollection:
            logger.error(f"Collection {collection_id} holds corrupted data")
            raise


class CollectionRepository:

    def __init__(
        self,
        store: KeyValueStore,
        *,
        id_fn: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self._id_fn = id_fn or new_id
        self._clock = clock or utc_now

    def add_item(self, collection_id: str, data: NewClipboardItem) -> ClipboardItem:
        """Prepend a new item; returns the item as committed."""
        key = collection_key(collection_id)
        with self.store.watch(key) as txn:
            collection = self._load_watched(txn, collection_id)
            item = data.build(clock=self._clock, id_fn=self._id_fn)
            self._commit(txn, collection_id, collection.with_item_prepended(item))

        logger.info(f"Added {item.type.value} item {item.id} to collection {collection_id}")
        return item

    def delete_item(self, collection_id: str, item_id: str) -> None:
        """
        Remove one item by id.

        Raises:
            ItemNotFound: no item with ``item_id``, including one already deleted
        """
        key = collection_key(collection_id)
        with self.store.watch(key) as txn:
            collection = self._load_watched(txn, collection_id)
            if collection.find_item(item_id) is None:
                txn.unwatch()
                raise ItemNotFound(
                    f"Item {item_id} not found in collection {collection_id}")
            self._commit(txn, collection_id, collection.without_item(item_id))

        logger.info(f"Deleted item {item_id} from collection {collection_id}")

    def _load_watched(self, txn: StoreTransaction, collection_id: str) -> SharedClipCollection:
        raw = txn.get(collection_key(collection_id))
        if raw is None:
            txn.unwatch()
            raise CollectionNotFound(f"Collection {collection_id} not found")
        try:
            return deserialize_collection(raw)
        except CorruptedCollection:
            txn.unwatch()
            logger.error(f"Collection {collection_id} holds corrupted data")
            raise

    def _commit(self, txn: StoreTransaction, collection_id: str,
                updated: SharedClipCollection) -> None:
        key = collection_key(collection_id)
        # keep the remaining lifetime to the millisecond, never reset or extend it
        remaining = txn.pttl(key)
        if remaining == TTL_MISSING or remaining == 0:
            txn.unwatch()
            raise CollectionNotFound(f"Collection {collection_id} expired during update")

        txn.multi()
        txn.queue_set(key, serialize_collection(updated))
        if remaining != TTL_NO_EXPIRY:
            txn.queue_pexpire(key, remaining)

        if not txn.execute():
            logger.warning(f"Concurrent update on collection {collection_id}, transaction aborted")
            raise ConflictError(
                "Conflict: Collection updated concurrently. Please retry.")
