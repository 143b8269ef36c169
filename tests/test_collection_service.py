import pytest

from database.base import TTL_NO_EXPIRY
from database.exceptions import (
    CollectionNotFound,
    ConflictError,
    CorruptedCollection,
    ItemNotFound,
    StoreUnavailable,
)
from models.clipboarditem import NewClipboardItem
from models.collection import SharedClipCollection, collection_key, serialize_collection
from services.collection_service import CollectionManager, CollectionRepository, share_url


def _text(content: str) -> NewClipboardItem:
    return NewClipboardItem(type="text", content=content)


def test_share_url():
    assert share_url("http://clip.test/", "abc") == "http://clip.test/clip/abc"


def test_create_then_read_returns_empty_collection(manager, store):
    created, url = manager.create()

    assert url == f"http://clip.test/clip/{created.id}"
    read = manager.read(created.id)
    assert read.id == created.id
    assert read.items == []
    assert store.ttl(collection_key(created.id)) == 604800


def test_create_uses_configured_ttl_and_id(store):
    manager = CollectionManager(store, ttl_seconds=60, id_fn=lambda: "abc")
    created, url = manager.create()
    assert created.id == "abc"
    assert url == "http://localhost:9002/clip/abc"
    assert store.ttl("clip:abc") == 60


def test_create_fails_when_store_refuses_write(store, monkeypatch):
    monkeypatch.setattr(store, "set_with_expiry", lambda *args: False)
    with pytest.raises(StoreUnavailable):
        CollectionManager(store).create()


def test_read_missing_collection(manager):
    with pytest.raises(CollectionNotFound):
        manager.read("missing")


def test_read_expired_collection(manager, clock):
    created, _ = manager.create()
    clock.advance(604800)
    with pytest.raises(CollectionNotFound):
        manager.read(created.id)


def test_read_corrupted_collection(manager, store):
    store.set("clip:bad", '{"id": "bad", "items": [{"trunc')
    with pytest.raises(CorruptedCollection):
        manager.read("bad")


def test_serial_adds_are_newest_first(repository, manager, collection):
    added = [repository.add_item(collection.id, _text(f"item {n}")) for n in range(5)]

    items = manager.read(collection.id).items
    assert [i.id for i in items] == [i.id for i in reversed(added)]
    assert len({i.id for i in items}) == 5


def test_add_item_returns_committed_item(repository, manager, collection):
    item = repository.add_item(
        collection.id, NewClipboardItem(type="html", content="hi", htmlContent="<i>hi</i>"))

    assert item.id
    assert item.htmlContent == "<i>hi</i>"
    assert manager.read(collection.id).items == [item]


def test_add_item_allows_duplicates(repository, manager, collection):
    repository.add_item(collection.id, _text("same"))
    repository.add_item(collection.id, _text("same"))
    assert [i.content for i in manager.read(collection.id).items] == ["same", "same"]


def test_add_item_to_missing_collection(repository):
    with pytest.raises(CollectionNotFound):
        repository.add_item("missing", _text("x"))


def test_add_item_to_corrupted_collection(repository, store):
    store.set_with_expiry("clip:bad", "garbage", 100)
    with pytest.raises(CorruptedCollection):
        repository.add_item("bad", _text("x"))
    assert store.get("clip:bad") == "garbage"


def test_delete_item(repository, manager, collection):
    first = repository.add_item(collection.id, _text("first"))
    second = repository.add_item(collection.id, _text("second"))

    repository.delete_item(collection.id, first.id)
    assert manager.read(collection.id).items == [second]


def test_delete_missing_item_is_never_a_silent_success(repository, manager, collection):
    item = repository.add_item(collection.id, _text("x"))

    with pytest.raises(ItemNotFound):
        repository.delete_item(collection.id, "no-such-item")

    repository.delete_item(collection.id, item.id)
    with pytest.raises(ItemNotFound):
        repository.delete_item(collection.id, item.id)


def test_delete_from_missing_collection(repository):
    with pytest.raises(CollectionNotFound):
        repository.delete_item("missing", "x")


def test_concurrent_adds_one_wins_one_conflicts(repository, manager, collection, store):
    # the inner add runs between the outer add's WATCH and EXEC
    inner_results = []
    store.before_execute.append(
        lambda: inner_results.append(repository.add_item(collection.id, _text("inner"))))

    with pytest.raises(ConflictError):
        repository.add_item(collection.id, _text("outer"))

    items = manager.read(collection.id).items
    assert [i.content for i in items] == ["inner"]
    assert items == inner_results


def test_concurrent_add_and_delete(repository, manager, collection, store):
    item = repository.add_item(collection.id, _text("keep me?"))
    store.before_execute.append(lambda: repository.add_item(collection.id, _text("racer")))

    with pytest.raises(ConflictError):
        repository.delete_item(collection.id, item.id)

    assert [i.content for i in manager.read(collection.id).items] == ["racer", "keep me?"]


def test_conflict_leaves_no_watch_behind(repository, manager, collection, store):
    store.before_execute.append(lambda: repository.add_item(collection.id, _text("inner")))
    with pytest.raises(ConflictError):
        repository.add_item(collection.id, _text("outer"))

    # a retry from scratch succeeds
    repository.add_item(collection.id, _text("retry"))
    assert [i.content for i in manager.read(collection.id).items] == ["retry", "inner"]


def test_mutation_never_extends_ttl(repository, collection, store, clock):
    key = collection_key(collection.id)
    clock.advance(1000.25)
    before = store.ttl(key)

    repository.add_item(collection.id, _text("x"))
    assert store.ttl(key) <= before

    item = repository.add_item(collection.id, _text("y"))
    repository.delete_item(collection.id, item.id)
    assert store.ttl(key) <= before
    assert store.ttl(key) > 0


def test_sub_second_ttl_is_kept_exactly(repository, collection, store, clock):
    key = collection_key(collection.id)
    clock.advance(604800 - 0.5)
    before = store.pttl(key)
    assert before == 500

    repository.add_item(collection.id, _text("last minute"))
    after = store.pttl(key)
    assert 0 < after <= before
    assert store.ttl(key) != TTL_NO_EXPIRY

    clock.advance(0.5)
    assert store.get(key) is None


def test_mutation_keeps_millisecond_ttl(repository, collection, store, clock):
    key = collection_key(collection.id)
    clock.advance(10.25)
    before = store.pttl(key)

    repository.add_item(collection.id, _text("x"))
    assert store.pttl(key) == before


def test_mutation_with_no_lifetime_left_is_not_found(repository, collection, store, clock):
    key = collection_key(collection.id)
    clock.advance(604800 - 0.0005)
    assert store.pttl(key) == 0
    stored = store.get(key)

    with pytest.raises(CollectionNotFound):
        repository.add_item(collection.id, _text("too late"))
    assert store.get(key) == stored
    assert store.pttl(key) == 0


def test_collection_vanishing_before_ttl_read_is_not_found(store, collection):
    class VanishingStore(type(store)):
        """Deletes the watched key right before the repository reads its TTL."""

        def _begin(self, key):
            txn = super()._begin(key)
            read_pttl = txn.pttl

            def pttl(k):
                self.delete(k)
                return read_pttl(k)

            txn.pttl = pttl
            return txn

    vanishing = VanishingStore()
    vanishing.set_with_expiry(collection.key, serialize_collection(collection), 100)

    with pytest.raises(CollectionNotFound):
        CollectionRepository(vanishing).add_item(collection.id, _text("x"))
    assert vanishing.get(collection.key) is None


def test_collection_without_ttl_stays_without_ttl(repository, store):
    record = SharedClipCollection(id="forever")
    store.set(record.key, serialize_collection(record))

    repository.add_item("forever", _text("x"))
    assert store.ttl("clip:forever") == TTL_NO_EXPIRY


def test_store_failure_propagates(store, collection):
    class BrokenStore(type(store)):
        def _begin(self, key):
            raise StoreUnavailable("down")

    repository = CollectionRepository(BrokenStore())
    with pytest.raises(StoreUnavailable):
        repository.add_item(collection.id, _text("x"))


@pytest.mark.parametrize("ttl", [0, -5])
def test_manager_rejects_non_positive_ttl(store, ttl):
    with pytest.raises(ValueError, match="ttl_seconds"):
        CollectionManager(store, ttl_seconds=ttl)
