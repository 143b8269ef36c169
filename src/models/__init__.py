from models.clipboarditem import ClipboardItem, ItemType, NewClipboardItem
from models.collection import (
    SharedClipCollection,
    collection_key,
    deserialize_collection,
    serialize_collection,
)

__all__ = [
    'ClipboardItem',
    'ItemType',
    'NewClipboardItem',
    'SharedClipCollection',
    'collection_key',
    'deserialize_collection',
    'serialize_collection',
]
