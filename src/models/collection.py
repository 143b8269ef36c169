"""
Shared clipboard collection record and its storage codec.

A collection is stored as one JSON blob under ``clip:<id>``:
``{"id": ..., "items": [...], "createdAt": "<ISO-8601>"}``. Items are kept
newest-first; writers always prepend.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from database.exceptions import CorruptedCollection
from models.clipboarditem import ClipboardItem, utc_now

KEY_PREFIX = "clip:"


def collection_key(collection_id: str) -> str:
    return f"{KEY_PREFIX}{collection_id}"


class SharedClipCollection(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    items: List[ClipboardItem] = Field(default_factory=list)
    createdAt: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> str:
        return collection_key(self.id)

    def find_item(self, item_id: str) -> Optional[ClipboardItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def with_item_prepended(self, item: ClipboardItem) -> "SharedClipCollection":
        return self.model_copy(update={"items": [item, *self.items]})

    def without_item(self, item_id: str) -> "SharedClipCollection":
        return self.model_copy(update={"items": [i for i in self.items if i.id != item_id]})

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def serialize_collection(collection: SharedClipCollection) -> str:
    return collection.model_dump_json(exclude_none=True)


def deserialize_collection(raw: Union[bytes, str]) -> SharedClipCollection:
    """
    Decode a stored record.

    Raises:
        CorruptedCollection: malformed JSON, truncated data, invalid UTF-8 or
            a record that does not match the collection schema
    """
    try:
        return SharedClipCollection.model_validate_json(raw)
    except ValueError as e:
        raise CorruptedCollection(f"Collection record could not be decoded: {e}") from e
