from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator
from ulid import ULID


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ULID())


class ItemType(str, Enum):
    TEXT = "text"
    URL = "url"
    HTML = "html"


def _check_html_content(item_type: ItemType, html_content: Optional[str]) -> None:
    if item_type == ItemType.HTML and html_content is None:
        raise ValueError("htmlContent is required when type is 'html'")
    if item_type != ItemType.HTML and html_content is not None:
        raise ValueError("htmlContent is only allowed when type is 'html'")


class NewClipboardItem(BaseModel):
    """Request body for adding an item; id and createdAt are assigned server-side."""
    model_config = ConfigDict(extra="ignore")

    type: ItemType
    content: StrictStr
    htmlContent: Optional[StrictStr] = None

    @model_validator(mode="after")
    def _html_content_matches_type(self) -> "NewClipboardItem":
        _check_html_content(self.type, self.htmlContent)
        return self

    def build(self, clock=utc_now, id_fn=new_id) -> "ClipboardItem":
        return ClipboardItem(
            id=id_fn(),
            type=self.type,
            content=self.content,
            htmlContent=self.htmlContent,
            createdAt=clock(),
        )


class ClipboardItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: ItemType
    content: str
    htmlContent: Optional[str] = None
    createdAt: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _html_content_matches_type(self) -> "ClipboardItem":
        _check_html_content(self.type, self.htmlContent)
        return self

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)
