"""
Records persisted in the group tree.

Field names are snake_case in Python and camelCase on disk (the JSON files
are shared with the web client), so every model round-trips through aliases.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class NotificationPreference(str, Enum):
    SMS = "SMS"
    PUSH = "PUSH"


class PhoneNumber(_Record):
    e164: str
    verified: bool = False


class Member(_Record):
    id: str
    name: str
    notification_preference: Optional[NotificationPreference] = Field(
        default=None, alias="notificationPreference"
    )
    phone_number: Optional[PhoneNumber] = Field(default=None, alias="phoneNumber")

    @property
    def can_receive_sms(self) -> bool:
        return (
            self.notification_preference == NotificationPreference.SMS
            and self.phone_number is not None
            and self.phone_number.verified
        )


class Dimensions(_Record):
    width: int
    height: int


class ItemMetadata(_Record):
    item_id: str = Field(alias="itemId")
    post_id: Optional[str] = Field(default=None, alias="postId")
    uploader_id: str = Field(alias="uploaderId")
    upload_date: int = Field(alias="uploadDate")
    dimensions: Optional[Dimensions] = None
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    original_name: Optional[str] = Field(default=None, alias="originalName")
    size: Optional[int] = None
    order_index: Optional[int] = Field(default=None, alias="orderIndex")

    @property
    def effective_post_id(self) -> str:
        """Singleton items use their own id as post id."""
        return self.post_id or self.item_id

    @property
    def has_explicit_post(self) -> bool:
        return bool(self.post_id) and self.post_id != self.item_id


class Comment(_Record):
    user_id: str = Field(alias="userId")
    comment: str = ""
    timestamp: Optional[str] = None
    media: Optional[dict] = None


class Reaction(_Record):
    user_id: str = Field(alias="userId")
    reaction: str
    timestamp: Optional[str] = None
