"""
Notification records.

A notification is immutable once created. Its persisted shape is
``{itemId, type, user: {id, name}, content?}`` with ``content`` keyed by
``type``; the pydantic discriminated union below enforces that pairing.
"""

import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

# (itemId, type, actor id)
MatchKey = Tuple[str, str, str]


class NotificationType(str, Enum):
    UPLOAD = "upload"
    COMMENT = "comment"
    REACTION = "reaction"
    COMMENT_ON_YOUR_POST = "comment-on-your-post"
    COMMENT_ON_POST_YOU_COMMENTED_ON = "comment-on-post-you-commented-on"
    REACTION_ON_YOUR_COMMENT = "reaction-on-your-comment"
    MENTION = "mention"
    COMMENT_REACTION = "comment-reaction"


class QueueChannel(str, Enum):
    PUSH_PENDING = "push-pending"
    SMS_PENDING = "sms-pending"


class _Frozen(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Actor(_Frozen):
    id: str
    name: Optional[str] = None


class CommentContent(_Frozen):
    comment: str = ""
    comment_index: Optional[int] = Field(default=None, alias="commentIndex")


class ReactionContent(_Frozen):
    reaction: str


class CommentReactionContent(_Frozen):
    reaction: str
    comment_index: Optional[int] = Field(default=None, alias="commentIndex")


class _NotificationBase(_Frozen):
    item_id: str = Field(alias="itemId")
    actor: Actor = Field(alias="user")

    @property
    def match_key(self) -> MatchKey:
        return (self.item_id, str(self.type), self.actor.id)

    @property
    def comment_index(self) -> Optional[int]:
        return getattr(getattr(self, "content", None), "comment_index", None)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class UploadNotification(_NotificationBase):
    type: Literal["upload"] = "upload"


class CommentNotification(_NotificationBase):
    type: Literal[
        "comment",
        "comment-on-your-post",
        "comment-on-post-you-commented-on",
        "mention",
    ]
    content: CommentContent = Field(default_factory=CommentContent)


class ReactionNotification(_NotificationBase):
    type: Literal["reaction"] = "reaction"
    content: ReactionContent


class CommentReactionNotification(_NotificationBase):
    type: Literal["reaction-on-your-comment", "comment-reaction"]
    content: CommentReactionContent


Notification = Annotated[
    Union[
        UploadNotification,
        CommentNotification,
        ReactionNotification,
        CommentReactionNotification,
    ],
    Field(discriminator="type"),
]

_notification_adapter = TypeAdapter(Notification)


def parse_notification(raw: Dict[str, Any]) -> Notification:
    """Validate a persisted notification dict. Raises pydantic ValidationError."""
    return _notification_adapter.validate_python(raw)


def parse_notifications(raw_list: Any) -> List[Notification]:
    """Parse a persisted list, dropping entries that fail validation."""
    if not isinstance(raw_list, list):
        return []

    notifications = []
    for raw in raw_list:
        try:
            notifications.append(parse_notification(raw))
        except PydanticValidationError as e:
            logger.warning(f"Dropping malformed notification entry: {e}")
    return notifications


def build_notification(
    notification_type: Union[NotificationType, str],
    item_id: str,
    actor_id: str,
    actor_name: Optional[str] = None,
    content: Optional[Dict[str, Any]] = None,
) -> Notification:
    """Build a notification of the given type from loose event fields."""
    raw: Dict[str, Any] = {
        "itemId": item_id,
        "type": NotificationType(notification_type).value,
        "user": {"id": actor_id, "name": actor_name},
    }
    if content and raw["type"] != NotificationType.UPLOAD.value:
        raw["content"] = content
    return parse_notification(raw)
