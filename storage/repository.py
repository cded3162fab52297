"""
Group repository - typed access to the flat-file group tree.

Layout under ``groups/<groupId>/``:

    users/identities.json            member list
    users/unread/<userId>.json       unread item/post ids
    metadata/<itemId>.json           item metadata
    comments/<itemId>.json           comments on an item/post
    reactions/<itemId>.json          reactions on an item/post
    comment-reactions/<itemId>-<n>.json
    media/<itemId>.<ext>             media files
    thumbnails/<itemId>.jpg
"""

import logging
import os
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import NotFoundError
from storage.models import Comment, ItemMetadata, Member, Reaction
from storage.store import KeyValueStore

logger = logging.getLogger(__name__)

GROUPS_DIR = "groups"
IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png"]
VIDEO_EXTENSIONS = [".mp4", ".mov", ".webm", ".avi", ".mkv"]


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


class GroupRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    # ============ Members ============

    def get_members(self, group_id: str) -> List[Member]:
        """Load the member directory for a group."""
        key = (GROUPS_DIR, group_id, "users", "identities.json")
        if not self.store.exists(*key):
            raise NotFoundError(f"Group {group_id} not found")

        members = []
        for raw in _as_list(self.store.read_json(*key, default=[])):
            try:
                members.append(Member.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed member record in group {group_id}: {e}")
        return members

    def save_members(self, group_id: str, members: Iterable[Member]) -> None:
        self.store.write_json(
            GROUPS_DIR, group_id, "users", "identities.json",
            value=[m.to_json() for m in members],
        )

    @staticmethod
    def get_member(members: List[Member], user_id: str) -> Optional[Member]:
        for member in members:
            if member.id == user_id:
                return member
        return None

    def get_username(self, group_id: str, user_id: str) -> Optional[str]:
        member = self.get_member(self.get_members(group_id), user_id)
        return member.name if member else None

    # ============ Item metadata ============

    def get_metadata(self, group_id: str, item_id: str) -> Optional[ItemMetadata]:
        raw = self.store.read_json(GROUPS_DIR, group_id, "metadata", f"{item_id}.json")
        if not raw:
            return None
        try:
            return ItemMetadata.model_validate(raw)
        except PydanticValidationError as e:
            logger.error(f"Invalid metadata for item {item_id} in group {group_id}: {e}")
            return None

    def save_metadata(self, group_id: str, metadata: ItemMetadata) -> None:
        self.store.write_json(
            GROUPS_DIR, group_id, "metadata", f"{metadata.item_id}.json",
            value=metadata.to_json(),
        )

    def delete_metadata(self, group_id: str, item_id: str) -> bool:
        return self.store.delete(GROUPS_DIR, group_id, "metadata", f"{item_id}.json")

    def list_metadata(self, group_id: str) -> List[ItemMetadata]:
        items = []
        for name in self.store.list_keys(GROUPS_DIR, group_id, "metadata"):
            if not name.endswith(".json"):
                continue
            metadata = self.get_metadata(group_id, name[:-len(".json")])
            if metadata:
                items.append(metadata)
        return items

    # ============ Comments & reactions ============

    def get_comments(self, group_id: str, item_id: str) -> List[Comment]:
        raw = self.store.read_json(GROUPS_DIR, group_id, "comments", f"{item_id}.json", default=[])
        return [Comment.model_validate(c) for c in _as_list(raw)]

    def save_comments(self, group_id: str, item_id: str, comments: List[Comment]) -> None:
        self._save_list(("comments", f"{item_id}.json"), group_id, comments)

    def get_reactions(self, group_id: str, item_id: str) -> List[Reaction]:
        raw = self.store.read_json(GROUPS_DIR, group_id, "reactions", f"{item_id}.json", default=[])
        return [Reaction.model_validate(r) for r in _as_list(raw)]

    def save_reactions(self, group_id: str, item_id: str, reactions: List[Reaction]) -> None:
        self._save_list(("reactions", f"{item_id}.json"), group_id, reactions)

    def get_comment_reactions(self, group_id: str, item_id: str, comment_index: int) -> List[Reaction]:
        raw = self.store.read_json(
            GROUPS_DIR, group_id, "comment-reactions", f"{item_id}-{comment_index}.json", default=[]
        )
        return [Reaction.model_validate(r) for r in _as_list(raw)]

    def save_comment_reactions(
        self, group_id: str, item_id: str, comment_index: int, reactions: List[Reaction]
    ) -> None:
        self._save_list(("comment-reactions", f"{item_id}-{comment_index}.json"), group_id, reactions)

    def list_reaction_files(self, group_id: str) -> List[List[Reaction]]:
        result = []
        for name in self.store.list_keys(GROUPS_DIR, group_id, "reactions"):
            raw = self.store.read_json(GROUPS_DIR, group_id, "reactions", name, default=[])
            result.append([Reaction.model_validate(r) for r in _as_list(raw)])
        return result

    def list_comment_files(self, group_id: str) -> List[List[Comment]]:
        result = []
        for name in self.store.list_keys(GROUPS_DIR, group_id, "comments"):
            raw = self.store.read_json(GROUPS_DIR, group_id, "comments", name, default=[])
            result.append([Comment.model_validate(c) for c in _as_list(raw)])
        return result

    def delete_item_records(self, group_id: str, item_id: str) -> List[str]:
        """Delete reactions and comments stored under an id. Returns the kinds removed."""
        removed = []
        for kind in ("reactions", "comments"):
            if self.store.delete(GROUPS_DIR, group_id, kind, f"{item_id}.json"):
                removed.append(kind)
        return removed

    def _save_list(self, key: tuple, group_id: str, records: List[Any]) -> None:
        # An empty list leaves no file behind
        if not records:
            self.store.delete(GROUPS_DIR, group_id, *key)
            return
        self.store.write_json(GROUPS_DIR, group_id, *key, value=[r.to_json() for r in records])

    # ============ Unread lists ============

    def get_unread(self, group_id: str, user_id: str) -> List[str]:
        raw = self.store.read_json(GROUPS_DIR, group_id, "users", "unread", f"{user_id}.json", default=[])
        return _as_list(raw)

    def save_unread(self, group_id: str, user_id: str, item_ids: List[str]) -> None:
        self.store.write_json(GROUPS_DIR, group_id, "users", "unread", f"{user_id}.json", value=item_ids)

    def add_unread(self, group_id: str, item_id: str, uploader_id: str) -> List[str]:
        """Mark an item unread for every member except its uploader. Returns updated user ids."""
        updated = []
        for member in self.get_members(group_id):
            if member.id == uploader_id:
                continue
            unread = self.get_unread(group_id, member.id)
            if item_id not in unread:
                unread.append(item_id)
                self.save_unread(group_id, member.id, unread)
                updated.append(member.id)
        return updated

    def remove_unread(self, group_id: str, item_ids: Iterable[str]) -> int:
        """Drop ids from every member's unread list. Returns the number of lists changed."""
        doomed = set(item_ids)
        changed = 0
        for user_id in self.list_unread_users(group_id):
            unread = self.get_unread(group_id, user_id)
            kept = [i for i in unread if i not in doomed]
            if len(kept) != len(unread):
                self.save_unread(group_id, user_id, kept)
                changed += 1
        return changed

    def list_unread_users(self, group_id: str) -> List[str]:
        return [
            name[:-len(".json")]
            for name in self.store.list_keys(GROUPS_DIR, group_id, "users", "unread")
            if name.endswith(".json")
        ]

    # ============ Media files ============

    def media_path(self, group_id: str, filename: str) -> str:
        return self.store.path_for(GROUPS_DIR, group_id, "media", filename)

    def thumbnail_path(self, group_id: str, item_id: str) -> str:
        return self.store.path_for(GROUPS_DIR, group_id, "thumbnails", f"{item_id}.jpg")

    def find_media_file(self, group_id: str, item_id: str, folder: str = "media") -> Optional[str]:
        """Locate the media file for an item regardless of its extension."""
        for ext in IMAGE_EXTENSIONS + VIDEO_EXTENSIONS:
            path = self.store.path_for(GROUPS_DIR, group_id, folder, f"{item_id}{ext}")
            if os.path.isfile(path):
                return path
        return None

    def group_exists(self, group_id: str) -> bool:
        return self.store.exists(GROUPS_DIR, group_id)


def is_video_file(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in VIDEO_EXTENSIONS
