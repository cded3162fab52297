"""
Item services: the post feed, item deletion and group statistics.
"""

import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.exceptions import NotFoundError, PermissionDeniedError
from core.posts import FeedItem, Post, group_into_posts
from storage.repository import GroupRepository

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    item_id: str
    deleted: List[str] = field(default_factory=list)
    post_removed: bool = False


@dataclass
class GroupStats:
    user_count: int
    post_count: int
    total_reactions: int
    top_reactions: List[Dict[str, object]]
    total_comments: int


class ItemService:
    def __init__(self, repo: GroupRepository):
        self.repo = repo

    def list_posts(self, group_id: str, user_id: Optional[str] = None) -> List[Post]:
        """Posts for a group, newest first, with unread flags for ``user_id``."""
        members = self.repo.get_members(group_id)
        unread = set(self.repo.get_unread(group_id, user_id)) if user_id else set()

        feed = []
        for metadata in self.repo.list_metadata(group_id):
            feed.append(FeedItem(
                metadata=metadata,
                uploader=self.repo.get_member(members, metadata.uploader_id),
                is_unread=(
                    metadata.item_id in unread or metadata.effective_post_id in unread
                ),
            ))

        feed.sort(key=lambda i: i.metadata.upload_date, reverse=True)
        return group_into_posts(feed)

    def delete_item(self, group_id: str, item_id: str, owner_id: str) -> DeleteResult:
        """
        Delete an item and everything stored under its id.

        Post-level reactions and comments go too once the post has no items left.
        """
        # Accept a media filename as well as a bare id
        item_id = os.path.splitext(item_id)[0] if "." in item_id else item_id

        metadata = self.repo.get_metadata(group_id, item_id)
        if metadata is None:
            raise NotFoundError(f"Item {item_id} not found in group {group_id}")
        if metadata.uploader_id != owner_id:
            raise PermissionDeniedError("You can only delete items you uploaded")

        result = DeleteResult(item_id=item_id)
        post_id = metadata.effective_post_id

        media_path = self.repo.find_media_file(group_id, item_id)
        if media_path:
            os.remove(media_path)
            result.deleted.append("media")

        thumbnail_path = self.repo.thumbnail_path(group_id, item_id)
        if os.path.isfile(thumbnail_path):
            os.remove(thumbnail_path)
            result.deleted.append("thumbnail")

        if self.repo.delete_metadata(group_id, item_id):
            result.deleted.append("metadata")
        result.deleted.extend(self.repo.delete_item_records(group_id, item_id))

        has_other_items = False
        if post_id != item_id:
            has_other_items = any(
                m.effective_post_id == post_id for m in self.repo.list_metadata(group_id)
            )
            if not has_other_items:
                result.deleted.extend(
                    f"post-{kind}" for kind in self.repo.delete_item_records(group_id, post_id)
                )
                result.post_removed = True
        else:
            result.post_removed = True

        stale = [item_id] if has_other_items else [item_id, post_id]
        self.repo.remove_unread(group_id, stale)

        logger.info(f"Deleted item {item_id} from {group_id}: {', '.join(result.deleted) or 'nothing'}")
        return result

    def group_stats(self, group_id: str) -> GroupStats:
        if not self.repo.group_exists(group_id):
            raise NotFoundError(f"Group {group_id} not found")

        members = self.repo.get_members(group_id)
        post_ids = {m.effective_post_id for m in self.repo.list_metadata(group_id)}

        counts: Counter = Counter()
        total_reactions = 0
        for reactions in self.repo.list_reaction_files(group_id):
            total_reactions += len(reactions)
            counts.update(r.reaction for r in reactions)

        total_comments = sum(len(c) for c in self.repo.list_comment_files(group_id))

        return GroupStats(
            user_count=len(members),
            post_count=len(post_ids),
            total_reactions=total_reactions,
            top_reactions=[{"reaction": r, "count": n} for r, n in counts.most_common(3)],
            total_comments=total_comments,
        )
