"""
Post grouping.

Items uploaded together form a post. New uploads carry an explicit postId;
older items are grouped by uploader and upload time instead.
"""

from dataclasses import dataclass
from typing import List, Optional, Set

from storage.models import ItemMetadata, Member

POST_GROUPING_WINDOW_MS = 120000


@dataclass
class FeedItem:
    metadata: ItemMetadata
    uploader: Optional[Member] = None
    is_unread: bool = False

    @property
    def item_id(self) -> str:
        return self.metadata.item_id


@dataclass
class Post:
    post_id: str
    items: List[FeedItem]
    uploader: Optional[Member]
    upload_date: int
    is_unread: bool


def _belongs_by_time(candidate: FeedItem, seed: FeedItem) -> bool:
    meta = candidate.metadata
    if meta.has_explicit_post:
        return False
    return (
        meta.uploader_id == seed.metadata.uploader_id
        and abs(meta.upload_date - seed.metadata.upload_date) <= POST_GROUPING_WINDOW_MS
    )


def _sort_post_items(items: List[FeedItem]) -> List[FeedItem]:
    if all(i.metadata.order_index is not None for i in items):
        return sorted(items, key=lambda i: i.metadata.order_index)
    return sorted(items, key=lambda i: i.metadata.upload_date)


def group_into_posts(items: List[FeedItem]) -> List[Post]:
    """
    Group feed items into posts, emitted in the order their seed item appears.

    Each item lands in exactly one post. Re-grouping the flattened output
    of a previous call yields the same posts.
    """
    posts: List[Post] = []
    assigned: Set[str] = set()

    for seed in items:
        if seed.item_id in assigned:
            continue

        if seed.metadata.has_explicit_post:
            post_id = seed.metadata.post_id
            members = [
                i for i in items
                if i.item_id not in assigned and i.metadata.post_id == post_id
            ]
        else:
            post_id = seed.item_id
            members = [
                i for i in items
                if i.item_id not in assigned and _belongs_by_time(i, seed)
            ]

        members = _sort_post_items(members)
        assigned.update(i.item_id for i in members)

        earliest = min(members, key=lambda i: i.metadata.upload_date)
        posts.append(Post(
            post_id=post_id,
            items=members,
            uploader=earliest.uploader,
            upload_date=earliest.metadata.upload_date,
            is_unread=any(i.is_unread for i in members),
        ))

    return posts
