#!/usr/bin/env python3
"""
Test suite configuration and utilities.

All tests can be run with standard Python tools:

    # Run all tests
    python -m pytest tests/ -v

Helpers here build a throwaway flat-file group tree so services can be
exercised against real JSON files.
"""

from typing import Iterable, List, Optional

from storage.models import ItemMetadata, Member, NotificationPreference, PhoneNumber
from storage.repository import GroupRepository
from storage.store import JsonFileStore


def make_member(
    user_id: str,
    name: str,
    preference: Optional[str] = None,
    phone: Optional[str] = None,
    verified: bool = True,
) -> Member:
    return Member(
        id=user_id,
        name=name,
        notification_preference=NotificationPreference(preference) if preference else None,
        phone_number=PhoneNumber(e164=phone, verified=verified) if phone else None,
    )


def seed_group(root: str, group_id: str, members: Iterable[Member]) -> GroupRepository:
    """Create a group with the given members under ``root`` and return its repository."""
    repo = GroupRepository(JsonFileStore(root))
    repo.save_members(group_id, list(members))
    return repo


def make_metadata(
    item_id: str,
    uploader_id: str,
    upload_date: int,
    post_id: Optional[str] = None,
    order_index: Optional[int] = None,
) -> ItemMetadata:
    return ItemMetadata(
        item_id=item_id,
        post_id=post_id,
        uploader_id=uploader_id,
        upload_date=upload_date,
        order_index=order_index,
    )


def ids(values: List) -> List[str]:
    return [v.item_id for v in values]
