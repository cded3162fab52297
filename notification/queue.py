"""
Per-user notification queues.

One JSON list per ``(group, recipient, channel)`` at
``groups/<groupId>/notifications/<channel>/<userId>.json``.

Consistency: every mutation is an unlocked read-modify-write of the whole
document. Two concurrent writers to the same key can lose an update; the
last writer wins.
"""

import logging
from typing import List, Union

from notification.models import MatchKey, Notification, QueueChannel, parse_notifications
from storage.store import KeyValueStore

logger = logging.getLogger(__name__)


class NotificationQueueManager:
    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(group_id: str, user_id: str, channel: Union[QueueChannel, str]) -> tuple:
        return ("groups", group_id, "notifications", QueueChannel(channel).value, f"{user_id}.json")

    def _load(self, group_id: str, user_id: str, channel) -> List[Notification]:
        return parse_notifications(self.store.read_json(*self._key(group_id, user_id, channel), default=[]))

    def _save(self, group_id: str, user_id: str, channel, notifications: List[Notification]) -> None:
        self.store.write_json(
            *self._key(group_id, user_id, channel),
            value=[n.to_json() for n in notifications],
        )

    def enqueue(self, group_id: str, user_id: str, channel, notification: Notification) -> None:
        notifications = self._load(group_id, user_id, channel)
        notifications.append(notification)
        self._save(group_id, user_id, channel, notifications)
        logger.debug(f"Queued {notification.type} for {user_id} in {group_id} ({channel})")

    def dequeue_all(self, group_id: str, user_id: str, channel) -> List[Notification]:
        """Read the queue in insertion order. Does not clear it; see clear()."""
        return self._load(group_id, user_id, channel)

    def remove(self, group_id: str, user_id: str, channel, match_key: MatchKey) -> int:
        """Remove every queued notification with the given identity. Returns the count removed."""
        notifications = self._load(group_id, user_id, channel)
        kept = [n for n in notifications if n.match_key != match_key]
        removed = len(notifications) - len(kept)
        if removed:
            self._save(group_id, user_id, channel, kept)
            logger.debug(f"Removed {removed} queued notification(s) {match_key} for {user_id}")
        return removed

    def clear(self, group_id: str, user_id: str, channel) -> None:
        self.store.delete(*self._key(group_id, user_id, channel))

    def list_recipients(self, group_id: str, channel) -> List[str]:
        names = self.store.list_keys("groups", group_id, "notifications", QueueChannel(channel).value)
        return [name[:-len(".json")] for name in names if name.endswith(".json")]
