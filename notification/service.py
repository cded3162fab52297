#!/usr/bin/env python3
"""
Notification Service - fan-out of group activity.

Turns an activity event (upload, comment, reaction, comment reaction) into
per-recipient notifications and routes each one by the member's preference:
- SMS (verified phone): queued in sms-pending, later flushed as a digest
- PUSH: rendered and sent immediately via PushDeliveryService
- no preference: skipped

Usage:
    from notification.service import NotificationService, NotificationEvent

    service.process_event(NotificationEvent(
        action="add",
        group_id="family",
        item_id="1700000000000-u1-ab12",
        uploader_id="u1",
        actor_user_id="u2",
        type="comment",
        content={"comment": "Nice!", "commentIndex": 0},
    ))
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from notification.mentions import extract_mentions
from notification.message_builder import SMS_MAX_LENGTH, NotificationMessageBuilder
from notification.models import Notification, NotificationType, QueueChannel, build_notification
from notification.push import PushDeliveryService, PushMessage
from notification.queue import NotificationQueueManager
from notification.sms_queue import SmsDispatchQueue
from storage.models import Member, NotificationPreference
from storage.repository import GroupRepository

logger = logging.getLogger(__name__)

ACTION_ADD = "add"
ACTION_REMOVE = "remove"

# Event types accepted by process_event
EVENT_UPLOAD = "upload"
EVENT_COMMENT = "comment"
EVENT_REACTION = "reaction"
EVENT_COMMENT_REACTION = "comment-reaction"


@dataclass
class NotificationEvent:
    """
    An activity that may notify other members.

    For ``comment-reaction`` events ``uploader_id`` carries the comment author.
    """
    action: str
    group_id: str
    item_id: str
    uploader_id: str
    actor_user_id: str
    type: str
    content: Optional[Dict[str, Any]] = None


@dataclass
class FanoutResult:
    queued: List[str] = field(default_factory=list)
    pushed: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class NotificationService:
    """
    Notification fan-out engine.

    Push sends are fire-and-forget on an executor thread unless
    ``use_async_push`` is False, in which case they run inline (tests,
    scripts). Push errors are logged and never reach the caller.
    """

    def __init__(
        self,
        repo: GroupRepository,
        queue: NotificationQueueManager,
        push_service: PushDeliveryService,
        sms_queue: Optional[SmsDispatchQueue] = None,
        client_url: str = "http://localhost:3000",
        push_title: str = "New activity in WAVE!",
        use_async_push: bool = True,
        push_workers: int = 4,
        sms_max_length: int = SMS_MAX_LENGTH,
        executor: Optional[Executor] = None,
    ):
        self.repo = repo
        self.queue = queue
        self.push_service = push_service
        self.sms_queue = sms_queue
        self.client_url = client_url
        self.push_title = push_title
        self.sms_max_length = sms_max_length

        self.async_mode = use_async_push
        if use_async_push:
            self._executor = executor or ThreadPoolExecutor(
                max_workers=push_workers, thread_name_prefix="push"
            )
        else:
            logger.info("Async push disabled via config. Using sync mode.")
            self._executor = None

    # ============ Fan-out ============

    def _recipients(self, event: NotificationEvent, members: List[Member]) -> List[Tuple[str, NotificationType]]:
        actor = event.actor_user_id
        owner = event.uploader_id

        if event.type == EVENT_UPLOAD:
            return [(m.id, NotificationType.UPLOAD) for m in members if m.id != owner]

        if event.type == EVENT_REACTION:
            return [(owner, NotificationType.REACTION)] if actor != owner else []

        if event.type == EVENT_COMMENT_REACTION:
            return [(owner, NotificationType.REACTION_ON_YOUR_COMMENT)] if actor != owner else []

        if event.type == EVENT_COMMENT:
            recipients = []
            if actor != owner:
                recipients.append((owner, NotificationType.COMMENT_ON_YOUR_POST))

            # Comments already on the post; the new one is appended after fan-out
            prior_commenters: List[str] = []
            for c in self.repo.get_comments(event.group_id, event.item_id):
                if c.user_id not in (owner, actor) and c.user_id not in prior_commenters:
                    prior_commenters.append(c.user_id)
            recipients.extend(
                (uid, NotificationType.COMMENT_ON_POST_YOU_COMMENTED_ON) for uid in prior_commenters
            )

            already_notified = {owner, actor, *prior_commenters}
            text = (event.content or {}).get("comment", "")
            for uid in extract_mentions(text, members):
                if uid not in already_notified:
                    recipients.append((uid, NotificationType.MENTION))
                    already_notified.add(uid)
            return recipients

        logger.warning(f"Ignoring unknown notification event type: {event.type}")
        return []

    def process_event(self, event: NotificationEvent) -> FanoutResult:
        members = self.repo.get_members(event.group_id)
        actor = self.repo.get_member(members, event.actor_user_id)
        actor_name = actor.name if actor else None
        result = FanoutResult()

        for recipient_id, ntype in self._recipients(event, members):
            notification = build_notification(
                ntype, event.item_id, event.actor_user_id, actor_name, event.content
            )
            action = event.action if ntype == NotificationType.REACTION else ACTION_ADD
            self._process_for_user(action, members, event.group_id, recipient_id, notification, result)

        return result

    def _process_for_user(
        self,
        action: str,
        members: List[Member],
        group_id: str,
        user_id: str,
        notification: Notification,
        result: FanoutResult,
    ) -> None:
        member = self.repo.get_member(members, user_id)
        if member is None:
            logger.warning(f"User {user_id} not found in group {group_id}")
            result.skipped.append(user_id)
            return

        if action == ACTION_REMOVE:
            removed = 0
            for channel in QueueChannel:
                removed += self.queue.remove(group_id, user_id, channel, notification.match_key)
            if removed:
                result.removed.append(user_id)
            return

        if member.can_receive_sms:
            self.queue.enqueue(group_id, user_id, QueueChannel.SMS_PENDING, notification)
            result.queued.append(user_id)
        elif member.notification_preference == NotificationPreference.PUSH:
            self._dispatch_push(group_id, user_id, notification)
            result.pushed.append(user_id)
        else:
            result.skipped.append(user_id)

    # ============ Push ============

    def build_push_message(self, group_id: str, user_id: str, notification: Notification) -> PushMessage:
        data: Dict[str, Any] = {"itemId": notification.item_id}
        if notification.comment_index is not None:
            data["commentIndex"] = notification.comment_index
        return PushMessage(
            title=self.push_title,
            body=NotificationMessageBuilder.build_text(notification),
            url=NotificationMessageBuilder.build_push_url(
                self.client_url, group_id, user_id, notification.item_id
            ),
            data=data,
        )

    def _dispatch_push(self, group_id: str, user_id: str, notification: Notification) -> None:
        message = self.build_push_message(group_id, user_id, notification)
        if self._executor is not None:
            self._executor.submit(self._send_push_safely, group_id, user_id, message)
        else:
            self._send_push_safely(group_id, user_id, message)

    def _send_push_safely(self, group_id: str, user_id: str, message: PushMessage) -> None:
        try:
            outcome = self.push_service.send(group_id, user_id, message)
            logger.debug(f"Push to {user_id} in {group_id}: {outcome.status} ({outcome.delivered} delivered)")
        except Exception as e:
            logger.error(f"Error sending push notification to {user_id} in {group_id}: {e}")

    # ============ SMS digests ============

    def flush_sms_digests(self, group_id: str) -> int:
        """
        Hand every pending SMS queue in a group to the dispatch queue as digests.

        Returns the number of SMS messages enqueued.
        """
        if self.sms_queue is None:
            logger.warning("No SMS dispatch queue configured; skipping digest flush")
            return 0

        members = self.repo.get_members(group_id)
        sent = 0

        for user_id in self.queue.list_recipients(group_id, QueueChannel.SMS_PENDING):
            notifications = self.queue.dequeue_all(group_id, user_id, QueueChannel.SMS_PENDING)
            if not notifications:
                continue

            member = self.repo.get_member(members, user_id)
            if member is None or not member.can_receive_sms:
                logger.info(
                    f"Discarding {len(notifications)} SMS notification(s) for {user_id}: "
                    f"no longer reachable by SMS"
                )
                self.queue.clear(group_id, user_id, QueueChannel.SMS_PENDING)
                continue

            messages = NotificationMessageBuilder.build_digest(
                group_id, user_id, notifications, self.client_url, self.sms_max_length
            )
            for text in messages:
                self.sms_queue.enqueue(member.phone_number.e164, text)
            sent += len(messages)

            self.queue.clear(group_id, user_id, QueueChannel.SMS_PENDING)
            logger.info(f"Queued {len(messages)} SMS digest message(s) for {user_id} in {group_id}")

        return sent

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
