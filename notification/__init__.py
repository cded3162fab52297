"""
Notification Module

Fan-out of group activity to members over web push or SMS digests.

Usage:
    from notification import NotificationService, NotificationEvent

    service.process_event(NotificationEvent(
        action='add',
        group_id='family',
        item_id='1700000000000-u1-42',
        uploader_id='u1',
        actor_user_id='u2',
        type='reaction',
        content={'reaction': '🔥'},
    ))

    # Later, from the digest worker
    service.flush_sms_digests('family')
"""

from notification.channels import (
    NotificationChannel,
    PushProvider,
    SmsProvider,
    WebPushChannel,
    TwilioSmsChannel,
    LogOnlySmsChannel,
    LogOnlyPushChannel,
    NotificationChannelFactory,
)

from notification.models import (
    Notification,
    NotificationType,
    QueueChannel,
    build_notification,
    parse_notification,
)

from notification.mentions import extract_mentions, strip_mention_syntax
from notification.message_builder import NotificationMessageBuilder
from notification.queue import NotificationQueueManager
from notification.push import PushDeliveryService, PushMessage, PushOutcome
from notification.sms_queue import SmsDispatchQueue, TimerScheduler

from notification.service import (
    NotificationService,
    NotificationEvent,
    FanoutResult,
)

__all__ = [
    # Channels
    'NotificationChannel',
    'PushProvider',
    'SmsProvider',
    'WebPushChannel',
    'TwilioSmsChannel',
    'LogOnlySmsChannel',
    'LogOnlyPushChannel',
    'NotificationChannelFactory',
    # Models
    'Notification',
    'NotificationType',
    'QueueChannel',
    'build_notification',
    'parse_notification',
    # Rendering
    'extract_mentions',
    'strip_mention_syntax',
    'NotificationMessageBuilder',
    # Delivery
    'NotificationQueueManager',
    'PushDeliveryService',
    'PushMessage',
    'PushOutcome',
    'SmsDispatchQueue',
    'TimerScheduler',
    # Service
    'NotificationService',
    'NotificationEvent',
    'FanoutResult',
]
