from typing import Dict, List, Optional

from notification.mentions import strip_mention_syntax
from notification.models import Notification, NotificationType

SMS_MAX_LENGTH = 160
UNKNOWN_ACTOR = "Someone"


class NotificationMessageBuilder:
    """Renders notifications as push text and SMS digests."""

    @staticmethod
    def _actor_name(notification: Notification) -> str:
        return notification.actor.name or UNKNOWN_ACTOR

    @staticmethod
    def build_text(notification: Notification) -> str:
        """Single-notification text used for push bodies. Unknown types render as ""."""
        name = NotificationMessageBuilder._actor_name(notification)
        ntype = notification.type

        if ntype == NotificationType.UPLOAD:
            return f"{name} uploaded a new post."
        if ntype == NotificationType.REACTION:
            return f"{name} reacted {notification.content.reaction} to your post."
        if ntype == NotificationType.REACTION_ON_YOUR_COMMENT:
            return f"{name} reacted {notification.content.reaction} to your comment."

        if ntype == NotificationType.COMMENT_ON_YOUR_POST:
            comment = strip_mention_syntax(notification.content.comment)
            return f'{name} commented on your post: "{comment}"'
        if ntype == NotificationType.COMMENT_ON_POST_YOU_COMMENTED_ON:
            comment = strip_mention_syntax(notification.content.comment)
            return f'{name} also commented on a post you commented on: "{comment}"'
        if ntype == NotificationType.MENTION:
            comment = strip_mention_syntax(notification.content.comment)
            return f'{name} mentioned you in a comment: "{comment}"'

        return ""

    @staticmethod
    def format_user_list(names: List[str]) -> str:
        """
        Join display names for a digest clause.

        ``A`` / ``A and B`` / ``A, B, and C`` / ``A, B, C + N others``.
        """
        if not names:
            return ""
        if len(names) == 1:
            return names[0]
        if len(names) == 2:
            return f"{names[0]} and {names[1]}"
        if len(names) == 3:
            return f"{names[0]}, {names[1]}, and {names[2]}"

        remaining = len(names) - 3
        others = "other" if remaining == 1 else "others"
        return f"{names[0]}, {names[1]}, {names[2]} + {remaining} {others}"

    @staticmethod
    def build_summary_clause(notification_type: str, group: List[Notification]) -> str:
        names: List[str] = []
        item_ids = set()
        for n in group:
            name = NotificationMessageBuilder._actor_name(n)
            if name not in names:
                names.append(name)
            item_ids.add(n.item_id)

        users = NotificationMessageBuilder.format_user_list(names)
        many = len(item_ids) > 1

        if notification_type == NotificationType.REACTION:
            return f"{users} reacted to {'your posts' if many else 'your post'}"
        if notification_type == NotificationType.COMMENT_ON_YOUR_POST:
            return f"{users} commented on {'your posts' if many else 'your post'}"
        if notification_type == NotificationType.COMMENT_ON_POST_YOU_COMMENTED_ON:
            return f"{users} also commented on {'posts' if many else 'a post'} that you commented on"
        if notification_type == NotificationType.REACTION_ON_YOUR_COMMENT:
            return f"{users} reacted to your {'comments' if many else 'comment'}"
        if notification_type == NotificationType.UPLOAD:
            # Counted per notification: each upload is its own post
            return f"{users} added {'posts' if len(group) > 1 else 'a post'}"
        if notification_type == NotificationType.MENTION:
            return f"{users} mentioned you in a comment"

        return f"Unknown: {notification_type}"

    @staticmethod
    def build_digest(
        group_id: str,
        user_id: str,
        notifications: List[Notification],
        client_url: str,
        max_length: Optional[int] = SMS_MAX_LENGTH,
    ) -> List[str]:
        """
        Render queued notifications as SMS digest text.

        Returns one message when the joined digest fits in ``max_length``,
        otherwise one message per clause: the group header leads the first,
        the link trails the last and the others end with a period.
        """
        if not notifications:
            return []

        grouped: Dict[str, List[Notification]] = {}
        for n in notifications:
            grouped.setdefault(n.type, []).append(n)

        clauses = [
            NotificationMessageBuilder.build_summary_clause(ntype, group)
            for ntype, group in grouped.items()
        ]

        prefix = f"(WAVE){group_id}: "
        suffix = f". {client_url.rstrip('/')}/{group_id}/{user_id}"
        joined = prefix + ". ".join(clauses) + suffix

        if max_length is None or len(joined) <= max_length:
            return [joined]

        messages = []
        last = len(clauses) - 1
        for index, clause in enumerate(clauses):
            head = prefix if index == 0 else ""
            tail = suffix if index == last else "."
            messages.append(f"{head}{clause}{tail}")
        return messages

    @staticmethod
    def build_push_url(client_url: str, group_id: str, user_id: str, item_id: str) -> str:
        return f"{client_url.rstrip('/')}/{group_id}/{user_id}#{item_id}"
