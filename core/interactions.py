"""
Member interactions: reactions, comments and comment reactions.

Every change that concerns another member is turned into a NotificationEvent.
Comments that mention the assistant member get an AI reply appended.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from core.exceptions import NotFoundError, ValidationError
from core.llm.interfaces import ReplyGenerator
from notification.mentions import extract_mentions
from notification.service import (
    ACTION_ADD,
    ACTION_REMOVE,
    EVENT_COMMENT,
    EVENT_COMMENT_REACTION,
    EVENT_REACTION,
    NotificationEvent,
    NotificationService,
)
from storage.models import Comment, Member, Reaction
from storage.repository import GroupRepository

logger = logging.getLogger(__name__)

ASSISTANT_USER_ID = "claude-ai"
ASSISTANT_USER_NAME = "Claude"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InteractionService:
    def __init__(
        self,
        repo: GroupRepository,
        notifications: Optional[NotificationService] = None,
        reply_generator: Optional[ReplyGenerator] = None,
        media_collector: Optional[Callable[[str, str], List[dict]]] = None,
    ):
        self.repo = repo
        self.notifications = notifications
        self.reply_generator = reply_generator
        self.media_collector = media_collector

    # ============ Helpers ============

    def resolve_owner(self, group_id: str, item_id: str) -> str:
        """
        Uploader of an item, or of the earliest item of a post.

        Raises NotFoundError when neither exists.
        """
        metadata = self.repo.get_metadata(group_id, item_id)
        if metadata is not None:
            return metadata.uploader_id

        post_items = [m for m in self.repo.list_metadata(group_id) if m.effective_post_id == item_id]
        if not post_items:
            raise NotFoundError(f"Item {item_id} not found in group {group_id}")
        return min(post_items, key=lambda m: m.upload_date).uploader_id

    def _notify(self, event: NotificationEvent) -> None:
        if self.notifications is None:
            return
        try:
            self.notifications.process_event(event)
        except Exception as e:
            logger.error(f"Error processing {event.type} notification for {event.item_id}: {e}")

    @staticmethod
    def _toggle(reactions: List[Reaction], user_id: str, reaction: str):
        """
        Apply a reaction toggle.

        Returns (new list, previous reaction or None, added reaction or None).
        """
        previous = next((r.reaction for r in reactions if r.user_id == user_id), None)
        kept = [r for r in reactions if r.user_id != user_id]
        if previous == reaction:
            return kept, previous, None
        kept.append(Reaction(user_id=user_id, reaction=reaction, timestamp=_now_iso()))
        return kept, previous, reaction

    # ============ Reactions ============

    def toggle_reaction(self, group_id: str, item_id: str, user_id: str, reaction: str) -> List[Reaction]:
        """
        React to an item or post.

        The same reaction again removes it; a different one replaces the
        user's previous reaction.
        """
        if not user_id or not reaction:
            raise ValidationError("userId and reaction are required")

        owner_id = self.resolve_owner(group_id, item_id)
        reactions, previous, added = self._toggle(
            self.repo.get_reactions(group_id, item_id), user_id, reaction
        )
        self.repo.save_reactions(group_id, item_id, reactions)

        if previous is not None:
            self._notify(NotificationEvent(
                action=ACTION_REMOVE, group_id=group_id, item_id=item_id,
                uploader_id=owner_id, actor_user_id=user_id,
                type=EVENT_REACTION, content={"reaction": previous},
            ))
        if added is not None:
            self._notify(NotificationEvent(
                action=ACTION_ADD, group_id=group_id, item_id=item_id,
                uploader_id=owner_id, actor_user_id=user_id,
                type=EVENT_REACTION, content={"reaction": added},
            ))
        return reactions

    def toggle_comment_reaction(
        self, group_id: str, item_id: str, comment_index: int, user_id: str, reaction: str
    ) -> List[Reaction]:
        if not user_id or not reaction:
            raise ValidationError("userId and reaction are required")

        comments = self.repo.get_comments(group_id, item_id)
        if comment_index < 0 or comment_index >= len(comments):
            raise NotFoundError(f"Comment {comment_index} not found on {item_id}")
        author_id = comments[comment_index].user_id

        reactions, _, added = self._toggle(
            self.repo.get_comment_reactions(group_id, item_id, comment_index), user_id, reaction
        )
        self.repo.save_comment_reactions(group_id, item_id, comment_index, reactions)

        if added is not None:
            self._notify(NotificationEvent(
                action=ACTION_ADD, group_id=group_id, item_id=item_id,
                uploader_id=author_id, actor_user_id=user_id,
                type=EVENT_COMMENT_REACTION,
                content={"reaction": added, "commentIndex": comment_index},
            ))
        return reactions

    # ============ Comments ============

    def ensure_assistant_member(self, group_id: str) -> Member:
        members = self.repo.get_members(group_id)
        existing = self.repo.get_member(members, ASSISTANT_USER_ID)
        if existing is not None:
            return existing

        assistant = Member(id=ASSISTANT_USER_ID, name=ASSISTANT_USER_NAME)
        self.repo.save_members(group_id, members + [assistant])
        logger.info(f"Added assistant member to group {group_id}")
        return assistant

    def _mentions_assistant(self, text: str, members: List[Member]) -> bool:
        candidates = list(members)
        if self.repo.get_member(members, ASSISTANT_USER_ID) is None:
            candidates.append(Member(id=ASSISTANT_USER_ID, name=ASSISTANT_USER_NAME))
        return ASSISTANT_USER_ID in extract_mentions(text, candidates)

    def add_comment(
        self,
        group_id: str,
        item_id: str,
        user_id: str,
        text: str,
        media: Optional[dict] = None,
    ) -> List[Comment]:
        """
        Append a comment and notify the post owner, earlier commenters and
        mentioned members. Returns the updated comment list.
        """
        text = (text or "").strip()
        if not user_id or (not text and not media):
            raise ValidationError("userId and a comment or media are required")

        members = self.repo.get_members(group_id)
        if self.repo.get_member(members, user_id) is None:
            raise NotFoundError(f"User {user_id} not found in group {group_id}")
        owner_id = self.resolve_owner(group_id, item_id)

        comments = self.repo.get_comments(group_id, item_id)
        comment_index = len(comments)

        # Fan out before appending so the commenter is not among "prior commenters"
        self._notify(NotificationEvent(
            action=ACTION_ADD, group_id=group_id, item_id=item_id,
            uploader_id=owner_id, actor_user_id=user_id, type=EVENT_COMMENT,
            content={"comment": text, "commentIndex": comment_index},
        ))

        comment = Comment(user_id=user_id, comment=text, timestamp=_now_iso(), media=media)
        comments.append(comment)
        self.repo.save_comments(group_id, item_id, comments)

        if user_id != ASSISTANT_USER_ID and self.reply_generator and self._mentions_assistant(text, members):
            comments = self._reply_as_assistant(group_id, item_id, owner_id, text, comments, members)

        return comments

    def _reply_as_assistant(
        self,
        group_id: str,
        item_id: str,
        owner_id: str,
        prompt: str,
        comments: List[Comment],
        members: List[Member],
    ) -> List[Comment]:
        self.ensure_assistant_member(group_id)

        names = {m.id: m.name for m in members}
        names[ASSISTANT_USER_ID] = ASSISTANT_USER_NAME
        context = [
            {"name": names.get(c.user_id), "comment": c.comment}
            for c in comments[:-1]
        ]

        group_context = None
        if self.media_collector is not None:
            try:
                group_context = self.media_collector(group_id, item_id)
            except Exception as e:
                logger.error(f"Error collecting media for assistant reply on {item_id}: {e}")

        reply = self.reply_generator.generate_reply(prompt, context, group_context)

        self._notify(NotificationEvent(
            action=ACTION_ADD, group_id=group_id, item_id=item_id,
            uploader_id=owner_id, actor_user_id=ASSISTANT_USER_ID, type=EVENT_COMMENT,
            content={"comment": reply, "commentIndex": len(comments)},
        ))

        comments.append(Comment(user_id=ASSISTANT_USER_ID, comment=reply, timestamp=_now_iso()))
        self.repo.save_comments(group_id, item_id, comments)
        return comments
