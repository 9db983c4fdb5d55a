"""Message service — scoped chat history, posting and per-user message state."""

import logging
import re
from datetime import datetime
from typing import Optional, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clubhouse.core.access import ScopeAction
from clubhouse.core.config import settings
from clubhouse.core.context import AuthContext
from clubhouse.core.exceptions import (
    NotFoundError, PermissionDeniedError, PolicyViolationError, ResourceConflictError,
)
from clubhouse.core.permissions import Action, Resource, has_permission, grants_or_unset
from clubhouse.db.base import utcnow, as_naive_utc
from clubhouse.db.upsert import upsert
from clubhouse.models.message import Message, MessageReaction, StarredMessage, ReadReceipt
from clubhouse.models.user import User
from clubhouse.services.cache_service import cache_service
from clubhouse.services.scope_service import scope_service

logger = logging.getLogger("clubhouse.messages")

MENTION_RE = re.compile(r"@\[([^:\]]+):([^\]]+)\]")
PIN_ATTEMPTS = 3


def clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return settings.MESSAGE_PAGE_SIZE
    return min(limit, settings.MESSAGE_PAGE_SIZE_MAX)


def realtime_payload(message: Message) -> dict:
    return {
        "id": message.id,
        "type": message.type,
        "content": message.content,
        "group_id": message.group_id,
        "sender_id": message.sender_id,
        "forwarded_from_id": message.forwarded_from_id,
        "pinned": message.pinned,
        "created_at": message.created_at,
    }


class MessageService:
    """All chat operations. Every scoped call goes through scope_service first."""

    @staticmethod
    def get_message(db: Session, message_id: int) -> Message:
        """Get a live (not deleted) message."""
        message = (
            db.query(Message)
            .filter(Message.id == message_id, Message.deleted_at.is_(None))
            .first()
        )
        if not message:
            raise NotFoundError(f"Message {message_id} not found")
        return message

    @staticmethod
    def _get_readable(db: Session, ctx: AuthContext, message_id: int) -> Message:
        message = MessageService.get_message(db, message_id)
        scope_service.require_scope(db, ctx, message.group_id, ScopeAction.read)
        return message

    @staticmethod
    def _mark_starred(db: Session, ctx: AuthContext, messages: List[Message]) -> List[Message]:
        ids = [m.id for m in messages]
        starred = set()
        if ids:
            starred = {
                row[0]
                for row in db.query(StarredMessage.message_id).filter(
                    StarredMessage.user_id == ctx.user_id,
                    StarredMessage.message_id.in_(ids),
                )
            }
        for m in messages:
            m.is_starred = m.id in starred
        return messages

    @staticmethod
    def resolve_mentions(db: Session, content: Optional[str]) -> Optional[str]:
        """Rewrite ``@[userId:name]`` mentions of unknown users to plain ``@name``."""
        if not content:
            return content
        matches = MENTION_RE.findall(content)
        if not matches:
            return content

        candidate_ids = {int(uid) for uid, _ in matches if uid.strip().isdigit()}
        known = set()
        if candidate_ids:
            known = {row[0] for row in db.query(User.id).filter(User.id.in_(candidate_ids))}

        def _replace(match):
            uid, name = match.group(1), match.group(2)
            if uid.strip().isdigit() and int(uid) in known:
                return match.group(0)
            return f"@{name}"

        return MENTION_RE.sub(_replace, content)

    @staticmethod
    def list_messages(
        db: Session,
        ctx: AuthContext,
        group_id: Optional[int] = None,
        before: Optional[datetime] = None,
        limit: Optional[int] = None,
        unscoped_only: bool = False,
    ) -> List[Message]:
        """Newest ``limit`` messages (returned oldest first).

        With a ``group_id`` only that scope is read. Without one, every scope
        the requester can reach is merged with the unscoped channel, unless
        ``unscoped_only`` asks for the unscoped channel alone.
        """
        query = db.query(Message).filter(Message.deleted_at.is_(None))

        if group_id is not None or unscoped_only:
            scope_service.require_scope(db, ctx, group_id, ScopeAction.read)
            if group_id is None:
                query = query.filter(Message.group_id.is_(None))
            else:
                query = query.filter(Message.group_id == group_id)
        else:
            scopes = scope_service.visible_scopes(db, ctx)
            query = query.filter(scope_service.scope_filter(Message.group_id, scopes))

        if before is not None:
            query = query.filter(Message.created_at < as_naive_utc(before))

        messages = (
            query.order_by(Message.created_at.desc(), Message.id.desc())
            .limit(clamp_limit(limit))
            .all()
        )
        messages.reverse()
        return MessageService._mark_starred(db, ctx, messages)

    @staticmethod
    def post_message(
        db: Session,
        ctx: AuthContext,
        content: Optional[str],
        group_id: Optional[int] = None,
        type: str = "text",
        replied_to_id: Optional[int] = None,
    ) -> Message:
        """Post a message into a scope. The sender has read it by definition."""
        if not grants_or_unset(ctx.permissions, Resource.messages, Action.create):
            raise PermissionDeniedError("You are not authorized to send messages")
        scope_service.require_scope(db, ctx, group_id, ScopeAction.post)

        if type == "text":
            content = MessageService.resolve_mentions(db, (content or "").strip())
            if not content:
                raise PolicyViolationError("Message content is required")

        if replied_to_id is not None:
            replied = MessageService.get_message(db, replied_to_id)
            if replied.group_id != group_id:
                raise PolicyViolationError("Replies must stay in the same conversation")

        message = Message(
            type=type,
            content=content or None,
            group_id=group_id,
            sender_id=ctx.user_id,
            replied_to_id=replied_to_id,
        )
        return MessageService._store_new(db, ctx, message, "message:new")

    @staticmethod
    def forward_message(
        db: Session,
        ctx: AuthContext,
        message_id: int,
        group_id: Optional[int] = None,
    ) -> Message:
        """Copy a message into another scope, recording where it came from."""
        source = MessageService._get_readable(db, ctx, message_id)
        scope_service.require_scope(db, ctx, group_id, ScopeAction.forward)

        message = Message(
            type=source.type,
            content=source.content,
            group_id=group_id,
            sender_id=ctx.user_id,
            forwarded_from_id=source.id,
        )
        return MessageService._store_new(db, ctx, message, "message:forwarded")

    @staticmethod
    def _store_new(db: Session, ctx: AuthContext, message: Message, event: str) -> Message:
        try:
            db.add(message)
            db.flush()
            upsert(
                db, ReadReceipt,
                {"message_id": message.id, "user_id": ctx.user_id, "read_at": utcnow()},
                key_columns=("message_id", "user_id"),
                update_columns=("read_at",),
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(message)
        message.is_starred = False
        cache_service.publish_event(message.group_id, event, realtime_payload(message))
        return message

    @staticmethod
    def search_messages(
        db: Session,
        ctx: AuthContext,
        q: Optional[str],
        group_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Message]:
        """Case-insensitive substring search over reachable scopes."""
        term = (q or "").strip()
        if not term:
            return []

        query = db.query(Message).filter(
            Message.deleted_at.is_(None),
            func.lower(Message.content).contains(term.lower(), autoescape=True),
        )
        if group_id is not None:
            scope_service.require_scope(db, ctx, group_id, ScopeAction.search)
            query = query.filter(Message.group_id == group_id)
        else:
            scopes = scope_service.visible_scopes(db, ctx)
            query = query.filter(scope_service.scope_filter(Message.group_id, scopes))

        messages = (
            query.order_by(Message.created_at.desc(), Message.id.desc())
            .limit(clamp_limit(limit))
            .all()
        )
        return MessageService._mark_starred(db, ctx, messages)

    @staticmethod
    def edit_message(db: Session, ctx: AuthContext, message_id: int, content: Optional[str]) -> Message:
        """Edit a text message. Sender or ``messages.update``."""
        message = MessageService._get_readable(db, ctx, message_id)
        if message.sender_id != ctx.user_id and not has_permission(
            ctx.permissions, Resource.messages, Action.update
        ):
            raise PermissionDeniedError("You are not allowed to edit this message")
        if message.type != "text":
            raise PolicyViolationError("Only text messages can be edited")

        message.content = MessageService.resolve_mentions(db, (content or "").strip()) or None
        db.commit()
        db.refresh(message)
        cache_service.publish_event(message.group_id, "message:edited", realtime_payload(message))
        return MessageService._mark_starred(db, ctx, [message])[0]

    @staticmethod
    def delete_message(db: Session, ctx: AuthContext, message_id: int) -> None:
        """Soft delete: the row stays, its content is cleared."""
        message = MessageService._get_readable(db, ctx, message_id)
        if message.sender_id != ctx.user_id and not has_permission(
            ctx.permissions, Resource.messages, Action.delete
        ):
            raise PermissionDeniedError("You are not allowed to delete this message")

        message.deleted_at = utcnow()
        message.content = None
        message.pinned = False
        message.pinned_at = None
        message.pinned_by = None
        db.commit()
        cache_service.publish_event(message.group_id, "message:deleted", {"id": message.id})

    @staticmethod
    def mark_read(db: Session, ctx: AuthContext, message_id: int) -> ReadReceipt:
        """Record (or refresh) the requester's read receipt."""
        MessageService._get_readable(db, ctx, message_id)
        upsert(
            db, ReadReceipt,
            {"message_id": message_id, "user_id": ctx.user_id, "read_at": utcnow()},
            key_columns=("message_id", "user_id"),
            update_columns=("read_at",),
        )
        db.commit()
        return (
            db.query(ReadReceipt)
            .filter(ReadReceipt.message_id == message_id, ReadReceipt.user_id == ctx.user_id)
            .one()
        )

    @staticmethod
    def set_star(db: Session, ctx: AuthContext, message_id: int, star: bool) -> bool:
        """Star or unstar; repeated calls are no-ops."""
        MessageService._get_readable(db, ctx, message_id)
        if star:
            upsert(
                db, StarredMessage,
                {"message_id": message_id, "user_id": ctx.user_id, "created_at": utcnow()},
                key_columns=("message_id", "user_id"),
            )
        else:
            db.query(StarredMessage).filter(
                StarredMessage.message_id == message_id,
                StarredMessage.user_id == ctx.user_id,
            ).delete(synchronize_session=False)
        db.commit()
        return star

    @staticmethod
    def react(
        db: Session,
        ctx: AuthContext,
        message_id: int,
        emoji: Optional[str],
        remove: bool = False,
    ) -> Message:
        """Add or remove one (message, user, emoji) reaction."""
        emoji = (emoji or "").strip()
        if not emoji:
            raise PolicyViolationError("Emoji is required")
        message = MessageService._get_readable(db, ctx, message_id)

        if remove:
            db.query(MessageReaction).filter(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == ctx.user_id,
                MessageReaction.emoji == emoji,
            ).delete(synchronize_session=False)
        else:
            upsert(
                db, MessageReaction,
                {
                    "message_id": message_id,
                    "user_id": ctx.user_id,
                    "emoji": emoji,
                    "created_at": utcnow(),
                },
                key_columns=("message_id", "user_id", "emoji"),
            )
        db.commit()
        db.refresh(message)
        cache_service.publish_event(
            message.group_id, "message:reaction",
            {"id": message.id, "user_id": ctx.user_id, "emoji": emoji, "removed": remove},
        )
        return message

    @staticmethod
    def set_pin(db: Session, ctx: AuthContext, message_id: int, pin: bool) -> Message:
        """Pin or unpin. Pinning unpins every other message in the same scope.

        The unique ``pin_scope`` column backs the swap: when a concurrent pin
        in the same scope commits first, the write fails and the swap is
        replayed against the new state, so the last pin wins.
        """
        message = MessageService._get_readable(db, ctx, message_id)
        if message.sender_id != ctx.user_id and not has_permission(
            ctx.permissions, Resource.messages, Action.update
        ):
            raise PermissionDeniedError("You are not allowed to pin this message")

        for attempt in range(1, PIN_ATTEMPTS + 1):
            try:
                MessageService._write_pin(db, ctx, message, pin)
                db.commit()
                break
            except IntegrityError:
                db.rollback()
                if attempt == PIN_ATTEMPTS:
                    raise ResourceConflictError("The pinned message changed meanwhile, try again")
                logger.info(
                    "pin collision message=%s group=%s attempt=%s", message_id, message.group_id, attempt
                )
            except SQLAlchemyError:
                db.rollback()
                raise

        db.refresh(message)
        cache_service.publish_event(message.group_id, "message:pinned", realtime_payload(message))
        return MessageService._mark_starred(db, ctx, [message])[0]

    @staticmethod
    def _write_pin(db: Session, ctx: AuthContext, message: Message, pin: bool) -> None:
        if not pin:
            message.pinned = False
            message.pinned_at = None
            message.pinned_by = None
            return

        same_scope = (
            Message.group_id.is_(None)
            if message.group_id is None
            else Message.group_id == message.group_id
        )
        db.query(Message).filter(
            same_scope,
            Message.pinned.is_(True),
            Message.id != message.id,
        ).update(
            {"pinned": False, "pinned_at": None, "pinned_by": None},
            synchronize_session=False,
        )
        message.pinned = True
        message.pinned_at = utcnow()
        message.pinned_by = ctx.user_id

    @staticmethod
    def pinned_message(db: Session, ctx: AuthContext, group_id: Optional[int]) -> Optional[Message]:
        """The pinned message of a scope, if any."""
        scope_service.require_scope(db, ctx, group_id, ScopeAction.read)
        same_scope = Message.group_id.is_(None) if group_id is None else Message.group_id == group_id
        return (
            db.query(Message)
            .filter(same_scope, Message.pinned.is_(True), Message.deleted_at.is_(None))
            .order_by(Message.pinned_at.desc())
            .first()
        )


message_service = MessageService()
