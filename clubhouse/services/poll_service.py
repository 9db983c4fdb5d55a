"""Poll service — poll lifecycle and single-vote casting."""

import logging
from collections import Counter
from typing import Optional, List, Dict, Any

from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clubhouse.core.access import ScopeAction
from clubhouse.core.context import AuthContext
from clubhouse.core.exceptions import NotFoundError, PermissionDeniedError, PolicyViolationError
from clubhouse.core.permissions import Action, Resource, has_permission, grants_or_unset
from clubhouse.db.base import utcnow
from clubhouse.db.upsert import upsert
from clubhouse.models.poll import Poll, PollOption, PollVote, PollType
from clubhouse.services.scope_service import scope_service

logger = logging.getLogger("clubhouse.polls")

YES_NO_OPTIONS = ("Evet", "Hayır")


class PollService:
    """Creates, lists and votes on polls."""

    @staticmethod
    def get_poll(db: Session, poll_id: int) -> Poll:
        poll = db.query(Poll).filter(Poll.id == poll_id).first()
        if not poll:
            raise NotFoundError(f"Poll {poll_id} not found")
        return poll

    @staticmethod
    def create_poll(
        db: Session,
        ctx: AuthContext,
        title: str,
        type: PollType,
        description: Optional[str] = None,
        options: Optional[List[str]] = None,
        allow_custom_option: bool = False,
        group_id: Optional[int] = None,
    ) -> Poll:
        """Create a poll. Yes/no polls always get the two fixed answers."""
        if not grants_or_unset(ctx.permissions, Resource.polls, Action.create):
            raise PermissionDeniedError("You are not authorized to create polls")
        title = (title or "").strip()
        if not title:
            raise PolicyViolationError("Poll title is required")
        scope_service.require_scope(db, ctx, group_id, ScopeAction.post)

        if type == PollType.yes_no:
            texts = list(YES_NO_OPTIONS)
            allow_custom_option = False
        else:
            texts = [t.strip() for t in (options or []) if t and t.strip()]
            if not allow_custom_option and len(texts) < 2:
                raise PolicyViolationError(
                    "Multiple choice polls need at least two options"
                )

        poll = Poll(
            title=title,
            description=(description or "").strip() or None,
            type=type,
            allow_custom_option=bool(allow_custom_option),
            group_id=group_id,
            created_by=ctx.user_id,
            options=[PollOption(text=t) for t in texts],
        )
        db.add(poll)
        db.commit()
        db.refresh(poll)
        logger.info("poll created id=%s type=%s group=%s", poll.id, poll.type.value, group_id)
        return poll

    @staticmethod
    def _require_owner_or(ctx: AuthContext, poll: Poll, action: Action, reason: str) -> None:
        if poll.created_by != ctx.user_id and not has_permission(
            ctx.permissions, Resource.polls, action
        ):
            raise PermissionDeniedError(reason)

    @staticmethod
    def update_poll(
        db: Session,
        ctx: AuthContext,
        poll_id: int,
        fields: Dict[str, Any],
    ) -> Poll:
        """Update title, description or the custom-option switch."""
        poll = PollService.get_poll(db, poll_id)
        PollService._require_owner_or(
            ctx, poll, Action.update, "You are not allowed to update this poll"
        )

        if "title" in fields:
            title = (fields["title"] or "").strip()
            if not title:
                raise PolicyViolationError("Poll title is required")
            poll.title = title
        if "description" in fields:
            poll.description = (fields["description"] or "").strip() or None
        if "allow_custom_option" in fields and poll.type == PollType.multiple:
            poll.allow_custom_option = bool(fields["allow_custom_option"])

        db.commit()
        db.refresh(poll)
        return poll

    @staticmethod
    def delete_poll(db: Session, ctx: AuthContext, poll_id: int) -> None:
        poll = PollService.get_poll(db, poll_id)
        PollService._require_owner_or(
            ctx, poll, Action.delete, "You are not allowed to delete this poll"
        )
        db.delete(poll)
        db.commit()

    @staticmethod
    def list_polls(
        db: Session,
        ctx: AuthContext,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Polls in reachable scopes, with vote counts and the requester's choice."""
        scopes = scope_service.visible_scopes(db, ctx)
        query = db.query(Poll).filter(scope_service.scope_filter(Poll.group_id, scopes))

        term = (search or "").strip().lower()
        if term:
            query = query.filter(
                or_(
                    func.lower(Poll.title).contains(term, autoescape=True),
                    func.lower(Poll.description).contains(term, autoescape=True),
                )
            )

        query = query.order_by(Poll.created_at.desc(), Poll.id.desc())
        if limit:
            query = query.limit(limit)

        return [PollService.summarize(poll, ctx.user_id) for poll in query.all()]

    @staticmethod
    def summarize(poll: Poll, user_id: int) -> Dict[str, Any]:
        """Per-option vote counts and the given user's current choice."""
        counts = Counter(v.option_id for v in poll.votes)
        mine = next((v.option_id for v in poll.votes if v.user_id == user_id), None)
        return {
            "poll": poll,
            "options": [
                {"id": o.id, "text": o.text, "created_by": o.created_by, "votes": counts[o.id]}
                for o in poll.options
            ],
            "total_votes": len(poll.votes),
            "my_option_id": mine,
        }

    @staticmethod
    def vote(
        db: Session,
        ctx: AuthContext,
        poll_id: int,
        option_id: Optional[int] = None,
        new_option_text: Optional[str] = None,
    ) -> PollVote:
        """Cast or move the requester's single vote.

        On multiple choice polls that allow it, ``new_option_text`` adds the
        requester's one custom option and votes for it.
        """
        poll = PollService.get_poll(db, poll_id)
        scope_service.require_scope(db, ctx, poll.group_id, ScopeAction.vote)

        target_id = option_id
        if (
            poll.type == PollType.multiple
            and poll.allow_custom_option
            and new_option_text is not None
        ):
            text = new_option_text.strip()
            if not text:
                raise PolicyViolationError("Option text cannot be empty")
            target_id = PollService._add_custom_option(db, ctx, poll, text).id

        if target_id is None:
            raise PolicyViolationError("No valid option was given")

        option = (
            db.query(PollOption)
            .filter(PollOption.id == target_id, PollOption.poll_id == poll.id)
            .first()
        )
        if not option:
            raise PolicyViolationError("Invalid option for this poll")

        upsert(
            db, PollVote,
            {"poll_id": poll.id, "option_id": option.id, "user_id": ctx.user_id, "voted_at": utcnow()},
            key_columns=("poll_id", "user_id"),
            update_columns=("option_id", "voted_at"),
        )
        db.commit()
        return (
            db.query(PollVote)
            .filter(PollVote.poll_id == poll.id, PollVote.user_id == ctx.user_id)
            .one()
        )

    @staticmethod
    def _add_custom_option(db: Session, ctx: AuthContext, poll: Poll, text: str) -> PollOption:
        existing = (
            db.query(PollOption.id)
            .filter(PollOption.poll_id == poll.id, PollOption.created_by == ctx.user_id)
            .first()
        )
        if existing:
            raise PolicyViolationError("Each member can add at most one option")

        option = PollOption(poll_id=poll.id, text=text, created_by=ctx.user_id)
        db.add(option)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent request from the same user won the unique constraint
            db.rollback()
            raise PolicyViolationError("Each member can add at most one option")
        db.refresh(option)
        return option


poll_service = PollService()
