"""Role group service — the ordered tiers ranks are grouped into."""

import logging
from typing import Optional, List

from sqlalchemy.orm import Session

from clubhouse.models.role import Role
from clubhouse.models.role_group import RoleGroup
from clubhouse.models.message import Message
from clubhouse.models.poll import Poll
from clubhouse.core.access import TOP_TIER, MEMBER_TIER, CANDIDATE_TIER
from clubhouse.core.exceptions import NotFoundError, PolicyViolationError

logger = logging.getLogger("clubhouse.roles")

DEFAULT_GROUPS = [
    {
        "name": "Yönetim",
        "description": "Club officers",
        "order": TOP_TIER,
        "ranks": ["PRESIDENT", "V. PRESIDENT", "SGT. AT ARMS", "ROAD CAPTAIN", "TAILGUNNER"],
    },
    {
        "name": "Member",
        "description": "Full members",
        "order": MEMBER_TIER,
        "ranks": ["MEMBER"],
    },
    {
        "name": "Aday",
        "description": "Prospects and hangarounds",
        "order": CANDIDATE_TIER,
        "ranks": ["PROSPECT", "HANGAROUND"],
    },
]


class RoleGroupService:
    """CRUD over role groups plus first-run initialization."""

    @staticmethod
    def list_groups(db: Session) -> List[RoleGroup]:
        return db.query(RoleGroup).order_by(RoleGroup.order.asc(), RoleGroup.id.asc()).all()

    @staticmethod
    def get_group(db: Session, group_id: int) -> RoleGroup:
        group = db.query(RoleGroup).filter(RoleGroup.id == group_id).first()
        if not group:
            raise NotFoundError(f"Role group {group_id} not found")
        return group

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise PolicyViolationError("Group name is required")
        return cleaned

    @staticmethod
    def create_group(
        db: Session,
        name: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> RoleGroup:
        """Create a group. ``order`` defaults to the candidate tier."""
        name = RoleGroupService._clean_name(name)
        if db.query(RoleGroup.id).filter(RoleGroup.name == name).first():
            raise PolicyViolationError("This group name is already in use")

        group = RoleGroup(
            name=name,
            description=(description or "").strip() or None,
            order=order if order is not None else CANDIDATE_TIER,
        )
        db.add(group)
        db.commit()
        db.refresh(group)
        logger.info("role group created id=%s name=%s order=%s", group.id, group.name, group.order)
        return group

    @staticmethod
    def update_group(
        db: Session,
        group_id: int,
        name: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> RoleGroup:
        """Update a group. An omitted ``order`` keeps the current one."""
        name = RoleGroupService._clean_name(name)
        group = RoleGroupService.get_group(db, group_id)

        if name != group.name:
            if db.query(RoleGroup.id).filter(RoleGroup.name == name).first():
                raise PolicyViolationError("This group name is already in use")

        old_order = group.order
        group.name = name
        group.description = (description or "").strip() or None
        if order is not None:
            group.order = order
        db.commit()
        db.refresh(group)
        if group.order != old_order:
            # changes who can reach every scope tied to this group
            logger.warning(
                "role group order changed id=%s %s -> %s", group.id, old_order, group.order
            )
        return group

    @staticmethod
    def delete_group(db: Session, group_id: int) -> None:
        """Delete an empty group that no conversation or poll is scoped to."""
        group = RoleGroupService.get_group(db, group_id)

        if db.query(Role.id).filter(Role.group_id == group_id).first():
            raise PolicyViolationError(
                "This group still has ranks; move or delete them first"
            )
        if (
            db.query(Message.id).filter(Message.group_id == group_id).first()
            or db.query(Poll.id).filter(Poll.group_id == group_id).first()
        ):
            raise PolicyViolationError(
                "Messages or polls are scoped to this group; it cannot be deleted"
            )

        db.delete(group)
        db.commit()

    @staticmethod
    def initialize_defaults(db: Session) -> List[RoleGroup]:
        """Create the three stock tiers and attach the stock ranks to them.

        Refuses to run once any group exists. Ranks that are not in the
        database yet are skipped.
        """
        if db.query(RoleGroup.id).first():
            raise PolicyViolationError("Role groups are already initialized")

        created = []
        for spec in DEFAULT_GROUPS:
            group = RoleGroup(name=spec["name"], description=spec["description"], order=spec["order"])
            db.add(group)
            db.flush()
            db.query(Role).filter(Role.name.in_(spec["ranks"])).update(
                {"group_id": group.id}, synchronize_session=False
            )
            created.append(group)

        db.commit()
        for group in created:
            db.refresh(group)
        logger.info("default role groups initialized: %s", ", ".join(g.name for g in created))
        return created


role_group_service = RoleGroupService()
