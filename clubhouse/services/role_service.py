"""Role service — rank administration and rank-to-order resolution."""

import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from clubhouse.models.role import Role
from clubhouse.models.role_group import RoleGroup
from clubhouse.models.user import User
from clubhouse.core.permissions import default_permissions, normalize_matrix
from clubhouse.core.exceptions import NotFoundError, PolicyViolationError

logger = logging.getLogger("clubhouse.roles")

# Marks an optional argument the caller did not pass (None means "clear").
UNSET: Any = object()


class RoleService:
    """Manages ranks and resolves a rank name to its group order."""

    @staticmethod
    def resolve_user_order(db: Session, rank_name: Optional[str]) -> Optional[int]:
        """Return the order of the group owning ``rank_name``.

        None means "unordered": no rank, an unknown rank, or a rank outside
        every group. Database errors propagate to the caller.
        """
        if not rank_name:
            return None
        row = (
            db.query(RoleGroup.order)
            .join(Role, Role.group_id == RoleGroup.id)
            .filter(Role.name == rank_name)
            .first()
        )
        return row[0] if row else None

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        """List all ranks, newest first."""
        return db.query(Role).order_by(Role.created_at.desc(), Role.id.desc()).all()

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        """Get a rank by id."""
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise NotFoundError(f"Rank {role_id} not found")
        return role

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise PolicyViolationError("Rank name is required")
        return cleaned

    @staticmethod
    def _check_group(db: Session, group_id: Optional[int]) -> None:
        if group_id is None:
            return
        if not db.query(RoleGroup.id).filter(RoleGroup.id == group_id).first():
            raise NotFoundError(f"Role group {group_id} not found")

    @staticmethod
    def create_role(
        db: Session,
        name: str,
        description: Optional[str] = None,
        permissions: Optional[Dict[str, Any]] = None,
        group_id: Optional[int] = None,
    ) -> Role:
        """Create a rank. Ranks without an explicit matrix get the all-denied one."""
        name = RoleService._clean_name(name)
        if db.query(Role.id).filter(Role.name == name).first():
            raise PolicyViolationError("This rank name is already in use")
        RoleService._check_group(db, group_id)

        role = Role(
            name=name,
            description=(description or "").strip() or None,
            group_id=group_id,
        )
        role.permissions = normalize_matrix(permissions) if permissions else default_permissions()
        db.add(role)
        db.commit()
        db.refresh(role)
        logger.info("rank created id=%s name=%s group=%s", role.id, role.name, group_id)
        return role

    @staticmethod
    def update_role(
        db: Session,
        role_id: int,
        name: str,
        description: Optional[str] = None,
        permissions: Optional[Dict[str, Any]] = None,
        group_id: Any = UNSET,
    ) -> Role:
        """Update a rank. Omitted (None) permissions and group are kept as they are."""
        name = RoleService._clean_name(name)
        role = RoleService.get_role(db, role_id)

        if name != role.name:
            if db.query(Role.id).filter(Role.name == name).first():
                raise PolicyViolationError("This rank name is already in use")
            # users reference ranks by name
            db.query(User).filter(User.rutbe == role.name).update(
                {"rutbe": name}, synchronize_session=False
            )

        role.name = name
        role.description = (description or "").strip() or None
        if permissions is not None:
            # an empty matrix resets the rank to all-denied
            role.permissions = normalize_matrix(permissions) if permissions else default_permissions()
        if group_id is not UNSET:
            RoleService._check_group(db, group_id)
            role.group_id = group_id
        db.commit()
        db.refresh(role)
        return role

    @staticmethod
    def delete_role(db: Session, role_id: int) -> None:
        """Delete a rank that no user holds."""
        role = RoleService.get_role(db, role_id)
        in_use = db.query(User.id).filter(User.rutbe == role.name).first()
        if in_use:
            raise PolicyViolationError(
                "Users still hold this rank; reassign them before deleting it"
            )
        db.delete(role)
        db.commit()


role_service = RoleService()
