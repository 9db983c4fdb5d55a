"""Seed the stock ranks and their role groups into the database."""

from sqlalchemy.orm import Session

from clubhouse.core.permissions import Resource, default_permissions
from clubhouse.models.role import Role
from clubhouse.models.role_group import RoleGroup
from clubhouse.services.role_group_service import role_group_service


def _grant(matrix: dict, resource: Resource, *actions: str) -> dict:
    entry = matrix.setdefault(resource.value, {a.value: False for a in resource.actions})
    for action in actions:
        entry[action] = True
    return matrix


def officer_permissions() -> dict:
    """Everything, on every resource."""
    matrix = {}
    for resource in Resource:
        _grant(matrix, resource, *(a.value for a in resource.actions))
    return matrix


def member_permissions() -> dict:
    matrix = default_permissions()
    for resource in (Resource.meetings, Resource.events, Resource.routes,
                     Resource.announcements, Resource.researches, Resource.documents):
        _grant(matrix, resource, "read")
    _grant(matrix, Resource.users, "read")
    _grant(matrix, Resource.messages, "create", "read")
    _grant(matrix, Resource.polls, "create", "read")
    return matrix


def candidate_permissions() -> dict:
    matrix = default_permissions()
    _grant(matrix, Resource.events, "read")
    _grant(matrix, Resource.announcements, "read")
    _grant(matrix, Resource.messages, "create", "read")
    _grant(matrix, Resource.polls, "read")
    return matrix


RANKS = [
    ("PRESIDENT", "Club president", officer_permissions),
    ("V. PRESIDENT", "Vice president", officer_permissions),
    ("SGT. AT ARMS", "Sergeant at arms", officer_permissions),
    ("ROAD CAPTAIN", "Plans and leads rides", officer_permissions),
    ("TAILGUNNER", "Rides at the back of the pack", officer_permissions),
    ("MEMBER", "Full member", member_permissions),
    ("PROSPECT", "Candidate member", candidate_permissions),
    ("HANGAROUND", "First stage candidate", candidate_permissions),
]


def seed_roles(db: Session) -> None:
    """Insert the stock ranks if missing, then the default groups on a fresh install."""
    created = 0
    for name, description, permissions in RANKS:
        existing = db.query(Role).filter(Role.name == name).first()
        if not existing:
            role = Role(name=name, description=description)
            role.permissions = permissions()
            db.add(role)
            created += 1
    db.commit()
    print(f"✅ Seeded {created} ranks ({len(RANKS) - created} already present)")

    if db.query(RoleGroup.id).first():
        print("ℹ️  Role groups already exist, skipping group initialization.")
        return
    groups = role_group_service.initialize_defaults(db)
    print(f"✅ Created role groups: {', '.join(g.name for g in groups)}")
