"""Membership resolution: which groups a user belongs to and as what."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from photodrop.auth.roles import GroupRole
from photodrop.metadata import Group, Membership


@dataclass(frozen=True)
class GroupSummary:
    """One group as seen by one member."""

    group_id: uuid.UUID
    name: str
    owner_id: uuid.UUID
    role: GroupRole
    joined_at: Optional[datetime] = None

    @property
    def is_owner(self) -> bool:
        return self.role.is_owner


@dataclass(frozen=True)
class SessionState:
    """Which group a session acts in, and whether the user must pick one.

    - no groups: ``current_group`` is None and ``needs_group_selection`` is False
    - one group (or a still-valid preferred group): ``current_group`` is set
    - several groups and no preference: ``needs_group_selection`` is True
    """

    current_group: Optional[GroupSummary]
    groups: List[GroupSummary] = field(default_factory=list)
    needs_group_selection: bool = False


def get_membership(db: Session, user_id: uuid.UUID, group_id: uuid.UUID) -> Optional[Membership]:
    return db.query(Membership).filter(
        Membership.user_id == user_id,
        Membership.group_id == group_id,
    ).first()


def groups_for(db: Session, user_id: uuid.UUID) -> List[GroupSummary]:
    """List every group ``user_id`` belongs to with their role in each.

    Sorted by group name for display; callers must not rely on order for
    anything else.
    """
    rows = db.query(Membership, Group).join(
        Group, Group.id == Membership.group_id
    ).filter(
        Membership.user_id == user_id
    ).order_by(Group.name, Group.id).all()

    return [
        GroupSummary(
            group_id=group.id,
            name=group.name,
            owner_id=group.owner_id,
            role=GroupRole.derive(membership.role, is_owner=group.owner_id == user_id),
            joined_at=membership.joined_at,
        )
        for membership, group in rows
    ]


def resolve_group_role(db: Session, user_id: uuid.UUID, group_id: uuid.UUID) -> Optional[GroupRole]:
    """Live role of ``user_id`` in ``group_id``, or None if not a member."""
    row = db.query(Membership.role, Group.owner_id).join(
        Group, Group.id == Membership.group_id
    ).filter(
        Membership.user_id == user_id,
        Membership.group_id == group_id,
    ).first()
    if row is None:
        return None
    membership_role, owner_id = row
    return GroupRole.derive(membership_role, is_owner=owner_id == user_id)


def find_group(groups: List[GroupSummary], group_id: Optional[uuid.UUID]) -> Optional[GroupSummary]:
    if group_id is None:
        return None
    for group in groups:
        if group.group_id == group_id:
            return group
    return None


def resolve_session_state(
    groups: List[GroupSummary],
    preferred_group_id: Optional[uuid.UUID] = None,
) -> SessionState:
    """Decide the active group for a session from the user's memberships."""
    preferred = find_group(groups, preferred_group_id)
    if preferred is not None:
        return SessionState(current_group=preferred, groups=groups)
    if len(groups) == 1:
        return SessionState(current_group=groups[0], groups=groups)
    return SessionState(
        current_group=None,
        groups=groups,
        needs_group_selection=len(groups) >= 2,
    )
