"""Group administration: member roles, removal and group deletion.

Every mutation checks, in order, that the caller may act, that the target
is not the owner, and that at least one admin remains, before touching any
row. The admin count is re-read after locking the group row so two
concurrent demotions cannot both pass the check.
"""

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from photodrop import clock
from photodrop.activity import (
    EVENT_GROUP_DELETED,
    EVENT_GROUP_MEMBER_REMOVED,
    EVENT_GROUP_ROLE_CHANGED,
    RequestMeta,
    record_activity_event,
)
from photodrop.auth.dependencies import ensure_active_group
from photodrop.auth.errors import (
    CannotModifyOwner,
    Forbidden,
    InvalidRequest,
    LastAdminProtection,
    NameRequired,
    NotFound,
)
from photodrop.auth.jwt import AccessClaims
from photodrop.auth.magic_links import normalize_name
from photodrop.auth.memberships import GroupSummary, groups_for
from photodrop.auth.roles import GroupRole, MembershipRole
from photodrop.metadata import (
    PROFILE_COLORS,
    Group,
    MagicLinkToken,
    Membership,
    Photo,
    RefreshSession,
    User,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberInfo:
    user_id: uuid.UUID
    name: str
    email: str
    profile_color: str
    role: GroupRole
    joined_at: Optional[datetime]


def _require_admin(claims: AccessClaims, group_id: uuid.UUID) -> None:
    ensure_active_group(claims, group_id)
    if not claims.role.is_admin:
        raise Forbidden()


def _lock_group(db: Session, group_id: uuid.UUID) -> Group:
    group = db.query(Group).filter(Group.id == group_id).with_for_update().first()
    if group is None:
        raise NotFound("Group not found")
    return group


def _admin_count(db: Session, group_id: uuid.UUID) -> int:
    return db.query(Membership).filter(
        Membership.group_id == group_id,
        Membership.role == MembershipRole.ADMIN.value,
    ).count()


def _target_membership(db: Session, group_id: uuid.UUID, user_id: uuid.UUID) -> Membership:
    membership = db.query(Membership).filter(
        Membership.group_id == group_id,
        Membership.user_id == user_id,
    ).first()
    if membership is None:
        raise NotFound("Member not found")
    return membership


def _check_last_admin(db: Session, group_id: uuid.UUID, membership: Membership) -> None:
    if membership.role == MembershipRole.ADMIN.value and _admin_count(db, group_id) <= 1:
        raise LastAdminProtection()


def list_members(db: Session, claims: AccessClaims, group_id: uuid.UUID) -> List[MemberInfo]:
    """Members of the active group, admins first."""
    _require_admin(claims, group_id)
    group = db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")
    rows = db.query(Membership, User).join(
        User, User.id == Membership.user_id
    ).filter(
        Membership.group_id == group_id
    ).order_by(Membership.joined_at, User.name).all()

    members = [
        MemberInfo(
            user_id=user.id,
            name=user.name,
            email=user.email,
            profile_color=user.profile_color,
            role=GroupRole.derive(membership.role, is_owner=group.owner_id == user.id),
            joined_at=membership.joined_at,
        )
        for membership, user in rows
    ]
    members.sort(key=lambda m: 0 if m.role.is_admin else 1)
    return members


def _apply_role_change(
    db: Session,
    claims: AccessClaims,
    group: Group,
    target_user_id: uuid.UUID,
    new_role: MembershipRole,
    meta: Optional[RequestMeta],
) -> Membership:
    if target_user_id == group.owner_id:
        raise CannotModifyOwner()
    membership = _target_membership(db, group.id, target_user_id)
    if new_role == MembershipRole.MEMBER:
        _check_last_admin(db, group.id, membership)

    previous = membership.role
    membership.role = new_role.value
    record_activity_event(
        db,
        event_type=EVENT_GROUP_ROLE_CHANGED,
        actor_user_id=claims.user_id,
        group_id=group.id,
        meta=meta,
        details={"target_user_id": str(target_user_id), "from": previous, "to": new_role.value},
    )
    return membership


def _rename_target(
    db: Session,
    claims: AccessClaims,
    group: Group,
    target_user_id: uuid.UUID,
    name: Optional[str],
) -> tuple[User, str]:
    """Validate a rename without applying it. Only the owner may rename the owner."""
    if target_user_id == group.owner_id and claims.user_id != group.owner_id:
        raise CannotModifyOwner()
    _target_membership(db, group.id, target_user_id)
    new_name = normalize_name(name)
    if new_name is None:
        raise NameRequired()
    return db.get(User, target_user_id), new_name


def change_role(
    db: Session,
    claims: AccessClaims,
    group_id: uuid.UUID,
    target_user_id: uuid.UUID,
    new_role: MembershipRole,
    *,
    meta: Optional[RequestMeta] = None,
) -> Membership:
    """Set a member's role.

    Raises:
        Forbidden: caller is not an admin
        NotFound: other group, or target is not a member
        CannotModifyOwner: target owns the group
        LastAdminProtection: demoting the only admin
    """
    _require_admin(claims, group_id)
    new_role = MembershipRole(new_role)
    group = _lock_group(db, group_id)
    membership = _apply_role_change(db, claims, group, target_user_id, new_role, meta)
    db.commit()
    db.refresh(membership)
    logger.info("User %s changed role of %s in group %s to %s", claims.user_id, target_user_id, group_id, new_role.value)
    return membership


def rename_member(
    db: Session,
    claims: AccessClaims,
    group_id: uuid.UUID,
    target_user_id: uuid.UUID,
    name: str,
) -> User:
    """Change a member's display name."""
    _require_admin(claims, group_id)
    group = db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found")
    user, new_name = _rename_target(db, claims, group, target_user_id, name)
    user.name = new_name
    db.commit()
    db.refresh(user)
    return user


def update_member(
    db: Session,
    claims: AccessClaims,
    group_id: uuid.UUID,
    target_user_id: uuid.UUID,
    *,
    role: Optional[MembershipRole] = None,
    name: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> None:
    """Change a member's role and/or name in one transaction.

    Both changes are validated before either is applied, so a rejected name
    leaves the role untouched and the other way round.
    """
    _require_admin(claims, group_id)
    if role is None and name is None:
        raise InvalidRequest("Nothing to update")
    group = _lock_group(db, group_id)
    rename = _rename_target(db, claims, group, target_user_id, name) if name is not None else None
    if role is not None:
        _apply_role_change(db, claims, group, target_user_id, MembershipRole(role), meta)
    if rename is not None:
        user, new_name = rename
        user.name = new_name
    db.commit()
    logger.info("User %s updated member %s in group %s", claims.user_id, target_user_id, group_id)


def remove_member(
    db: Session,
    claims: AccessClaims,
    group_id: uuid.UUID,
    target_user_id: uuid.UUID,
    *,
    meta: Optional[RequestMeta] = None,
) -> None:
    """Remove a member from the group.

    Same protections as change_role; removing an admin counts as demoting
    them. Sessions the removed user holds in this group fail on their next
    refresh.
    """
    _require_admin(claims, group_id)
    group = _lock_group(db, group_id)
    if target_user_id == group.owner_id:
        raise CannotModifyOwner()
    membership = _target_membership(db, group_id, target_user_id)
    _check_last_admin(db, group_id, membership)

    db.delete(membership)
    record_activity_event(
        db,
        event_type=EVENT_GROUP_MEMBER_REMOVED,
        actor_user_id=claims.user_id,
        group_id=group_id,
        meta=meta,
        details={"target_user_id": str(target_user_id), "role": membership.role},
    )
    db.commit()
    logger.info("User %s removed %s from group %s", claims.user_id, target_user_id, group_id)


def photo_count(db: Session, claims: AccessClaims, group_id: uuid.UUID) -> int:
    """Number of photos that deleting the group would remove. Owner only."""
    ensure_active_group(claims, group_id)
    if not claims.role.is_owner:
        raise Forbidden("Only the group owner can perform this action")
    return db.query(Photo).filter(Photo.group_id == group_id).count()


def delete_group(
    db: Session,
    claims: AccessClaims,
    group_id: uuid.UUID,
    *,
    meta: Optional[RequestMeta] = None,
) -> List[GroupSummary]:
    """Delete a group with its memberships, tokens and photos.

    Users are kept. Refresh sessions scoped to the group are detached so the
    next refresh re-resolves the user's groups. Returns the caller's
    remaining groups.

    Raises:
        NotFound: not the caller's active group
        Forbidden: caller is not the owner
    """
    ensure_active_group(claims, group_id)
    group = _lock_group(db, group_id)
    if not claims.role.is_owner or group.owner_id != claims.user_id:
        raise Forbidden("Only the group owner can perform this action")

    photos = db.query(Photo).filter(Photo.group_id == group_id).delete(synchronize_session=False)
    tokens = db.query(MagicLinkToken).filter(MagicLinkToken.group_id == group_id).delete(synchronize_session=False)
    members = db.query(Membership).filter(Membership.group_id == group_id).delete(synchronize_session=False)
    db.query(RefreshSession).filter(RefreshSession.group_id == group_id).update(
        {RefreshSession.group_id: None},
        synchronize_session=False,
    )
    db.delete(group)
    record_activity_event(
        db,
        event_type=EVENT_GROUP_DELETED,
        actor_user_id=claims.user_id,
        meta=meta,
        details={
            "group_id": str(group_id),
            "name": group.name,
            "photos": photos,
            "tokens": tokens,
            "memberships": members,
        },
    )
    db.commit()
    logger.info("User %s deleted group %s (%d photos, %d members)", claims.user_id, group_id, photos, members)
    return groups_for(db, claims.user_id)


def create_group(db: Session, *, name: str, owner_email: str, owner_name: str) -> Group:
    """Create a group and its owner's admin membership, creating the owner if needed."""
    owner = db.query(User).filter(User.email == owner_email).first()
    if owner is None:
        owner = User(
            email=owner_email,
            name=owner_name,
            profile_color=random.choice(PROFILE_COLORS),
            created_at=clock.utcnow(),
        )
        db.add(owner)
        db.flush()
    group = Group(name=name, owner_id=owner.id, created_at=clock.utcnow())
    db.add(group)
    db.flush()
    db.add(Membership(
        user_id=owner.id,
        group_id=group.id,
        role=MembershipRole.ADMIN.value,
        joined_at=clock.utcnow(),
    ))
    db.commit()
    db.refresh(group)
    logger.info("Created group %s owned by %s", group.id, owner.id)
    return group
