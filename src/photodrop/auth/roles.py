"""Membership roles and the per-request group role."""

from enum import Enum


class MembershipRole(str, Enum):
    """Role stored on a membership row."""

    ADMIN = "admin"
    MEMBER = "member"


class GroupRole(str, Enum):
    """Authority a user holds in their active group.

    Owner is not stored on memberships; it is derived from ``Group.owner_id``
    once, here, so permission checks only ever look at this value.
    """

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def derive(cls, membership_role: str, *, is_owner: bool) -> "GroupRole":
        if is_owner:
            return cls.OWNER
        if MembershipRole(membership_role) == MembershipRole.ADMIN:
            return cls.ADMIN
        return cls.MEMBER

    @property
    def is_admin(self) -> bool:
        return self in (GroupRole.OWNER, GroupRole.ADMIN)

    @property
    def is_owner(self) -> bool:
        return self is GroupRole.OWNER
