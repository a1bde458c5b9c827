"""Request and response models for auth, users, groups and photos."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from photodrop.auth.memberships import GroupSummary, SessionState
from photodrop.auth.roles import GroupRole, MembershipRole
from photodrop.metadata import User


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------------------------------------------------------------------------
# requests
# ---------------------------------------------------------------------------

class SendLoginLinkRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    group_id: Optional[uuid.UUID] = None


class SendInviteRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    role: MembershipRole = MembershipRole.MEMBER
    name: Optional[str] = Field(None, max_length=100)


class VerifyMagicLinkRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=128)
    name: Optional[str] = None


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class SwitchGroupRequest(CamelModel):
    group_id: uuid.UUID


class SelectGroupRequest(CamelModel):
    group_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    refresh_token: Optional[str] = None


class UpdateMemberRequest(CamelModel):
    role: Optional[MembershipRole] = None
    name: Optional[str] = None


class UpdateProfileRequest(CamelModel):
    name: Optional[str] = None
    profile_color: Optional[str] = None


class UpdatePreferencesRequest(CamelModel):
    comments_enabled: bool


class CreatePhotoRequest(CamelModel):
    storage_key: str = Field(..., min_length=1, max_length=1024)
    thumbnail_key: Optional[str] = Field(None, max_length=1024)
    caption: Optional[str] = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# responses
# ---------------------------------------------------------------------------

class MessageResponse(CamelModel):
    message: str


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    profile_color: str


class CurrentGroupResponse(CamelModel):
    id: uuid.UUID
    name: str
    role: GroupRole
    owner_id: uuid.UUID


class GroupResponse(CamelModel):
    id: uuid.UUID
    name: str
    role: GroupRole
    owner_id: uuid.UUID
    is_owner: bool
    joined_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, summary: GroupSummary) -> "GroupResponse":
        return cls(
            id=summary.group_id,
            name=summary.name,
            role=summary.role,
            owner_id=summary.owner_id,
            is_owner=summary.is_owner,
            joined_at=summary.joined_at,
        )


class SessionResponse(CamelModel):
    """Shape returned by verify, refresh, switch-group and select-group."""

    access_token: Optional[str] = None
    user: UserResponse
    current_group: Optional[CurrentGroupResponse] = None
    groups: List[GroupResponse] = Field(default_factory=list)
    needs_group_selection: bool = False

    @classmethod
    def build(cls, user: User, state: SessionState, access_token: Optional[str] = None) -> "SessionResponse":
        current = None
        if state.current_group is not None:
            current = CurrentGroupResponse(
                id=state.current_group.group_id,
                name=state.current_group.name,
                role=state.current_group.role,
                owner_id=state.current_group.owner_id,
            )
        return cls(
            access_token=access_token,
            user=UserResponse.model_validate(user),
            current_group=current,
            groups=[GroupResponse.from_summary(g) for g in state.groups],
            needs_group_selection=state.needs_group_selection,
        )


class NeedsNameResponse(CamelModel):
    needs_name: bool = True
    email: str


class MemberResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    profile_color: str
    role: GroupRole
    joined_at: Optional[datetime] = None


class PhotoResponse(CamelModel):
    id: uuid.UUID
    group_id: uuid.UUID
    uploaded_by: Optional[uuid.UUID] = None
    caption: Optional[str] = None
    storage_key: str
    thumbnail_key: Optional[str] = None
    uploaded_at: Optional[datetime] = None
