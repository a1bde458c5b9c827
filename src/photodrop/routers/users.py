"""Endpoints for the signed-in user's own profile and preferences."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from photodrop.auth.dependencies import get_auth_context
from photodrop.auth.errors import InvalidRequest, NameRequired, NoLongerAMember, Unauthenticated
from photodrop.auth.jwt import AccessClaims
from photodrop.auth.magic_links import normalize_name
from photodrop.auth.memberships import SessionState, find_group, get_membership, groups_for
from photodrop.auth.schemas import (
    MessageResponse,
    SessionResponse,
    UpdatePreferencesRequest,
    UpdateProfileRequest,
    UserResponse,
)
from photodrop.database import get_db
from photodrop.metadata import PROFILE_COLORS, User

router = APIRouter(prefix="/users", tags=["users"])


def _load_user(db: Session, claims: AccessClaims) -> User:
    user = db.get(User, claims.user_id)
    if user is None:
        raise Unauthenticated()
    return user


@router.get("/me")
def get_me(
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Current user with live group state.

    Group membership and roles are read from the database, so a removal or
    role change shows up here before the access credential is refreshed.
    ``currentGroup`` is only ever the group the credential is scoped to; once
    that membership is gone it is null until the client refreshes or selects
    a group.
    """
    user = _load_user(db, claims)
    groups = groups_for(db, user.id)
    current = find_group(groups, claims.group_id)
    state = SessionState(
        current_group=current,
        groups=groups,
        needs_group_selection=current is None and len(groups) >= 2,
    )
    return SessionResponse.build(user, state).model_dump(by_alias=True, mode="json", exclude={"access_token"})


@router.patch("/me", response_model=UserResponse)
def update_me(
    payload: UpdateProfileRequest,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    user = _load_user(db, claims)
    if payload.name is not None:
        name = normalize_name(payload.name)
        if name is None:
            raise NameRequired()
        user.name = name
    if payload.profile_color is not None:
        if payload.profile_color not in PROFILE_COLORS:
            raise InvalidRequest("Unknown profile color")
        user.profile_color = payload.profile_color
    db.commit()
    db.refresh(user)
    return user


@router.patch("/me/preferences", response_model=MessageResponse)
def update_preferences(
    payload: UpdatePreferencesRequest,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Per-group UI preferences stored on the caller's membership."""
    membership = get_membership(db, claims.user_id, claims.group_id)
    if membership is None:
        raise NoLongerAMember()
    membership.comments_enabled = payload.comments_enabled
    db.commit()
    return MessageResponse(message="Preferences updated")
