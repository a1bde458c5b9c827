"""Group listing and administration endpoints."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from photodrop import groups as group_admin
from photodrop.activity import RequestMeta
from photodrop.auth.dependencies import get_auth_context
from photodrop.auth.jwt import AccessClaims
from photodrop.auth.memberships import groups_for
from photodrop.auth.schemas import GroupResponse, MemberResponse, MessageResponse, UpdateMemberRequest
from photodrop.database import get_db

router = APIRouter(prefix="/groups", tags=["groups"])


def _member_to_response(member: group_admin.MemberInfo) -> MemberResponse:
    return MemberResponse(
        id=member.user_id,
        name=member.name,
        email=member.email,
        profile_color=member.profile_color,
        role=member.role,
        joined_at=member.joined_at,
    )


@router.get("", response_model=List[GroupResponse])
def list_groups(
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Every group the caller belongs to, with their role in each."""
    return [GroupResponse.from_summary(g) for g in groups_for(db, claims.user_id)]


@router.get("/{group_id}/members", response_model=List[MemberResponse])
def list_members(
    group_id: uuid.UUID,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return [_member_to_response(m) for m in group_admin.list_members(db, claims, group_id)]


@router.patch("/{group_id}/members/{user_id}", response_model=MessageResponse)
def update_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: UpdateMemberRequest,
    request: Request,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Change a member's role and/or display name. Admin only."""
    group_admin.update_member(
        db,
        claims,
        group_id,
        user_id,
        role=payload.role,
        name=payload.name,
        meta=RequestMeta.from_request(request),
    )
    return MessageResponse(message="Member updated")


@router.delete("/{group_id}/members/{user_id}", response_model=MessageResponse)
def remove_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    request: Request,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    group_admin.remove_member(db, claims, group_id, user_id, meta=RequestMeta.from_request(request))
    return MessageResponse(message="Member removed")


@router.get("/{group_id}/photo-count")
def photo_count(
    group_id: uuid.UUID,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Photos that deleting the group would remove. Owner only."""
    return {"count": group_admin.photo_count(db, claims, group_id)}


@router.delete("/{group_id}")
def delete_group(
    group_id: uuid.UUID,
    request: Request,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Delete the group. Owner only.

    The caller's access credential no longer matches any group afterwards;
    the returned list lets the client pick where to go next.
    """
    remaining = group_admin.delete_group(db, claims, group_id, meta=RequestMeta.from_request(request))
    return {
        "message": "Group deleted",
        "groups": [GroupResponse.from_summary(g).model_dump(by_alias=True, mode="json") for g in remaining],
    }
