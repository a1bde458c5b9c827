"""Authentication endpoints: magic links, refresh, group selection, logout."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from photodrop.activity import RequestMeta
from photodrop.auth.config import get_auth_settings
from photodrop.auth.dependencies import get_auth_context, get_optional_auth_context, require_admin
from photodrop.auth.errors import NoSuchMembership, Unauthenticated
from photodrop.auth.jwt import AccessClaims
from photodrop.auth import sessions
from photodrop.auth.magic_links import (
    ExistingUserLoggedIn,
    NewUserCreated,
    NewUserPendingName,
    VerifyFailed,
    build_magic_link_url,
    issue_invite_token,
    issue_login_token,
    verify_magic_link,
)
from photodrop.auth.schemas import (
    MessageResponse,
    NeedsNameResponse,
    RefreshRequest,
    SelectGroupRequest,
    SendInviteRequest,
    SendLoginLinkRequest,
    SessionResponse,
    SwitchGroupRequest,
    VerifyMagicLinkRequest,
)
from photodrop.database import get_db
from photodrop.email import EmailDeliveryError, send_invite_email, send_login_link_email
from photodrop.metadata import Group, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_LINK_MESSAGE = "If that email belongs to a member, a login link is on its way"


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def _set_refresh_cookie(response: Response, value: str) -> None:
    settings = get_auth_settings()
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=value,
        max_age=settings.refresh_cookie_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )


def _clear_refresh_cookie(response: Response) -> None:
    settings = get_auth_settings()
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )


def _presented_refresh_token(request: Request, body_value: Optional[str] = None) -> Optional[str]:
    """Refresh credential from the HTTP-only cookie, else from the request body."""
    cookie_value = request.cookies.get(get_auth_settings().refresh_cookie_name)
    return cookie_value or body_value or None


def _session_response(response: Response, grant: sessions.SessionGrant) -> dict:
    _set_refresh_cookie(response, grant.refresh_token)
    return SessionResponse.build(grant.user, grant.state, grant.access_token).model_dump(
        by_alias=True, mode="json"
    )


# ---------------------------------------------------------------------------
# magic links
# ---------------------------------------------------------------------------

@router.post("/send-login-link", response_model=MessageResponse)
def send_login_link(
    payload: SendLoginLinkRequest,
    db: Session = Depends(get_db),
):
    """Email a login link to an existing member.

    The response is identical whether or not the email matches a member, so
    the endpoint cannot be used to discover who belongs to a group.
    """
    try:
        token = issue_login_token(db, email=payload.email, group_id=payload.group_id)
    except NoSuchMembership:
        logger.info("Login link requested for unknown member")
        return MessageResponse(message=LOGIN_LINK_MESSAGE)

    user = db.query(User).filter(User.email == token.email).first()
    try:
        send_login_link_email(to=token.email, name=user.name, link=build_magic_link_url(token.token))
    except EmailDeliveryError:
        logger.exception("Login link email failed for user %s", user.id)
    return MessageResponse(message=LOGIN_LINK_MESSAGE)


@router.post("/send-invite", response_model=MessageResponse)
def send_invite(
    payload: SendInviteRequest,
    claims: AccessClaims = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Invite someone into the caller's active group with a role. Admin only."""
    token = issue_invite_token(db, claims, email=payload.email, role=payload.role, name=payload.name)
    group = db.get(Group, claims.group_id)
    send_invite_email(
        to=token.email,
        name=token.invite_name,
        group_name=group.name if group else "your group",
        link=build_magic_link_url(token.token),
    )
    return MessageResponse(message="Invite sent")


@router.post("/verify-magic-link")
def verify_link(
    payload: VerifyMagicLinkRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Consume a magic link and start a session.

    Returns ``{"needsName": true}`` when an invite creates a new account and
    no name is known yet; the client asks for one and calls again with the
    same token.
    """
    outcome = verify_magic_link(db, payload.token, name=payload.name, meta=RequestMeta.from_request(request))

    if isinstance(outcome, VerifyFailed):
        raise outcome.error
    if isinstance(outcome, NewUserPendingName):
        return NeedsNameResponse(email=outcome.email).model_dump(by_alias=True, mode="json")
    if isinstance(outcome, (ExistingUserLoggedIn, NewUserCreated)):
        return _session_response(response, outcome.grant)
    raise TypeError(f"Unhandled verify outcome: {outcome!r}")


# ---------------------------------------------------------------------------
# sessions
# ---------------------------------------------------------------------------

@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
):
    """Rotate the refresh credential and mint a new access credential."""
    raw_token = _presented_refresh_token(request, payload.refresh_token if payload else None)
    grant = sessions.refresh_session(db, raw_token, meta=RequestMeta.from_request(request))
    return _session_response(response, grant)


@router.post("/switch-group")
def switch_group(
    payload: SwitchGroupRequest,
    request: Request,
    response: Response,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Re-issue credentials scoped to another group the caller belongs to."""
    grant = sessions.switch_group(
        db,
        claims,
        payload.group_id,
        refresh_token=_presented_refresh_token(request),
        meta=RequestMeta.from_request(request),
    )
    return _session_response(response, grant)


@router.post("/select-group")
def select_group(
    payload: SelectGroupRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Pick the first active group after a sign-in that needed a choice."""
    grant = sessions.select_group(
        db,
        _presented_refresh_token(request, payload.refresh_token),
        payload.group_id,
        user_id=payload.user_id,
        meta=RequestMeta.from_request(request),
    )
    return _session_response(response, grant)


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = None,
    claims: Optional[AccessClaims] = Depends(get_optional_auth_context),
    db: Session = Depends(get_db),
):
    """Revoke the refresh credential and clear its cookie.

    Access credentials already issued stay valid until they expire.
    """
    raw_token = _presented_refresh_token(request, payload.refresh_token if payload else None)
    if claims is None and raw_token is None:
        raise Unauthenticated()
    sessions.logout(db, raw_token, meta=RequestMeta.from_request(request))
    _clear_refresh_cookie(response)
    return MessageResponse(message="Logged out")
