"""Magic-link tokens: issuing login and invite links and consuming them.

A token moves through exactly one of two terminal paths: consumed once by
``verify_magic_link`` or left to expire. Consumption is a single
conditional UPDATE on ``used_at IS NULL``, so of several concurrent
verifications of the same token only one can win.
"""

import logging
import random
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Union

from sqlalchemy.orm import Session

from photodrop import clock
from photodrop.activity import (
    EVENT_AUTH_LOGIN,
    EVENT_AUTH_TOKEN_REJECTED,
    RequestMeta,
    record_activity_event,
)
from photodrop.auth.config import get_auth_settings
from photodrop.auth.errors import (
    AlreadyAMember,
    AuthError,
    ExpiredToken,
    Forbidden,
    InvalidRequest,
    InvalidToken,
    NoLongerAMember,
    NoSuchMembership,
    TokenAlreadyUsed,
)
from photodrop.auth.jwt import AccessClaims
from photodrop.auth.memberships import get_membership, groups_for, resolve_session_state
from photodrop.auth.roles import MembershipRole
from photodrop.auth.sessions import SessionGrant, issue_session
from photodrop.metadata import (
    PROFILE_COLORS,
    TOKEN_TYPE_INVITE,
    TOKEN_TYPE_LOGIN,
    Group,
    MagicLinkToken,
    Membership,
    User,
)
from photodrop.settings import settings

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


# ---------------------------------------------------------------------------
# verify outcomes
# ---------------------------------------------------------------------------

@dataclass
class ExistingUserLoggedIn:
    grant: SessionGrant
    group_id: uuid.UUID


@dataclass
class NewUserCreated:
    grant: SessionGrant
    group_id: uuid.UUID


@dataclass
class NewUserPendingName:
    """Invite for an unknown email with no name yet; the token is untouched."""

    email: str
    group_id: uuid.UUID


@dataclass
class VerifyFailed:
    error: AuthError


VerifyOutcome = Union[ExistingUserLoggedIn, NewUserCreated, NewUserPendingName, VerifyFailed]


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def generate_token_value() -> str:
    """64 hex characters from a CSPRNG."""
    return secrets.token_hex(32)


def build_magic_link_url(token: str) -> str:
    return f"{settings.app_url.rstrip('/')}/auth/{token}"


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Trim a display name; empty means absent, overlong is rejected."""
    text = str(name or "").strip()
    if not text:
        return None
    if len(text) > MAX_NAME_LENGTH:
        raise InvalidRequest(f"Name must be at most {MAX_NAME_LENGTH} characters")
    return text


def _normalize_email(email: str) -> str:
    value = str(email or "").strip()
    if not value or "@" not in value:
        raise InvalidRequest("A valid email address is required")
    return value


def _get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def _lookup_token(db: Session, token: str) -> Optional[MagicLinkToken]:
    return db.query(MagicLinkToken).filter(MagicLinkToken.token == token).first()


def _new_token(
    db: Session,
    *,
    group_id: uuid.UUID,
    email: str,
    token_type: str,
    invite_role: Optional[str] = None,
    invite_name: Optional[str] = None,
) -> MagicLinkToken:
    auth_settings = get_auth_settings()
    now = clock.utcnow()
    row = MagicLinkToken(
        token=generate_token_value(),
        group_id=group_id,
        email=email,
        type=token_type,
        invite_role=invite_role,
        invite_name=invite_name,
        created_at=now,
        expires_at=now + timedelta(minutes=auth_settings.magic_link_ttl_minutes),
    )
    db.add(row)
    return row


# ---------------------------------------------------------------------------
# issuing
# ---------------------------------------------------------------------------

def issue_login_token(
    db: Session,
    *,
    email: str,
    group_id: Optional[uuid.UUID] = None,
) -> MagicLinkToken:
    """Issue a login link for an existing member.

    Without ``group_id`` the link is bound to the user's earliest membership;
    the verify step still offers group selection to multi-group users.

    Raises:
        NoSuchMembership: no user with this email, or not a member of the group
    """
    email = _normalize_email(email)
    user = _get_user_by_email(db, email)
    if user is None:
        raise NoSuchMembership()

    if group_id is None:
        membership = db.query(Membership).filter(
            Membership.user_id == user.id
        ).order_by(Membership.joined_at, Membership.group_id).first()
    else:
        membership = get_membership(db, user.id, group_id)
    if membership is None:
        raise NoSuchMembership()

    row = _new_token(db, group_id=membership.group_id, email=user.email, token_type=TOKEN_TYPE_LOGIN)
    db.commit()
    db.refresh(row)
    logger.info("Issued login link for user %s in group %s", user.id, membership.group_id)
    return row


def issue_invite_token(
    db: Session,
    claims: AccessClaims,
    *,
    email: str,
    role: MembershipRole = MembershipRole.MEMBER,
    name: Optional[str] = None,
) -> MagicLinkToken:
    """Issue an invite into the caller's active group.

    Raises:
        Forbidden: caller is not an admin of the group
        AlreadyAMember: the email already belongs to a member
    """
    if not claims.role.is_admin:
        raise Forbidden()
    email = _normalize_email(email)
    invite_name = normalize_name(name)

    existing = _get_user_by_email(db, email)
    if existing is not None and get_membership(db, existing.id, claims.group_id) is not None:
        raise AlreadyAMember()

    row = _new_token(
        db,
        group_id=claims.group_id,
        email=email,
        token_type=TOKEN_TYPE_INVITE,
        invite_role=MembershipRole(role).value,
        invite_name=invite_name,
    )
    db.commit()
    db.refresh(row)
    logger.info("Issued %s invite into group %s by user %s", row.invite_role, claims.group_id, claims.user_id)
    return row


# ---------------------------------------------------------------------------
# verification
# ---------------------------------------------------------------------------

def _reject(
    db: Session,
    error: AuthError,
    *,
    token: Optional[MagicLinkToken],
    actor_user_id: Optional[uuid.UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> VerifyFailed:
    record_activity_event(
        db,
        event_type=EVENT_AUTH_TOKEN_REJECTED,
        actor_user_id=actor_user_id,
        group_id=token.group_id if token is not None else None,
        meta=meta,
        details={
            "reason": error.code,
            "token_type": token.type if token is not None else None,
        },
    )
    db.commit()
    logger.info("Rejected magic link: %s", error.code)
    return VerifyFailed(error)


def _consume(db: Session, token: MagicLinkToken) -> bool:
    consumed = db.query(MagicLinkToken).filter(
        MagicLinkToken.token == token.token,
        MagicLinkToken.used_at.is_(None),
    ).update(
        {MagicLinkToken.used_at: clock.utcnow()},
        synchronize_session=False,
    )
    return consumed == 1


def verify_magic_link(
    db: Session,
    token_value: str,
    *,
    name: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> VerifyOutcome:
    """Consume a magic-link token and start a session.

    Steps:
    1. look up the token (``InvalidToken``)
    2. reject if past ``expires_at`` (``ExpiredToken``)
    3. reject if already consumed (``TokenAlreadyUsed``)
    4. an invite for an unknown email with no name stops here with
       ``NewUserPendingName`` and leaves the token unconsumed
    5. consume with a compare-and-set; losing the race is ``TokenAlreadyUsed``
    6. create the user (invite) and ensure the membership; a login whose
       membership disappeared since issuance fails with ``NoLongerAMember``
    7. start a session: invites land in the token's group, logins follow
       the membership resolver (auto-select one group, ask when several)

    Failures are returned as ``VerifyFailed`` rather than raised.
    """
    try:
        name = normalize_name(name)
    except InvalidRequest as e:
        return VerifyFailed(e)

    token = _lookup_token(db, str(token_value or "").strip())
    if token is None:
        return _reject(db, InvalidToken(), token=None, meta=meta)
    if clock.utcnow() > clock.as_utc(token.expires_at):
        return _reject(db, ExpiredToken(), token=token, meta=meta)
    if token.used_at is not None:
        return _reject(db, TokenAlreadyUsed(), token=token, meta=meta)
    if token.type == TOKEN_TYPE_INVITE and token.invite_role is None:
        return _reject(db, InvalidToken(), token=token, meta=meta)

    group_id = token.group_id
    user = _get_user_by_email(db, token.email)
    new_user_name = None
    if token.type == TOKEN_TYPE_INVITE and user is None:
        new_user_name = name or token.invite_name
        if not new_user_name:
            return NewUserPendingName(email=token.email, group_id=group_id)

    if not _consume(db, token):
        db.rollback()
        return _reject(db, TokenAlreadyUsed(), token=token, meta=meta)

    if db.get(Group, group_id) is None:
        return _reject(db, InvalidToken(), token=token, meta=meta)

    created = False
    if token.type == TOKEN_TYPE_INVITE:
        if user is None:
            user = User(
                email=token.email,
                name=new_user_name,
                profile_color=random.choice(PROFILE_COLORS),
                created_at=clock.utcnow(),
            )
            db.add(user)
            db.flush()
            created = True
        if get_membership(db, user.id, group_id) is None:
            db.add(Membership(
                user_id=user.id,
                group_id=group_id,
                role=token.invite_role,
                joined_at=clock.utcnow(),
            ))
            db.flush()
        state = resolve_session_state(groups_for(db, user.id), group_id)
    else:
        if user is None or get_membership(db, user.id, group_id) is None:
            return _reject(
                db,
                NoLongerAMember(),
                token=token,
                actor_user_id=user.id if user is not None else None,
                meta=meta,
            )
        state = resolve_session_state(groups_for(db, user.id))

    user.last_seen_at = clock.utcnow()
    grant = issue_session(db, user=user, state=state)
    record_activity_event(
        db,
        event_type=EVENT_AUTH_LOGIN,
        actor_user_id=user.id,
        group_id=group_id,
        meta=meta,
        details={"token_type": token.type, "new_user": created},
    )
    db.commit()

    if created:
        logger.info("Created user %s from invite into group %s", user.id, group_id)
        return NewUserCreated(grant=grant, group_id=group_id)
    return ExistingUserLoggedIn(grant=grant, group_id=group_id)


def purge_expired_tokens(db: Session) -> int:
    """Delete magic-link tokens past their expiry. Returns the count removed."""
    removed = db.query(MagicLinkToken).filter(
        MagicLinkToken.expires_at < clock.utcnow()
    ).delete(synchronize_session=False)
    db.commit()
    return removed
