"""Session management: access credentials plus rotating refresh sessions.

A logical session is a chain of ``RefreshSession`` rows. Each refresh
atomically marks the presented row as rotated and inserts its successor,
so replaying an old refresh value fails with ``InvalidRefresh``.
"""

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from photodrop import clock
from photodrop.activity import (
    EVENT_AUTH_GROUP_SWITCHED,
    EVENT_AUTH_LOGOUT,
    EVENT_AUTH_REFRESH,
    RequestMeta,
    record_activity_event,
)
from photodrop.auth.config import get_auth_settings
from photodrop.auth.errors import InvalidRefresh, NoLongerAMember, NotAMember
from photodrop.auth.jwt import AccessClaims, create_access_token
from photodrop.auth.memberships import SessionState, groups_for, resolve_session_state
from photodrop.metadata import RefreshSession, User

logger = logging.getLogger(__name__)


@dataclass
class SessionGrant:
    """Credentials and group state handed back to the client."""

    user: User
    state: SessionState
    refresh_token: str
    access_token: Optional[str] = None


def hash_refresh_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _new_refresh_session(
    db: Session,
    *,
    user_id: uuid.UUID,
    group_id: Optional[uuid.UUID],
    session_id: Optional[uuid.UUID] = None,
) -> tuple[RefreshSession, str]:
    settings = get_auth_settings()
    raw_token = secrets.token_urlsafe(32)
    now = clock.utcnow()
    session = RefreshSession(
        id=session_id or uuid.uuid4(),
        user_id=user_id,
        group_id=group_id,
        token_hash=hash_refresh_token(raw_token),
        created_at=now,
        expires_at=now + timedelta(days=settings.refresh_token_ttl_days),
    )
    db.add(session)
    return session, raw_token


def _grant_for_state(user: User, state: SessionState, raw_refresh: str) -> SessionGrant:
    access_token = None
    if state.current_group is not None:
        access_token = create_access_token(user.id, state.current_group.group_id, state.current_group.role)
    return SessionGrant(user=user, state=state, refresh_token=raw_refresh, access_token=access_token)


def issue_session(db: Session, *, user: User, state: SessionState) -> SessionGrant:
    """Start a new logical session for ``user`` in the group chosen by ``state``.

    Adds the refresh row to the caller's unit of work; the caller commits.
    """
    group_id = state.current_group.group_id if state.current_group else None
    _, raw_refresh = _new_refresh_session(db, user_id=user.id, group_id=group_id)
    return _grant_for_state(user, state, raw_refresh)


def _load_live_session(db: Session, raw_token: Optional[str]) -> RefreshSession:
    if not raw_token:
        raise InvalidRefresh()
    session = db.query(RefreshSession).filter(
        RefreshSession.token_hash == hash_refresh_token(raw_token)
    ).first()
    if session is None:
        raise InvalidRefresh()
    if session.rotated_at is not None or session.revoked_at is not None:
        logger.warning("Replay of retired refresh session %s for user %s", session.id, session.user_id)
        raise InvalidRefresh()
    if clock.utcnow() >= clock.as_utc(session.expires_at):
        raise InvalidRefresh()
    return session


def _rotate(
    db: Session,
    session: RefreshSession,
    *,
    group_id: Optional[uuid.UUID],
) -> str:
    """Retire ``session`` and insert its successor in the same transaction."""
    successor_id = uuid.uuid4()
    retired = db.query(RefreshSession).filter(
        RefreshSession.id == session.id,
        RefreshSession.rotated_at.is_(None),
        RefreshSession.revoked_at.is_(None),
    ).update(
        {
            RefreshSession.rotated_at: clock.utcnow(),
            RefreshSession.replaced_by_id: successor_id,
        },
        synchronize_session=False,
    )
    if retired != 1:
        # Lost the race against a concurrent refresh of the same value.
        db.rollback()
        raise InvalidRefresh()
    _, raw_refresh = _new_refresh_session(
        db,
        user_id=session.user_id,
        group_id=group_id,
        session_id=successor_id,
    )
    return raw_refresh


def refresh_session(
    db: Session,
    raw_token: Optional[str],
    *,
    meta: Optional[RequestMeta] = None,
) -> SessionGrant:
    """Exchange a refresh credential for fresh credentials.

    The role in the new access credential is re-read from the membership
    table. If the membership behind the active group is gone, the session
    is detached from that group and ``NoLongerAMember`` is raised without
    rotating; the next refresh or select-group re-resolves the group.

    Raises:
        InvalidRefresh: unknown, expired, revoked or already-rotated credential
        NoLongerAMember: the active group's membership was removed
    """
    session = _load_live_session(db, raw_token)
    user = db.get(User, session.user_id)
    if user is None:
        raise InvalidRefresh()

    groups = groups_for(db, user.id)
    if session.group_id is not None:
        state = resolve_session_state(groups, session.group_id)
        if state.current_group is None or state.current_group.group_id != session.group_id:
            lost_group_id = session.group_id
            session.group_id = None
            db.commit()
            logger.info("User %s lost membership in active group %s", user.id, lost_group_id)
            raise NoLongerAMember()
    else:
        state = resolve_session_state(groups)

    new_group_id = state.current_group.group_id if state.current_group else None
    raw_refresh = _rotate(db, session, group_id=new_group_id)
    user.last_seen_at = clock.utcnow()
    record_activity_event(
        db,
        event_type=EVENT_AUTH_REFRESH,
        actor_user_id=user.id,
        group_id=new_group_id,
        meta=meta,
    )
    db.commit()
    return _grant_for_state(user, state, raw_refresh)


def _scope_to_group(
    db: Session,
    *,
    user: User,
    group_id: uuid.UUID,
    session: Optional[RefreshSession],
    meta: Optional[RequestMeta],
) -> SessionGrant:
    groups = groups_for(db, user.id)
    state = resolve_session_state(groups, group_id)
    if state.current_group is None or state.current_group.group_id != group_id:
        raise NotAMember()

    if session is not None:
        raw_refresh = _rotate(db, session, group_id=group_id)
    else:
        _, raw_refresh = _new_refresh_session(db, user_id=user.id, group_id=group_id)

    record_activity_event(
        db,
        event_type=EVENT_AUTH_GROUP_SWITCHED,
        actor_user_id=user.id,
        group_id=group_id,
        meta=meta,
    )
    db.commit()
    return _grant_for_state(user, state, raw_refresh)


def switch_group(
    db: Session,
    claims: AccessClaims,
    target_group_id: uuid.UUID,
    *,
    refresh_token: Optional[str] = None,
    meta: Optional[RequestMeta] = None,
) -> SessionGrant:
    """Re-scope an authenticated session to ``target_group_id``.

    The presented refresh credential, when it belongs to the same user, is
    rotated into the new group. Otherwise a new refresh session is started.
    The old access credential is left to expire on its own.

    Raises:
        NotAMember: the caller has no membership in the target group
    """
    user = db.get(User, claims.user_id)
    if user is None:
        raise NotAMember()

    session = None
    if refresh_token:
        try:
            session = _load_live_session(db, refresh_token)
        except InvalidRefresh:
            session = None
        if session is not None and session.user_id != user.id:
            session = None

    return _scope_to_group(db, user=user, group_id=target_group_id, session=session, meta=meta)


def select_group(
    db: Session,
    refresh_token: Optional[str],
    group_id: uuid.UUID,
    *,
    user_id: Optional[uuid.UUID] = None,
    meta: Optional[RequestMeta] = None,
) -> SessionGrant:
    """Pick the active group for a session that has no group scope yet.

    Authenticated by the refresh credential alone, since no access
    credential exists before the first selection.

    Raises:
        InvalidRefresh: bad refresh credential, or it belongs to another user
        NotAMember: the user has no membership in ``group_id``
    """
    session = _load_live_session(db, refresh_token)
    if user_id is not None and session.user_id != user_id:
        raise InvalidRefresh()
    user = db.get(User, session.user_id)
    if user is None:
        raise InvalidRefresh()
    return _scope_to_group(db, user=user, group_id=group_id, session=session, meta=meta)


def logout(
    db: Session,
    refresh_token: Optional[str],
    *,
    meta: Optional[RequestMeta] = None,
) -> bool:
    """Revoke the presented refresh credential.

    Already-issued access credentials stay valid until they expire.
    Returns whether a live session was revoked.
    """
    if not refresh_token:
        return False
    revoked = db.query(RefreshSession).filter(
        RefreshSession.token_hash == hash_refresh_token(refresh_token),
        RefreshSession.revoked_at.is_(None),
        RefreshSession.rotated_at.is_(None),
    ).update(
        {RefreshSession.revoked_at: clock.utcnow()},
        synchronize_session=False,
    )
    if revoked:
        session = db.query(RefreshSession).filter(
            RefreshSession.token_hash == hash_refresh_token(refresh_token)
        ).first()
        record_activity_event(
            db,
            event_type=EVENT_AUTH_LOGOUT,
            actor_user_id=session.user_id if session else None,
            group_id=session.group_id if session else None,
            meta=meta,
        )
    db.commit()
    return bool(revoked)


def purge_expired_sessions(db: Session) -> int:
    """Delete refresh sessions past their expiry. Returns the count removed."""
    removed = db.query(RefreshSession).filter(
        RefreshSession.expires_at < clock.utcnow()
    ).delete(synchronize_session=False)
    db.commit()
    return removed
