"""Utilities for recording auth and group administration activity events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from photodrop.metadata import ActivityEvent


logger = logging.getLogger(__name__)

EVENT_AUTH_LOGIN = "auth.login"
EVENT_AUTH_TOKEN_REJECTED = "auth.token_rejected"
EVENT_AUTH_REFRESH = "auth.refresh"
EVENT_AUTH_LOGOUT = "auth.logout"
EVENT_AUTH_GROUP_SWITCHED = "auth.group_switched"
EVENT_GROUP_ROLE_CHANGED = "group.role_changed"
EVENT_GROUP_MEMBER_REMOVED = "group.member_removed"
EVENT_GROUP_DELETED = "group.deleted"


@dataclass(frozen=True)
class RequestMeta:
    """Request details copied onto activity events."""

    path: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestMeta":
        client_ip = extract_client_ip(
            x_forwarded_for=request.headers.get("x-forwarded-for"),
            x_real_ip=request.headers.get("x-real-ip"),
        )
        if client_ip is None and request.client is not None:
            client_ip = request.client.host
        return cls(
            path=request.url.path,
            client_ip=client_ip,
            user_agent=request.headers.get("user-agent"),
        )


def extract_client_ip(
    *,
    x_forwarded_for: Optional[str] = None,
    x_real_ip: Optional[str] = None,
) -> Optional[str]:
    """Extract the best-effort client IP from proxy headers."""
    forwarded = str(x_forwarded_for or "").strip()
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first[:64]
    real_ip = str(x_real_ip or "").strip()
    if real_ip:
        return real_ip[:64]
    return None


def _normalize_uuid(value: Optional[object]) -> Optional[UUID]:
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


def _truncate(value: Optional[str], max_len: int) -> Optional[str]:
    text = str(value or "").strip()
    if not text:
        return None
    return text[:max_len]


def record_activity_event(
    db: Session,
    *,
    event_type: str,
    actor_user_id: Optional[object] = None,
    group_id: Optional[object] = None,
    meta: Optional[RequestMeta] = None,
    details: Optional[dict[str, Any]] = None,
) -> Optional[ActivityEvent]:
    """Add an activity event to the caller's unit of work.

    The row is committed (or rolled back) together with the change it
    describes, so a rejected operation only leaves a trace when the caller
    commits it explicitly.
    """
    normalized_event_type = str(event_type or "").strip().lower()
    if not normalized_event_type:
        return None

    meta = meta or RequestMeta()
    event = ActivityEvent(
        group_id=_normalize_uuid(group_id),
        actor_user_id=_normalize_uuid(actor_user_id),
        event_type=normalized_event_type[:120],
        request_path=_truncate(meta.path, 255),
        client_ip=_truncate(meta.client_ip, 64),
        user_agent=_truncate(meta.user_agent, 512),
        details=details if isinstance(details, dict) else {},
    )
    db.add(event)
    logger.debug("Recorded activity event type=%s group=%s", normalized_event_type, event.group_id)
    return event
