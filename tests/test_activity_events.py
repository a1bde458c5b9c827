"""Tests for activity event logging."""

import uuid

from starlette.requests import Request
from sqlalchemy.orm import Session

from photodrop.activity import (
    EVENT_AUTH_LOGIN,
    RequestMeta,
    extract_client_ip,
    record_activity_event,
)
from photodrop.metadata import ActivityEvent


def _build_request(path: str = "/auth/verify-magic-link", headers=None) -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": path,
            "headers": headers or [],
            "client": ("198.51.100.7", 50000),
        }
    )


def test_record_activity_event_persists_row(test_db: Session):
    group_id = uuid.uuid4()
    user_id = uuid.uuid4()

    record_activity_event(
        test_db,
        event_type=EVENT_AUTH_LOGIN,
        actor_user_id=user_id,
        group_id=str(group_id),
        meta=RequestMeta(path="/auth/verify-magic-link", client_ip="203.0.113.10", user_agent="pytest-agent"),
        details={"token_type": "login"},
    )
    test_db.commit()

    row = test_db.query(ActivityEvent).one()
    assert row.event_type == EVENT_AUTH_LOGIN
    assert row.group_id == group_id
    assert row.actor_user_id == user_id
    assert row.request_path == "/auth/verify-magic-link"
    assert row.client_ip == "203.0.113.10"
    assert row.user_agent == "pytest-agent"
    assert row.details == {"token_type": "login"}


def test_record_activity_event_ignores_blank_type(test_db: Session):
    assert record_activity_event(test_db, event_type="  ") is None
    test_db.commit()

    assert test_db.query(ActivityEvent).count() == 0


def test_record_activity_event_normalizes_bad_ids_and_type(test_db: Session):
    record_activity_event(test_db, event_type=" Auth.Logout ", actor_user_id="not-a-uuid", group_id="")
    test_db.commit()

    row = test_db.query(ActivityEvent).one()
    assert row.event_type == "auth.logout"
    assert row.actor_user_id is None
    assert row.group_id is None
    assert row.details == {}


def test_uncommitted_event_is_discarded_on_rollback(test_db: Session):
    record_activity_event(test_db, event_type=EVENT_AUTH_LOGIN)
    test_db.rollback()

    assert test_db.query(ActivityEvent).count() == 0


def test_extract_client_ip_prefers_forwarded_for():
    assert extract_client_ip(x_forwarded_for="203.0.113.1, 10.0.0.1", x_real_ip="10.0.0.2") == "203.0.113.1"
    assert extract_client_ip(x_forwarded_for="  ", x_real_ip="10.0.0.2") == "10.0.0.2"
    assert extract_client_ip() is None


def test_request_meta_from_request_falls_back_to_peer_address():
    meta = RequestMeta.from_request(_build_request(headers=[(b"user-agent", b"browser/1.0")]))

    assert meta.path == "/auth/verify-magic-link"
    assert meta.client_ip == "198.51.100.7"
    assert meta.user_agent == "browser/1.0"

    proxied = RequestMeta.from_request(_build_request(headers=[(b"x-forwarded-for", b"203.0.113.9")]))
    assert proxied.client_ip == "203.0.113.9"
