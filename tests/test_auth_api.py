"""End-to-end tests for the auth, users, groups and photos endpoints."""

from typing import Optional

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from photodrop.groups import create_group
from photodrop.metadata import Group, MagicLinkToken, Membership, User
from photodrop import clock

COOKIE = "refreshToken"


def _latest_token(test_db: Session, email: str) -> MagicLinkToken:
    test_db.expire_all()
    return test_db.query(MagicLinkToken).filter(
        MagicLinkToken.email == email
    ).order_by(MagicLinkToken.created_at.desc()).first()


def _login(client: TestClient, test_db: Session, email: str, group_id: Optional[str] = None) -> dict:
    body = {"email": email}
    if group_id:
        body["groupId"] = group_id
    assert client.post("/auth/send-login-link", json=body).status_code == 200
    token = _latest_token(test_db, email)
    response = client.post("/auth/verify-magic-link", json={"token": token.token})
    assert response.status_code == 200, response.text
    return response.json()


def _bearer(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


def _add_member(test_db: Session, group: Group, email: str, role: str = "member") -> User:
    user = test_db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, name=email.split("@")[0], profile_color="rose", created_at=clock.utcnow())
        test_db.add(user)
        test_db.flush()
    test_db.add(Membership(user_id=user.id, group_id=group.id, role=role, joined_at=clock.utcnow()))
    test_db.commit()
    return user


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "healthy"}


def test_send_login_link_does_not_reveal_membership(client: TestClient, test_db: Session):
    create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")

    known = client.post("/auth/send-login-link", json={"email": "owner@x.test"})
    unknown = client.post("/auth/send-login-link", json={"email": "nobody@x.test"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert _latest_token(test_db, "owner@x.test") is not None
    assert _latest_token(test_db, "nobody@x.test") is None


def test_login_returns_session_and_sets_http_only_cookie(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")

    client.post("/auth/send-login-link", json={"email": "owner@x.test"})
    token = _latest_token(test_db, "owner@x.test")
    response = client.post("/auth/verify-magic-link", json={"token": token.token})

    assert response.status_code == 200
    data = response.json()
    assert data["accessToken"]
    assert data["user"]["email"] == "owner@x.test"
    assert data["currentGroup"] == {
        "id": str(group.id),
        "name": "Family",
        "role": "owner",
        "ownerId": str(group.owner_id),
    }
    assert data["needsGroupSelection"] is False
    assert [g["id"] for g in data["groups"]] == [str(group.id)]
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{COOKIE}=")
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()

    reused = client.post("/auth/verify-magic-link", json={"token": token.token})
    assert reused.status_code == 400
    assert reused.json()["code"] == "token_already_used"


def test_unknown_token_is_bad_request(client: TestClient):
    response = client.post("/auth/verify-magic-link", json={"token": "0" * 64})

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_token"


def test_invite_flow_collects_name_then_creates_account(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    owner_session = _login(client, test_db, "owner@x.test")

    invite = client.post(
        "/auth/send-invite",
        json={"email": "cousin@x.test", "role": "member"},
        headers=_bearer(owner_session["accessToken"]),
    )
    assert invite.status_code == 200
    token = _latest_token(test_db, "cousin@x.test")

    first = client.post("/auth/verify-magic-link", json={"token": token.token})
    assert first.json() == {"needsName": True, "email": "cousin@x.test"}

    second = client.post("/auth/verify-magic-link", json={"token": token.token, "name": "Cousin"})
    assert second.status_code == 200
    data = second.json()
    assert data["user"]["name"] == "Cousin"
    assert data["currentGroup"]["id"] == str(group.id)
    assert data["currentGroup"]["role"] == "member"


def test_member_cannot_send_invites(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    _add_member(test_db, group, "member@x.test")
    session = _login(client, test_db, "member@x.test")

    response = client.post(
        "/auth/send-invite",
        json={"email": "friend@x.test"},
        headers=_bearer(session["accessToken"]),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_refresh_rotates_cookie_and_rejects_replay(client: TestClient, test_db: Session):
    create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    _login(client, test_db, "owner@x.test")
    original = client.cookies.get(COOKIE)

    refreshed = client.post("/auth/refresh")
    assert refreshed.status_code == 200
    assert refreshed.json()["accessToken"]
    rotated = client.cookies.get(COOKIE)
    assert rotated and rotated != original

    client.cookies.clear()
    replay = client.post("/auth/refresh", json={"refreshToken": original})
    assert replay.status_code == 401
    assert replay.json()["code"] == "invalid_refresh"

    body_refresh = client.post("/auth/refresh", json={"refreshToken": rotated})
    assert body_refresh.status_code == 200


def test_multi_group_login_then_select_group(client: TestClient, test_db: Session):
    create_group(test_db, name="Alpha", owner_email="multi@x.test", owner_name="Multi")
    beta = create_group(test_db, name="Beta", owner_email="other@x.test", owner_name="Other")
    _add_member(test_db, beta, "multi@x.test")

    data = _login(client, test_db, "multi@x.test")
    assert data["needsGroupSelection"] is True
    assert data["accessToken"] is None
    assert data["currentGroup"] is None
    assert len(data["groups"]) == 2

    selected = client.post("/auth/select-group", json={"userId": data["user"]["id"], "groupId": str(beta.id)})
    assert selected.status_code == 200
    assert selected.json()["currentGroup"]["id"] == str(beta.id)
    me = client.get("/users/me", headers=_bearer(selected.json()["accessToken"]))
    assert me.json()["currentGroup"]["name"] == "Beta"


def test_switch_group_rescopes_credentials(client: TestClient, test_db: Session):
    alpha = create_group(test_db, name="Alpha", owner_email="owner@x.test", owner_name="Owner")
    beta = create_group(test_db, name="Beta", owner_email="other@x.test", owner_name="Other")
    foreign = create_group(test_db, name="Foreign", owner_email="far@x.test", owner_name="Far")
    _add_member(test_db, beta, "owner@x.test")
    data = _login(client, test_db, "owner@x.test", group_id=str(alpha.id))
    selected = client.post("/auth/select-group", json={"groupId": str(alpha.id)}).json()

    denied = client.post(
        "/auth/switch-group",
        json={"groupId": str(foreign.id)},
        headers=_bearer(selected["accessToken"]),
    )
    assert denied.status_code == 404
    assert denied.json()["code"] == "not_a_member"

    switched = client.post(
        "/auth/switch-group",
        json={"groupId": str(beta.id)},
        headers=_bearer(selected["accessToken"]),
    )
    assert switched.status_code == 200
    assert switched.json()["currentGroup"] == {
        "id": str(beta.id),
        "name": "Beta",
        "role": "member",
        "ownerId": str(beta.owner_id),
    }
    assert data["user"]["id"] == switched.json()["user"]["id"]


def test_logout_revokes_refresh_and_clears_cookie(client: TestClient, test_db: Session):
    create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    data = _login(client, test_db, "owner@x.test")
    refresh_value = client.cookies.get(COOKIE)

    response = client.post("/auth/logout", headers=_bearer(data["accessToken"]))
    assert response.status_code == 200
    assert client.cookies.get(COOKIE) is None

    after = client.post("/auth/refresh", json={"refreshToken": refresh_value})
    assert after.status_code == 401


def test_missing_or_bad_bearer_is_401(client: TestClient):
    missing = client.get("/users/me")
    bad = client.get("/users/me", headers=_bearer("garbage"))

    assert missing.status_code == bad.status_code == 401
    assert missing.headers["www-authenticate"] == "Bearer"
    assert missing.json()["code"] == "unauthenticated"


def test_photos_are_invisible_across_groups(client: TestClient, test_db: Session):
    create_group(test_db, name="Alpha", owner_email="a-owner@x.test", owner_name="A")
    beta = create_group(test_db, name="Beta", owner_email="b-owner@x.test", owner_name="B")
    _add_member(test_db, beta, "b-admin@x.test", role="admin")

    alpha_session = _login(client, test_db, "a-owner@x.test")
    created = client.post(
        "/photos",
        json={"storageKey": "alpha/1.jpg", "caption": "Picnic"},
        headers=_bearer(alpha_session["accessToken"]),
    )
    assert created.status_code == 201
    photo_id = created.json()["id"]

    beta_session = _login(client, test_db, "b-admin@x.test")
    beta_headers = _bearer(beta_session["accessToken"])
    assert client.get(f"/photos/{photo_id}", headers=beta_headers).status_code == 404
    assert client.delete(f"/photos/{photo_id}", headers=beta_headers).status_code == 404
    assert client.get("/photos", headers=beta_headers).json() == []
    missing = client.get("/photos/00000000-0000-0000-0000-000000000000", headers=beta_headers)
    assert missing.status_code == 404
    assert missing.json() == client.get(f"/photos/{photo_id}", headers=beta_headers).json()

    alpha_headers = _bearer(alpha_session["accessToken"])
    assert client.get(f"/photos/{photo_id}", headers=alpha_headers).json()["caption"] == "Picnic"


def test_member_cannot_delete_photo(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    _add_member(test_db, group, "member@x.test")
    owner_session = _login(client, test_db, "owner@x.test")
    photo_id = client.post(
        "/photos",
        json={"storageKey": "family/1.jpg"},
        headers=_bearer(owner_session["accessToken"]),
    ).json()["id"]

    member_session = _login(client, test_db, "member@x.test")
    response = client.delete(f"/photos/{photo_id}", headers=_bearer(member_session["accessToken"]))

    assert response.status_code == 403


def test_member_admin_endpoints_enforce_invariants(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    other = create_group(test_db, name="Other", owner_email="other@x.test", owner_name="Other")
    member = _add_member(test_db, group, "member@x.test")
    session = _login(client, test_db, "owner@x.test")
    headers = _bearer(session["accessToken"])

    owner_change = client.patch(
        f"/groups/{group.id}/members/{group.owner_id}", json={"role": "member"}, headers=headers
    )
    assert owner_change.status_code == 403
    assert owner_change.json()["code"] == "cannot_modify_owner"

    cross = client.get(f"/groups/{other.id}/members", headers=headers)
    assert cross.status_code == 404

    promoted = client.patch(f"/groups/{group.id}/members/{member.id}", json={"role": "admin"}, headers=headers)
    assert promoted.status_code == 200
    members = client.get(f"/groups/{group.id}/members", headers=headers).json()
    assert {m["email"]: m["role"] for m in members} == {"owner@x.test": "owner", "member@x.test": "admin"}

    removed = client.delete(f"/groups/{group.id}/members/{member.id}", headers=headers)
    assert removed.status_code == 200
    assert client.get(f"/groups/{group.id}/photo-count", headers=headers).json() == {"count": 0}


def test_deleting_last_group_leaves_user_with_no_groups(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    session = _login(client, test_db, "owner@x.test")
    headers = _bearer(session["accessToken"])

    deleted = client.delete(f"/groups/{group.id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["groups"] == []

    me = client.get("/users/me", headers=headers).json()
    assert me["groups"] == []
    assert me["currentGroup"] is None
    assert me["needsGroupSelection"] is False

    refreshed = client.post("/auth/refresh")
    assert refreshed.status_code == 200
    assert refreshed.json()["accessToken"] is None
    assert refreshed.json()["groups"] == []
    assert refreshed.json()["needsGroupSelection"] is False


def test_removed_member_refresh_reports_no_longer_a_member(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    member = _add_member(test_db, group, "member@x.test")
    _login(client, test_db, "member@x.test")

    test_db.query(Membership).filter(
        Membership.user_id == member.id, Membership.group_id == group.id
    ).delete()
    test_db.commit()

    response = client.post("/auth/refresh")
    assert response.status_code == 403
    assert response.json()["code"] == "no_longer_a_member"


def test_update_profile_and_preferences(client: TestClient, test_db: Session):
    create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    headers = _bearer(_login(client, test_db, "owner@x.test")["accessToken"])

    updated = client.patch("/users/me", json={"name": "  Boss ", "profileColor": "ocean"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["name"] == "Boss"
    assert updated.json()["profileColor"] == "ocean"

    bad_color = client.patch("/users/me", json={"profileColor": "neon"}, headers=headers)
    assert bad_color.status_code == 400

    prefs = client.patch("/users/me/preferences", json={"commentsEnabled": False}, headers=headers)
    assert prefs.status_code == 200
    test_db.expire_all()
    assert test_db.query(Membership.comments_enabled).scalar() is False


def test_member_update_with_blank_name_changes_nothing(client: TestClient, test_db: Session):
    group = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    member = _add_member(test_db, group, "member@x.test")
    headers = _bearer(_login(client, test_db, "owner@x.test")["accessToken"])

    response = client.patch(
        f"/groups/{group.id}/members/{member.id}",
        json={"role": "admin", "name": "   "},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Name is required", "code": "name_required"}
    test_db.expire_all()
    assert test_db.query(Membership.role).filter(
        Membership.user_id == member.id, Membership.group_id == group.id
    ).scalar() == "member"

    too_long = client.patch(
        f"/groups/{group.id}/members/{member.id}",
        json={"role": "admin", "name": "x" * 101},
        headers=headers,
    )
    assert too_long.status_code == 400
    test_db.expire_all()
    assert test_db.query(Membership.role).filter(
        Membership.user_id == member.id, Membership.group_id == group.id
    ).scalar() == "member"


def test_blank_profile_name_is_rejected(client: TestClient, test_db: Session):
    create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    headers = _bearer(_login(client, test_db, "owner@x.test")["accessToken"])

    response = client.patch("/users/me", json={"name": "  "}, headers=headers)

    assert response.status_code == 400
    assert response.json()["code"] == "name_required"


def test_me_does_not_report_a_group_the_credential_is_not_scoped_to(client: TestClient, test_db: Session):
    family = create_group(test_db, name="Family", owner_email="owner@x.test", owner_name="Owner")
    other = create_group(test_db, name="Other", owner_email="other@x.test", owner_name="Other")
    member = _add_member(test_db, family, "member@x.test")
    _add_member(test_db, other, "member@x.test")
    _login(client, test_db, "member@x.test")
    selected = client.post("/auth/select-group", json={"groupId": str(family.id)}).json()
    headers = _bearer(selected["accessToken"])

    test_db.query(Membership).filter(
        Membership.user_id == member.id, Membership.group_id == family.id
    ).delete()
    test_db.commit()

    me = client.get("/users/me", headers=headers).json()
    assert me["currentGroup"] is None
    assert [g["id"] for g in me["groups"]] == [str(other.id)]
    assert me["needsGroupSelection"] is False
