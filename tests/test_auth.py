from sqlalchemy import select

from stockbook.core.google_auth import GoogleIdentity
from stockbook.models.business import Business
from stockbook.models.refresh_token import RefreshToken
from stockbook.models.user import User
from tests.helpers import auth_headers, register


def test_auth_register_and_login_email_or_username(test_context):
    client, session_local = test_context

    register_res = register(client, email="auth-owner@example.com")
    assert register_res.status_code == 200, register_res.text
    register_body = register_res.json()
    assert register_body["token_type"] == "bearer"
    assert register_body["access_token"]
    assert register_body["refresh_token"]

    db = session_local()
    try:
        user = db.execute(
            select(User).where(User.email == "auth-owner@example.com")
        ).scalar_one()
        business = db.execute(
            select(Business).where(Business.owner_user_id == user.id)
        ).scalar_one()
    finally:
        db.close()

    assert len(user.id) == 22
    assert business.name == "Owner Shop"

    login_res = client.post(
        "/auth/login",
        json={"identifier": "auth-owner@example.com", "password": "password123"},
    )
    assert login_res.status_code == 200, login_res.text
    assert login_res.json()["access_token"]

    login_by_username_res = client.post(
        "/auth/login",
        json={"identifier": user.username, "password": "password123"},
    )
    assert login_by_username_res.status_code == 200, login_by_username_res.text


def test_auth_register_rejects_duplicate_email(test_context):
    client, _ = test_context

    assert register(client, email="dupe@example.com").status_code == 200
    second = register(client, email="DUPE@example.com")
    assert second.status_code == 400, second.text
    assert second.json()["error"]["code"] == "bad_request"


def test_protected_endpoints_require_token(test_context):
    client, _ = test_context

    res = client.get("/products")
    assert res.status_code == 401, res.text
    assert res.json()["error"]["code"] == "unauthorized"


def test_auth_refresh_token_rotates(test_context):
    client, _ = test_context

    register_res = register(client, email="refresh-owner@example.com")
    assert register_res.status_code == 200, register_res.text

    refresh_res = client.post(
        "/auth/refresh",
        json={"refresh_token": register_res.json()["refresh_token"]},
    )
    assert refresh_res.status_code == 200, refresh_res.text
    assert refresh_res.json()["access_token"]

    second_refresh_res = client.post(
        "/auth/refresh",
        json={"refresh_token": register_res.json()["refresh_token"]},
    )
    assert second_refresh_res.status_code == 401, second_refresh_res.text


def test_auth_logout_revokes_refresh_token(test_context):
    client, _ = test_context

    register_res = register(client, email="logout-owner@example.com")
    refresh_token = register_res.json()["refresh_token"]

    logout_res = client.post("/auth/logout", json={"refresh_token": refresh_token})
    assert logout_res.status_code == 200, logout_res.text
    assert logout_res.json()["ok"] is True

    refresh_res = client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert refresh_res.status_code == 401, refresh_res.text


def test_change_password_revokes_active_sessions(test_context):
    client, _ = test_context

    register_res = register(client, email="password-owner@example.com")
    access_token = register_res.json()["access_token"]
    refresh_token = register_res.json()["refresh_token"]

    change_res = client.post(
        "/auth/change-password",
        json={"current_password": "password123", "new_password": "newpassword123"},
        headers=auth_headers(access_token),
    )
    assert change_res.status_code == 200, change_res.text

    old_login = client.post(
        "/auth/login",
        json={"identifier": "password-owner@example.com", "password": "password123"},
    )
    assert old_login.status_code == 401, old_login.text

    new_login = client.post(
        "/auth/login",
        json={"identifier": "password-owner@example.com", "password": "newpassword123"},
    )
    assert new_login.status_code == 200, new_login.text

    old_refresh = client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert old_refresh.status_code == 401, old_refresh.text


def test_auth_profile_read_and_update(test_context):
    client, _ = test_context

    register_res = register(client, email="profile-owner@example.com", full_name="Profile Owner")
    token = register_res.json()["access_token"]

    me_res = client.get("/auth/me", headers=auth_headers(token))
    assert me_res.status_code == 200, me_res.text
    me_payload = me_res.json()
    assert me_payload["email"] == "profile-owner@example.com"
    assert me_payload["business_name"] == "Profile Owner Shop"
    assert me_payload["base_currency"] == "USD"

    update_res = client.patch(
        "/auth/me",
        json={
            "full_name": "Profile Owner Updated",
            "username": "profile_owner_updated",
            "business_name": "Profile Provisions",
            "base_currency": "eur",
        },
        headers=auth_headers(token),
    )
    assert update_res.status_code == 200, update_res.text
    updated = update_res.json()
    assert updated["full_name"] == "Profile Owner Updated"
    assert updated["username"] == "profile_owner_updated"
    assert updated["business_name"] == "Profile Provisions"
    assert updated["base_currency"] == "EUR"

    empty_update = client.patch("/auth/me", json={}, headers=auth_headers(token))
    assert empty_update.status_code == 422, empty_update.text


def test_auth_login_rate_limited_after_repeated_failures(test_context):
    client, _ = test_context

    register(client, email="ratelimit-owner@example.com")

    for _ in range(5):
        failed_login = client.post(
            "/auth/login",
            json={"identifier": "ratelimit-owner@example.com", "password": "wrongpass"},
        )
        assert failed_login.status_code == 401, failed_login.text

    blocked_login = client.post(
        "/auth/login",
        json={"identifier": "ratelimit-owner@example.com", "password": "wrongpass"},
    )
    assert blocked_login.status_code == 429, blocked_login.text


def test_google_auth_register_or_login(test_context, monkeypatch):
    client, session_local = test_context

    from stockbook.routers import auth as auth_router

    def fake_verify_google_token(_: str) -> GoogleIdentity:
        return GoogleIdentity(
            sub="google-sub-123",
            email="google-owner@example.com",
            full_name="Google Owner",
        )

    monkeypatch.setattr(auth_router, "verify_google_identity_token", fake_verify_google_token)

    first_google_login = client.post(
        "/auth/google",
        json={"id_token": "dummy-token", "business_name": "Google Grocers"},
    )
    assert first_google_login.status_code == 200, first_google_login.text

    second_google_login = client.post("/auth/google", json={"id_token": "dummy-token"})
    assert second_google_login.status_code == 200, second_google_login.text

    db = session_local()
    try:
        user = db.execute(
            select(User).where(User.email == "google-owner@example.com")
        ).scalar_one()
        businesses = db.execute(
            select(Business).where(Business.owner_user_id == user.id)
        ).scalars().all()
    finally:
        db.close()

    assert user.google_sub == "google-sub-123"
    assert [biz.name for biz in businesses] == ["Google Grocers"]


def test_google_subject_wins_over_another_accounts_email(test_context, monkeypatch):
    client, _ = test_context

    from stockbook.routers import auth as auth_router

    identity = {"email": "linked-owner@example.com"}

    def fake_verify_google_token(_: str) -> GoogleIdentity:
        return GoogleIdentity(sub="google-sub-456", email=identity["email"], full_name="Linked Owner")

    monkeypatch.setattr(auth_router, "verify_google_identity_token", fake_verify_google_token)

    linked = client.post("/auth/google", json={"id_token": "dummy-token"})
    assert linked.status_code == 200, linked.text
    assert register(client, email="other-owner@example.com").status_code == 200

    # the Google account now reports an email that belongs to a different owner
    identity["email"] = "other-owner@example.com"
    again = client.post("/auth/google", json={"id_token": "dummy-token"})
    assert again.status_code == 200, again.text

    me = client.get("/auth/me", headers=auth_headers(again.json()["access_token"]))
    assert me.json()["email"] == "linked-owner@example.com"


def test_account_changes_are_audited(test_context):
    client, session_local = test_context

    register_res = register(client, email="account-audit@example.com")
    token = register_res.json()["access_token"]
    assert client.get("/auth/me", headers=auth_headers(token)).json()["last_login_at"] is not None

    client.patch("/auth/me", json={"business_name": "Renamed Shop"}, headers=auth_headers(token))
    change_res = client.post(
        "/auth/change-password",
        json={"current_password": "password123", "new_password": "password456"},
        headers=auth_headers(token),
    )
    assert change_res.status_code == 200, change_res.text
    assert change_res.json() == {"ok": True, "sessions_revoked": 1}

    logs = client.get(
        "/audit-logs",
        params={"target_type": "account"},
        headers=auth_headers(token),
    )
    assert logs.status_code == 200, logs.text
    assert sorted(item["action"] for item in logs.json()["items"]) == [
        "account.password_change",
        "account.update",
    ]

    db = session_local()
    try:
        token_row = db.execute(select(RefreshToken)).scalar_one()
    finally:
        db.close()
    assert token_row.revoke_reason == "password_change"


def test_change_password_rejects_wrong_or_unchanged_password(test_context):
    client, _ = test_context

    token = register(client, email="password-rules@example.com").json()["access_token"]

    wrong = client.post(
        "/auth/change-password",
        json={"current_password": "not-my-password", "new_password": "newpassword123"},
        headers=auth_headers(token),
    )
    assert wrong.status_code == 401, wrong.text

    unchanged = client.post(
        "/auth/change-password",
        json={"current_password": "password123", "new_password": "password123"},
        headers=auth_headers(token),
    )
    assert unchanged.status_code == 400, unchanged.text
