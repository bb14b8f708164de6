"""
Tests for staff signup, approval, login and token handling.
"""

from datetime import timedelta

from hotel_booking_platform.models.user import UserRole
from hotel_booking_platform.utils.auth import create_access_token, verify_token

from .conftest import PASSWORD

SIGNUP = {
    "email": "New.Staff@Hotel-Hippo.example.com",
    "password": "front-desk-pass",
    "first_name": "Wanjiru",
    "last_name": "Kamau",
    "role": "ADMIN",
}


async def test_self_signup_waits_for_approval(client):
    response = await client.post("/api/v1/auth/signup", json=SIGNUP)

    assert response.status_code == 201
    body = response.json()
    assert body["requires_approval"] is True
    assert body["user"]["is_active"] is False
    # The requested role is ignored for self-service signups
    assert body["user"]["role"] == "STAFF"
    assert body["user"]["email"] == "new.staff@hotel-hippo.example.com"


async def test_duplicate_email_conflicts(client):
    await client.post("/api/v1/auth/signup", json=SIGNUP)
    response = await client.post("/api/v1/auth/signup", json={**SIGNUP, "email": "new.staff@hotel-hippo.example.com"})

    assert response.status_code == 409


async def test_admin_created_account_is_active_with_role(client, auth_headers):
    response = await client.post(
        "/api/v1/auth/signup",
        json={**SIGNUP, "role": "MANAGER"},
        headers=auth_headers(UserRole.ADMIN),
    )

    assert response.status_code == 201
    assert response.json()["user"]["role"] == "MANAGER"
    assert response.json()["requires_approval"] is False


async def test_pending_account_cannot_log_in_until_approved(client, auth_headers):
    signup = await client.post("/api/v1/auth/signup", json=SIGNUP)
    user_id = signup.json()["user"]["id"]
    credentials = {"email": SIGNUP["email"], "password": SIGNUP["password"]}

    pending = await client.post("/api/v1/auth/login", json=credentials)
    assert pending.status_code == 403
    assert pending.json()["error"]["error_code"] == "FORBIDDEN"

    approval = await client.post(
        f"/api/v1/admin/users/{user_id}/approve", headers=auth_headers(UserRole.ADMIN)
    )
    assert approval.status_code == 200
    assert approval.json()["user"]["is_active"] is True

    login = await client.post("/api/v1/auth/login", json=credentials)
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"
    assert "token=" in login.headers["set-cookie"]
    assert "httponly" in login.headers["set-cookie"].lower()


async def test_staff_cannot_approve_signups(client, auth_headers):
    signup = await client.post("/api/v1/auth/signup", json=SIGNUP)
    user_id = signup.json()["user"]["id"]

    response = await client.post(
        f"/api/v1/admin/users/{user_id}/approve", headers=auth_headers(UserRole.MANAGER)
    )

    assert response.status_code == 403


async def test_wrong_password_is_unauthorized(client, users):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "staff@hotel-hippo.example.com", "password": "not-my-password"}
    )

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_login_token_carries_identity(client, users):
    response = await client.post(
        "/api/v1/auth/login", json={"email": "manager@hotel-hippo.example.com", "password": PASSWORD}
    )

    token_data = verify_token(response.json()["access_token"])
    assert token_data.user_id == str(users[UserRole.MANAGER].id)
    assert token_data.role == "MANAGER"
    assert response.json()["expires_in"] == 7 * 24 * 60 * 60


async def test_cookie_authenticates_when_header_is_absent(client, tokens):
    client.cookies.set("token", tokens[UserRole.STAFF])

    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 200
    assert response.json()["email"] == "staff@hotel-hippo.example.com"


async def test_expired_token_is_rejected(client, users):
    user = users[UserRole.ADMIN]
    token = create_access_token(
        {"sub": str(user.id), "email": user.email, "role": "ADMIN"},
        expires_delta=timedelta(seconds=-1),
    )

    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


async def test_no_credentials_is_unauthorized(client):
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401


async def test_change_password(client, auth_headers):
    response = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "brand-new-pass", "confirm_password": "brand-new-pass"},
        headers=auth_headers(UserRole.STAFF),
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/v1/auth/login", json={"email": "staff@hotel-hippo.example.com", "password": "brand-new-pass"}
    )
    assert login.status_code == 200


async def test_staff_cannot_list_users(client, auth_headers):
    assert (await client.get("/api/v1/users", headers=auth_headers(UserRole.STAFF))).status_code == 403

    response = await client.get("/api/v1/users", headers=auth_headers(UserRole.ADMIN))
    assert response.status_code == 200
    assert response.json()["total"] == 3
