import base64
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.models.user import User
from app.models.user_session import UserSession

pytestmark = pytest.mark.anyio


async def test_register_login_profile(client, user_factory, login_helper):
    user = await user_factory(client, first_name="Alice", last_name="Liddell", phone="+1")
    await login_helper(client, username=user["username"], password=user["password"])

    r = await client.get("/users/me")
    assert r.status_code == 200
    data = r.json()
    assert data["email"] == user["username"]
    assert data["firstName"] == "Alice"
    assert data["lastName"] == "Liddell"
    assert data["phone"] == "+1"
    assert data["role"] == "USER"
    assert data["image"] is None


async def test_duplicate_registration_is_rejected(client, db_session, unique_str):
    username = unique_str("alice")
    payload = {"username": username, "password": "pw1", "firstName": "A", "lastName": "L", "phone": "+1"}

    first = await client.post("/register", json=payload)
    assert first.status_code == 201
    assert first.json() == {"ok": True}

    second = await client.post("/register", json={**payload, "password": "pw2"})
    assert second.status_code == 400

    count = (await db_session.execute(select(func.count(User.id)).where(User.username == username))).scalar_one()
    assert count == 1


async def test_register_ignores_client_supplied_role(client, login_helper, unique_str):
    username = unique_str("sneaky")
    r = await client.post(
        "/register",
        json={"username": username, "password": "secret", "firstName": "S", "role": "ADMIN"},
    )
    assert r.status_code == 201
    await login_helper(client, username=username, password="secret")
    assert (await client.get("/users/me")).json()["role"] == "USER"


async def test_login_rejects_bad_credentials(client, user_factory):
    user = await user_factory(client)
    r = await client.post("/login", json={"username": user["username"], "password": "wrong-password"})
    assert r.status_code == 401
    assert r.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert client.cookies.get("SESSION") is None

    r = await client.post("/login", json={"username": "nobody_here", "password": "whatever"})
    assert r.status_code == 401


async def test_login_sets_no_cache_headers(client, user_factory):
    user = await user_factory(client)
    r = await client.post("/login", json={"username": user["username"], "password": user["password"]})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "username": user["username"]}
    assert r.headers["cache-control"] == "no-cache, no-store, must-revalidate"


async def test_protected_routes_require_auth(client):
    assert (await client.get("/users/me")).status_code == 401
    assert (await client.get("/ads/me")).status_code == 401
    assert (await client.post("/users/set_password", json={"currentPassword": "a", "newPassword": "bcd"})).status_code == 401


async def test_garbage_session_cookie_is_unauthenticated(client, set_session_cookie):
    set_session_cookie(client, "not-a-token")
    assert (await client.get("/users/me")).status_code == 401


async def test_logout_revokes_session(client, user_factory, login_helper, set_session_cookie):
    user = await user_factory(client)
    token = await login_helper(client, username=user["username"], password=user["password"])

    assert (await client.get("/users/me")).status_code == 200

    logout = await client.post("/logout")
    assert logout.status_code == 200
    assert logout.json() == {"ok": True}
    assert logout.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert client.cookies.get("SESSION") is None

    assert (await client.get("/users/me")).status_code == 401

    # The old cookie value is dead server-side too.
    set_session_cookie(client, token)
    assert (await client.get("/users/me")).status_code == 401


async def test_logout_without_session_is_ok(client):
    r = await client.post("/logout")
    assert r.status_code == 200


async def test_new_login_evicts_previous_session(client, user_factory, login_helper, set_session_cookie):
    user = await user_factory(client)
    first = await login_helper(client, username=user["username"], password=user["password"])
    second = await login_helper(client, username=user["username"], password=user["password"])
    assert first != second

    set_session_cookie(client, first)
    assert (await client.get("/users/me")).status_code == 401

    set_session_cookie(client, second)
    assert (await client.get("/users/me")).status_code == 200


async def test_expired_session_is_rejected(client, db_session, user_factory, login_helper):
    user = await user_factory(client)
    await login_helper(client, username=user["username"], password=user["password"])

    q = select(UserSession).join(User, User.id == UserSession.user_id).where(User.username == user["username"])
    rows = (await db_session.execute(q)).scalars().all()
    assert len(rows) == 1
    for row in rows:
        row.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    await db_session.commit()

    assert (await client.get("/users/me")).status_code == 401


async def test_basic_auth_fallback(client, user_factory):
    user = await user_factory(client)
    client.cookies.clear()

    raw = f"{user['username']}:{user['password']}".encode("utf-8")
    headers = {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}
    r = await client.get("/users/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["email"] == user["username"]

    bad = base64.b64encode(f"{user['username']}:nope".encode("utf-8")).decode("ascii")
    r = await client.get("/users/me", headers={"Authorization": f"Basic {bad}"})
    assert r.status_code == 401


async def test_change_password_scenario(client, user_factory, login_helper, unique_str):
    username = unique_str("alice")
    await user_factory(client, username=username, password="pw1", first_name="A", last_name="L", phone="+1")
    await login_helper(client, username=username, password="pw1")

    r = await client.post("/users/set_password", json={"currentPassword": "wrong", "newPassword": "pw3"})
    assert r.status_code == 403

    # Unchanged: the old password still works.
    await login_helper(client, username=username, password="pw1")

    r = await client.post("/users/set_password", json={"currentPassword": "pw1", "newPassword": "pw3"})
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    client.cookies.clear()
    r = await client.post("/login", json={"username": username, "password": "pw1"})
    assert r.status_code == 401
    await login_helper(client, username=username, password="pw3")
