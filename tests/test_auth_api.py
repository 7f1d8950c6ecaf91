"""Tests for login, refresh and the current user endpoint."""
from fieldsync.core.security import create_refresh_token

from tests.conftest import USER_PASSWORD


async def login(client, email="enumerator@example.com", password=USER_PASSWORD, device_id="device-1"):
    return await client.post("/api/auth/login", json={"email": email, "password": password, "device_id": device_id})


async def test_login_returns_token_pair(client, user):
    response = await login(client, email="  Enumerator@Example.com ")
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 15 * 60
    assert body["user"]["email"] == "enumerator@example.com"
    assert body["user"]["role"] == "enumerator"
    assert body["access_token"] != body["refresh_token"]


async def test_login_wrong_password(client, user):
    response = await login(client, password="wrong")
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"


async def test_login_unknown_user(client, user):
    response = await login(client, email="nobody@example.com")
    assert response.status_code == 401


async def test_me(client, user):
    tokens = (await login(client)).json()
    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert response.status_code == 200
    assert response.json()["user"]["id"] == user.id


async def test_refresh_token_is_not_an_access_token(client, user):
    tokens = (await login(client)).json()
    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid/expired token"


async def test_refresh_issues_new_pair(client, user):
    tokens = (await login(client)).json()
    response = await client.post(
        "/api/auth/refresh",
        json={"refresh_token": tokens["refresh_token"], "device_id": "device-1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["id"] == user.id
    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200


async def test_refresh_rejects_other_device(client, user):
    tokens = (await login(client)).json()
    response = await client.post(
        "/api/auth/refresh",
        json={"refresh_token": tokens["refresh_token"], "device_id": "device-2"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Device mismatch"


async def test_refresh_rejects_access_token(client, user):
    tokens = (await login(client)).json()
    response = await client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid refresh token"


async def test_refresh_for_deleted_user(client, user):
    token = create_refresh_token({"sub": "999"})
    response = await client.post("/api/auth/refresh", json={"refresh_token": token})
    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"
