"""Registration, login and token refresh against PostgreSQL.

Pre-condition: alembic upgrade head, RUN_INTEGRATION=1
"""

import pytest
from httpx import AsyncClient

from tests.integration.helpers import unique_user

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestRegister:
    async def test_register_opens_empty_account(self, client: AsyncClient) -> None:
        user = unique_user("auth")
        resp = await client.post("/api/v1/auth/register", json=user)
        assert resp.status_code == 201
        assert resp.json()["data"]["username"] == user["username"]

        login = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": user["password"]},
        )
        headers = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}
        balance = (await client.get("/api/v1/account/balance", headers=headers)).json()
        assert balance["data"]["spendable_balance_cents"] == 0
        assert balance["data"]["escrow_balance_cents"] == 0

    async def test_duplicate_username(self, client: AsyncClient) -> None:
        user = unique_user("auth")
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/register", json={**user, "email": "other_" + user["email"]}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1001


class TestLogin:
    async def test_wrong_password(self, client: AsyncClient) -> None:
        user = unique_user("auth")
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": "Wrong1234"}
        )
        assert resp.status_code == 401

    async def test_refresh(self, client: AsyncClient) -> None:
        user = unique_user("auth")
        await client.post("/api/v1/auth/register", json=user)
        login = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": user["password"]},
        )
        resp = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login.json()["data"]["refresh_token"]},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["access_token"]
