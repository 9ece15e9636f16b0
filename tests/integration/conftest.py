"""Integration-test fixtures.

These tests need a migrated PostgreSQL (``alembic upgrade head``) and are
skipped unless RUN_INTEGRATION=1. They share a single event loop so the
module-level SQLAlchemy async engine pool stays valid across the session.
"""

import os
from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app
from tests.integration.helpers import Party, unique_user


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 with a migrated database")
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(skip)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncIterator[AsyncClient]:
    """Session-scoped async HTTP client: keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def new_party(client: AsyncClient) -> Callable[[int], Awaitable[Party]]:
    """Register a user, top them up, and return (user_id, auth headers)."""

    async def _make(balance: int) -> Party:
        user = unique_user()
        reg = await client.post("/api/v1/auth/register", json=user)
        user_id = reg.json()["data"]["user_id"]
        login = await client.post(
            "/api/v1/auth/login",
            json={"username": user["username"], "password": user["password"]},
        )
        headers = {"Authorization": f"Bearer {login.json()['data']['access_token']}"}
        if balance:
            await client.post(
                "/api/v1/account/deposit", json={"amount_cents": balance}, headers=headers
            )
        return user_id, headers

    return _make
