"""Shared helpers for integration tests."""

import uuid

from src.mp_common.database import async_session_factory
from src.mp_item.domain.models import Item
from src.mp_item.infrastructure.persistence import ItemRepository

Party = tuple[str, dict[str, str]]  # (user_id, auth headers)


def unique_user(prefix: str = "user") -> dict[str, str]:
    uid = uuid.uuid4().hex[:8]
    return {
        "username": f"{prefix}_{uid}",
        "email": f"{prefix}_{uid}@example.com",
        "password": "TestPass1",
    }


async def insert_item(
    owner_id: str, trade_value: int | None = None, price: int | None = None
) -> str:
    """Listings are owned by the catalog; tests write them through the repository."""
    item = Item(
        id=f"item-{uuid.uuid4().hex[:16]}",
        owner_id=owner_id,
        title="integration listing",
        price=price,
        trade_value=trade_value,
    )
    async with async_session_factory() as session:
        await ItemRepository().save(item, session)
        await session.commit()
    return item.id
