"""ItemRepository Protocol: the listing surface owns items; the engine only moves status."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import ItemStatus
from src.mp_item.domain.models import Item


class ItemRepositoryProtocol(Protocol):
    async def save(self, item: Item, db: AsyncSession) -> None: ...

    async def get_by_id(self, item_id: str, db: AsyncSession) -> Item | None: ...

    async def get_for_update(self, item_id: str, db: AsyncSession) -> Item | None: ...

    async def transition_status(
        self,
        item_id: str,
        from_status: ItemStatus,
        to_status: ItemStatus,
        db: AsyncSession,
    ) -> bool: ...
