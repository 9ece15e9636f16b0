"""ItemRepository: raw SQL persistence for the items table."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import ItemStatus
from src.mp_item.domain.models import Item

_SELECT_COLUMNS = """
    id, owner_id, title, status, price, trade_value,
    allow_buy, allow_trade, created_at, updated_at
"""

_INSERT_ITEM_SQL = text("""
    INSERT INTO items (id, owner_id, title, status, price, trade_value, allow_buy, allow_trade)
    VALUES (:id, :owner_id, :title, :status, :price, :trade_value, :allow_buy, :allow_trade)
""")

_GET_ITEM_SQL = text(f"SELECT {_SELECT_COLUMNS} FROM items WHERE id = :id")

_GET_ITEM_FOR_UPDATE_SQL = text(f"SELECT {_SELECT_COLUMNS} FROM items WHERE id = :id FOR UPDATE")

# Compare-and-set: the status only moves if nobody else moved it first
_TRANSITION_STATUS_SQL = text("""
    UPDATE items
    SET status = :to_status, updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING id
""")


def _row_to_item(row: Any) -> Item:
    return Item(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        status=row.status,
        price=row.price,
        trade_value=row.trade_value,
        allow_buy=row.allow_buy,
        allow_trade=row.allow_trade,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ItemRepository:
    async def save(self, item: Item, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_ITEM_SQL,
            {
                "id": item.id,
                "owner_id": item.owner_id,
                "title": item.title,
                "status": item.status,
                "price": item.price,
                "trade_value": item.trade_value,
                "allow_buy": item.allow_buy,
                "allow_trade": item.allow_trade,
            },
        )

    async def get_by_id(self, item_id: str, db: AsyncSession) -> Item | None:
        row = (await db.execute(_GET_ITEM_SQL, {"id": item_id})).fetchone()
        return _row_to_item(row) if row else None

    async def get_for_update(self, item_id: str, db: AsyncSession) -> Item | None:
        row = (await db.execute(_GET_ITEM_FOR_UPDATE_SQL, {"id": item_id})).fetchone()
        return _row_to_item(row) if row else None

    async def transition_status(
        self,
        item_id: str,
        from_status: ItemStatus,
        to_status: ItemStatus,
        db: AsyncSession,
    ) -> bool:
        result = await db.execute(
            _TRANSITION_STATUS_SQL,
            {"id": item_id, "from_status": from_status.value, "to_status": to_status.value},
        )
        return result.fetchone() is not None
