"""TransactionRepository: raw SQL persistence for transactions and their timeline."""

from collections import defaultdict
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import TransactionStatus
from src.mp_common.errors import InternalError
from src.mp_journal.domain.models import TimelineEntry, Transaction

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_TXN_COLUMNS = """
    id, offer_id, buyer_id, seller_id, item_id, amount, platform_fee,
    status, created_at, updated_at
"""

_INSERT_TXN_SQL = text("""
    INSERT INTO transactions (id, offer_id, buyer_id, seller_id, item_id,
        amount, platform_fee, status)
    VALUES (:id, :offer_id, :buyer_id, :seller_id, :item_id,
        :amount, :platform_fee, :status)
""")

_GET_TXN_SQL = text(f"SELECT {_TXN_COLUMNS} FROM transactions WHERE id = :id")

_GET_TXN_BY_OFFER_SQL = text(f"SELECT {_TXN_COLUMNS} FROM transactions WHERE offer_id = :offer_id")

_LIST_TXN_SQL = text(f"""
    SELECT {_TXN_COLUMNS}
    FROM transactions
    WHERE (buyer_id = :user_id OR seller_id = :user_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE transactions
    SET status = :to_status, updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING id
""")

_INSERT_TIMELINE_SQL = text("""
    INSERT INTO transaction_timeline (transaction_id, status, note)
    VALUES (:transaction_id, :status, :note)
    RETURNING id, transaction_id, status, note, created_at
""")

_LIST_TIMELINE_SQL = text("""
    SELECT id, transaction_id, status, note, created_at
    FROM transaction_timeline
    WHERE transaction_id = ANY(:txn_ids)
    ORDER BY id ASC
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_txn(row: Any) -> Transaction:
    return Transaction(
        id=row.id,
        offer_id=row.offer_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        item_id=row.item_id,
        amount=row.amount,
        platform_fee=row.platform_fee,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_entry(row: Any) -> TimelineEntry:
    return TimelineEntry(
        id=row.id,
        transaction_id=row.transaction_id,
        status=row.status,
        note=row.note,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TransactionRepository:
    """Transactions are never deleted; the timeline is insert-only."""

    async def save(self, txn: Transaction, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_TXN_SQL,
            {
                "id": txn.id,
                "offer_id": txn.offer_id,
                "buyer_id": txn.buyer_id,
                "seller_id": txn.seller_id,
                "item_id": txn.item_id,
                "amount": txn.amount,
                "platform_fee": txn.platform_fee,
                "status": txn.status,
            },
        )

    async def get_by_id(self, txn_id: str, db: AsyncSession) -> Transaction | None:
        row = (await db.execute(_GET_TXN_SQL, {"id": txn_id})).fetchone()
        if row is None:
            return None
        return (await self._with_timelines([_row_to_txn(row)], db))[0]

    async def get_by_offer_id(self, offer_id: str, db: AsyncSession) -> Transaction | None:
        row = (await db.execute(_GET_TXN_BY_OFFER_SQL, {"offer_id": offer_id})).fetchone()
        if row is None:
            return None
        return (await self._with_timelines([_row_to_txn(row)], db))[0]

    async def list_by_user(
        self, user_id: str, limit: int, cursor_id: str | None, db: AsyncSession
    ) -> list[Transaction]:
        result = await db.execute(
            _LIST_TXN_SQL, {"user_id": user_id, "cursor_id": cursor_id, "limit": limit}
        )
        txns = [_row_to_txn(row) for row in result.fetchall()]
        return await self._with_timelines(txns, db)

    async def update_status(
        self,
        txn_id: str,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
        db: AsyncSession,
    ) -> bool:
        result = await db.execute(
            _UPDATE_STATUS_SQL,
            {"id": txn_id, "from_status": from_status.value, "to_status": to_status.value},
        )
        return result.fetchone() is not None

    async def append_timeline(self, entry: TimelineEntry, db: AsyncSession) -> TimelineEntry:
        result = await db.execute(
            _INSERT_TIMELINE_SQL,
            {"transaction_id": entry.transaction_id, "status": entry.status, "note": entry.note},
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Timeline insert returned no rows")
        return _row_to_entry(row)

    async def _with_timelines(
        self, txns: list[Transaction], db: AsyncSession
    ) -> list[Transaction]:
        if not txns:
            return txns
        result = await db.execute(_LIST_TIMELINE_SQL, {"txn_ids": [t.id for t in txns]})
        by_txn: dict[str, list[TimelineEntry]] = defaultdict(list)
        for row in result.fetchall():
            by_txn[row.transaction_id].append(_row_to_entry(row))
        for txn in txns:
            txn.timeline = by_txn[txn.id]
        return txns
