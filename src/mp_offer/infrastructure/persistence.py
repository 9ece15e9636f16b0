"""OfferRepository: raw SQL persistence implementation."""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import OfferStatus
from src.mp_offer.domain.models import Offer

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_OFFER_SQL = text("""
    INSERT INTO offers (id, buyer_id, seller_id, item_id, kind, proposed_value,
        status, offered_item_name, description,
        buyer_confirmed, seller_confirmed, escrow_amount, seller_escrow_amount)
    VALUES (:id, :buyer_id, :seller_id, :item_id, :kind, :proposed_value,
        :status, :offered_item_name, :description,
        FALSE, FALSE, 0, 0)
""")

# Compare-and-set on the previous status: a concurrent writer makes this a no-op
_UPDATE_OFFER_SQL = text("""
    UPDATE offers
    SET status = :status,
        buyer_confirmed = :buyer_confirmed,
        seller_confirmed = :seller_confirmed,
        escrow_amount = :escrow_amount,
        seller_escrow_amount = :seller_escrow_amount,
        updated_at = NOW()
    WHERE id = :id AND status = :expected_status
    RETURNING id
""")

_SELECT_COLUMNS = """
    id, buyer_id, seller_id, item_id, kind, proposed_value, status,
    offered_item_name, description, buyer_confirmed, seller_confirmed,
    escrow_amount, seller_escrow_amount, created_at, updated_at
"""

_GET_OFFER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM offers WHERE id = :id
""")

_GET_OFFER_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM offers WHERE id = :id
    FOR UPDATE
""")

_LIST_OFFERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM offers
    WHERE (buyer_id = :user_id OR seller_id = :user_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
      AND (CAST(:statuses_csv AS TEXT) IS NULL
           OR status = ANY(string_to_array(CAST(:statuses_csv AS TEXT), ',')))
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_offer(row: Any) -> Offer:
    """Convert a DB result row to an Offer domain object."""
    return Offer(
        id=row.id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        item_id=row.item_id,
        kind=row.kind,
        proposed_value=row.proposed_value,
        status=row.status,
        offered_item_name=row.offered_item_name,
        description=row.description,
        buyer_confirmed=row.buyer_confirmed,
        seller_confirmed=row.seller_confirmed,
        escrow_amount=row.escrow_amount,
        seller_escrow_amount=row.seller_escrow_amount,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OfferRepository:
    """Concrete implementation of OfferRepositoryProtocol using raw SQL."""

    async def save(self, offer: Offer, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_OFFER_SQL,
            {
                "id": offer.id,
                "buyer_id": offer.buyer_id,
                "seller_id": offer.seller_id,
                "item_id": offer.item_id,
                "kind": offer.kind,
                "proposed_value": offer.proposed_value,
                "status": offer.status,
                "offered_item_name": offer.offered_item_name,
                "description": offer.description,
            },
        )

    async def get_by_id(self, offer_id: str, db: AsyncSession) -> Offer | None:
        row = (await db.execute(_GET_OFFER_BY_ID_SQL, {"id": offer_id})).fetchone()
        return _row_to_offer(row) if row else None

    async def get_for_update(self, offer_id: str, db: AsyncSession) -> Offer | None:
        row = (await db.execute(_GET_OFFER_FOR_UPDATE_SQL, {"id": offer_id})).fetchone()
        return _row_to_offer(row) if row else None

    async def update(
        self, offer: Offer, expected_status: OfferStatus, db: AsyncSession
    ) -> bool:
        result = await db.execute(
            _UPDATE_OFFER_SQL,
            {
                "id": offer.id,
                "status": offer.status,
                "buyer_confirmed": offer.buyer_confirmed,
                "seller_confirmed": offer.seller_confirmed,
                "escrow_amount": offer.escrow_amount,
                "seller_escrow_amount": offer.seller_escrow_amount,
                "expected_status": expected_status.value,
            },
        )
        return result.fetchone() is not None

    async def list_by_user(
        self,
        user_id: str,
        statuses: list[str] | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Offer]:
        result = await db.execute(
            _LIST_OFFERS_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "statuses_csv": ",".join(statuses) if statuses else None,
                "limit": limit,
            },
        )
        return [_row_to_offer(row) for row in result.fetchall()]
