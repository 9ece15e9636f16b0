"""Pydantic schemas for mp_journal API."""

from pydantic import BaseModel

from src.mp_common.cents import cents_to_display
from src.mp_common.datetime_utils import to_iso
from src.mp_journal.domain.models import TimelineEntry, Transaction


class TimelineEntryResponse(BaseModel):
    status: str
    note: str
    created_at: str

    @classmethod
    def from_entry(cls, entry: TimelineEntry) -> "TimelineEntryResponse":
        return cls(status=entry.status, note=entry.note, created_at=to_iso(entry.created_at))


class TransactionResponse(BaseModel):
    id: str
    offer_id: str
    buyer_id: str
    seller_id: str
    item_id: str
    status: str
    amount_cents: int
    amount_display: str
    platform_fee_cents: int
    platform_fee_display: str
    seller_proceeds_cents: int
    timeline: list[TimelineEntryResponse]
    created_at: str
    updated_at: str

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "TransactionResponse":
        return cls(
            id=txn.id,
            offer_id=txn.offer_id,
            buyer_id=txn.buyer_id,
            seller_id=txn.seller_id,
            item_id=txn.item_id,
            status=txn.status,
            amount_cents=txn.amount,
            amount_display=cents_to_display(txn.amount),
            platform_fee_cents=txn.platform_fee,
            platform_fee_display=cents_to_display(txn.platform_fee),
            seller_proceeds_cents=txn.seller_proceeds,
            timeline=[TimelineEntryResponse.from_entry(e) for e in txn.timeline],
            created_at=to_iso(txn.created_at),
            updated_at=to_iso(txn.updated_at),
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    next_cursor: str | None
    has_more: bool
