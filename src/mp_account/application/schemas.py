"""Pydantic schemas and cursor utilities for mp_account API."""

import base64
import json

from pydantic import BaseModel, Field

from src.mp_account.domain.models import Account, LedgerEntry
from src.mp_common.cents import cents_to_display
from src.mp_common.datetime_utils import to_iso

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    return base64.urlsafe_b64encode(json.dumps({"id": last_id}).encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Malformed cursors restart paging."""
    if not cursor:
        return None
    try:
        return int(json.loads(base64.urlsafe_b64decode(cursor.encode()))["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TopUpRequest(BaseModel):
    """External top-up or drawdown, already settled by the payment processor."""

    amount_cents: int = Field(..., gt=0, description="Amount in cents")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    spendable_balance_cents: int
    spendable_balance_display: str
    escrow_balance_cents: int
    escrow_balance_display: str
    total_balance_cents: int
    total_balance_display: str

    @classmethod
    def from_account(cls, account: Account) -> "BalanceResponse":
        return cls(
            user_id=account.user_id,
            spendable_balance_cents=account.spendable_balance,
            spendable_balance_display=cents_to_display(account.spendable_balance),
            escrow_balance_cents=account.escrow_balance,
            escrow_balance_display=cents_to_display(account.escrow_balance),
            total_balance_cents=account.total_balance,
            total_balance_display=cents_to_display(account.total_balance),
        )


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    amount_cents: int
    amount_display: str
    balance_after_cents: int
    balance_after_display: str
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            entry_type=entry.entry_type,
            amount_cents=entry.amount,
            amount_display=cents_to_display(entry.amount),
            balance_after_cents=entry.balance_after,
            balance_after_display=cents_to_display(entry.balance_after),
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            description=entry.description,
            created_at=to_iso(entry.created_at),
        )


class BalanceChangeResponse(BaseModel):
    balance: BalanceResponse
    ledger_entry: LedgerEntryItem


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
