"""Domain models for mp_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    id: str
    user_id: str
    spendable_balance: int   # cents, immediately usable
    escrow_balance: int      # cents, held pending trade resolution
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_balance(self) -> int:
        return self.spendable_balance + self.escrow_balance


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    entry_type: str                  # LedgerEntryType value
    amount: int                      # cents, positive=income negative=expense
    balance_after: int               # cents, spendable_balance snapshot after op
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
