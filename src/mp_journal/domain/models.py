"""Transaction journal domain models: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.mp_common.enums import TransactionStatus


@dataclass
class TimelineEntry:
    """One append-only step in a transaction's history."""

    transaction_id: str
    status: str
    note: str
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class Transaction:
    id: str
    offer_id: str
    buyer_id: str
    seller_id: str
    item_id: str
    amount: int  # escrowed amount, cents
    platform_fee: int  # cents, fixed at acceptance
    status: str = TransactionStatus.PENDING.value
    timeline: list[TimelineEntry] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def seller_proceeds(self) -> int:
        return self.amount - self.platform_fee

    @property
    def is_final(self) -> bool:
        return self.status != TransactionStatus.PENDING.value
