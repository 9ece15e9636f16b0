"""TransactionRepository Protocol: append-only journal storage."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import TransactionStatus
from src.mp_journal.domain.models import TimelineEntry, Transaction


class TransactionRepositoryProtocol(Protocol):
    async def save(self, txn: Transaction, db: AsyncSession) -> None: ...

    async def get_by_id(self, txn_id: str, db: AsyncSession) -> Transaction | None: ...

    async def get_by_offer_id(self, offer_id: str, db: AsyncSession) -> Transaction | None: ...

    async def list_by_user(
        self, user_id: str, limit: int, cursor_id: str | None, db: AsyncSession
    ) -> list[Transaction]: ...

    async def update_status(
        self,
        txn_id: str,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
        db: AsyncSession,
    ) -> bool: ...

    async def append_timeline(self, entry: TimelineEntry, db: AsyncSession) -> TimelineEntry: ...
