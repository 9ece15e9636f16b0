"""TransactionJournal: append-only settlement history.

Read-side only: balances are never derived from the journal.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import TransactionStatus
from src.mp_common.errors import InvariantViolationError, TransactionNotFoundError
from src.mp_common.id_generator import generate_id
from src.mp_journal.domain.models import TimelineEntry, Transaction
from src.mp_journal.domain.repository import TransactionRepositoryProtocol
from src.mp_journal.infrastructure.persistence import TransactionRepository
from src.mp_offer.domain.models import Offer

logger = logging.getLogger(__name__)

_FINAL_STATUSES = (
    TransactionStatus.COMPLETED,
    TransactionStatus.CANCELLED,
    TransactionStatus.REFUNDED,
)


class TransactionJournal:
    def __init__(self, repo: TransactionRepositoryProtocol | None = None) -> None:
        self._repo: TransactionRepositoryProtocol = repo or TransactionRepository()

    async def create(
        self, db: AsyncSession, offer: Offer, amount: int, platform_fee: int, note: str
    ) -> Transaction:
        """New PENDING transaction for an accepted offer, with its first timeline entry."""
        now = utc_now()
        txn = Transaction(
            id=generate_id(),
            offer_id=offer.id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            item_id=offer.item_id,
            amount=amount,
            platform_fee=platform_fee,
            status=TransactionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        await self._repo.save(txn, db)
        await self.append_timeline_entry(db, txn, note)
        logger.info(
            "Transaction opened: id=%s offer=%s amount=%d fee=%d",
            txn.id, offer.id, amount, platform_fee,
        )
        return txn

    async def get(self, db: AsyncSession, txn_id: str) -> Transaction:
        txn = await self._repo.get_by_id(txn_id, db)
        if txn is None:
            raise TransactionNotFoundError(txn_id)
        return txn

    async def get_by_offer(self, db: AsyncSession, offer_id: str) -> Transaction | None:
        return await self._repo.get_by_offer_id(offer_id, db)

    async def list_for_user(
        self, db: AsyncSession, user_id: str, limit: int = 20, cursor_id: str | None = None
    ) -> list[Transaction]:
        return await self._repo.list_by_user(user_id, limit, cursor_id, db)

    async def append_timeline_entry(
        self, db: AsyncSession, txn: Transaction, note: str
    ) -> TimelineEntry:
        """Audit annotation stamped with the transaction's current status."""
        entry = await self._repo.append_timeline(
            TimelineEntry(transaction_id=txn.id, status=txn.status, note=note), db
        )
        txn.timeline.append(entry)
        return entry

    async def finalize(
        self, db: AsyncSession, txn: Transaction, status: TransactionStatus, note: str
    ) -> Transaction:
        """PENDING -> COMPLETED | CANCELLED | REFUNDED, exactly once."""
        if status not in _FINAL_STATUSES:
            raise InvariantViolationError(f"{status.value} is not a final transaction status")
        moved = await self._repo.update_status(txn.id, TransactionStatus.PENDING, status, db)
        if not moved:
            logger.error("Transaction %s finalized twice (target %s)", txn.id, status.value)
            raise InvariantViolationError(f"transaction {txn.id} is already {txn.status}")
        txn.status = status.value
        txn.updated_at = utc_now()
        await self.append_timeline_entry(db, txn, note)
        logger.info("Transaction %s: %s", txn.id, status.value)
        return txn
