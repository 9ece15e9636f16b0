"""JournalApplicationService: read-side transaction history."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import UnauthorizedActionError
from src.mp_journal.application.schemas import TransactionListResponse, TransactionResponse
from src.mp_journal.domain.journal import TransactionJournal


class JournalApplicationService:
    def __init__(self, journal: TransactionJournal | None = None) -> None:
        self._journal = journal or TransactionJournal()

    async def get_transaction(
        self, db: AsyncSession, txn_id: str, user_id: str
    ) -> TransactionResponse:
        txn = await self._journal.get(db, txn_id)
        if user_id not in (txn.buyer_id, txn.seller_id):
            raise UnauthorizedActionError(f"user {user_id} is not a party to transaction {txn_id}")
        return TransactionResponse.from_transaction(txn)

    async def list_transactions(
        self, db: AsyncSession, user_id: str, limit: int, cursor: str | None
    ) -> TransactionListResponse:
        txns = await self._journal.list_for_user(db, user_id, limit=limit + 1, cursor_id=cursor)
        has_more = len(txns) > limit
        page = txns[:limit]
        return TransactionListResponse(
            items=[TransactionResponse.from_transaction(t) for t in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )
