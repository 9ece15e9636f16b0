"""AccountApplicationService: thin composition layer over AccountRepository.

Top-ups and drawdowns commit their own transaction; reads run without one.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.application.schemas import (
    BalanceChangeResponse,
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.errors import AccountNotFoundError

logger = logging.getLogger(__name__)


class AccountApplicationService:
    def __init__(self, repo: AccountRepositoryProtocol | None = None) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        account = await self._repo.get_account_by_user_id(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return BalanceResponse.from_account(account)

    async def deposit(
        self, db: AsyncSession, user_id: str, amount_cents: int
    ) -> BalanceChangeResponse:
        try:
            account, entry = await self._repo.deposit(db, user_id, amount_cents)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Top-up: user=%s amount=%d", user_id, amount_cents)
        return BalanceChangeResponse(
            balance=BalanceResponse.from_account(account),
            ledger_entry=LedgerEntryItem.from_entry(entry),
        )

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount_cents: int
    ) -> BalanceChangeResponse:
        try:
            account, entry = await self._repo.withdraw(db, user_id, amount_cents)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Drawdown: user=%s amount=%d", user_id, amount_cents)
        return BalanceChangeResponse(
            balance=BalanceResponse.from_account(account),
            ledger_entry=LedgerEntryItem.from_entry(entry),
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(
            db, user_id, cursor_decode(cursor), limit + 1, entry_type
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        return LedgerResponse(
            items=[LedgerEntryItem.from_entry(e) for e in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )
