"""Repository Protocol: dependency inversion for testability.

Unit tests inject an implementation that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.models import Account, LedgerEntry


class AccountRepositoryProtocol(Protocol):
    async def get_account_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Account | None: ...

    async def lock_accounts(
        self, db: AsyncSession, user_ids: list[str]
    ) -> dict[str, Account]: ...

    async def deposit(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> tuple[Account, LedgerEntry]: ...

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> tuple[Account, LedgerEntry]: ...

    async def hold_funds(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]: ...

    async def refund_funds(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]: ...

    async def debit_escrow(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]: ...

    async def credit_spendable(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...
