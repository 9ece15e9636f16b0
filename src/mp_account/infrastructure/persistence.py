"""AccountRepository: concrete implementation of AccountRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING with
the business guard in the WHERE clause. A result of 0 rows means the guard
failed (insufficient spendable or escrow balance, or unknown account).

Transaction ownership: The CALLER (application service or settlement engine)
is responsible for committing or rolling back the session.
"""

from typing import Any

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.models import Account, LedgerEntry
from src.mp_common.enums import LedgerEntryType
from src.mp_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InternalError,
    InvariantViolationError,
)

# ---------------------------------------------------------------------------
# SQL: accounts mutations
# ---------------------------------------------------------------------------

_ACCOUNT_COLUMNS = "id, user_id, spendable_balance, escrow_balance, version, created_at, updated_at"

_DEPOSIT_SQL = text(f"""
    UPDATE accounts
    SET spendable_balance = spendable_balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_WITHDRAW_SQL = text(f"""
    UPDATE accounts
    SET spendable_balance = spendable_balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND spendable_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_HOLD_SQL = text(f"""
    UPDATE accounts
    SET spendable_balance = spendable_balance - :amount,
        escrow_balance    = escrow_balance    + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND spendable_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_REFUND_SQL = text(f"""
    UPDATE accounts
    SET spendable_balance = spendable_balance + :amount,
        escrow_balance    = escrow_balance    - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND escrow_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_DEBIT_ESCROW_SQL = text(f"""
    UPDATE accounts
    SET escrow_balance = escrow_balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND escrow_balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_CREDIT_SPENDABLE_SQL = _DEPOSIT_SQL

_INSERT_LEDGER_SQL = text("""
    INSERT INTO ledger_entries
        (user_id, entry_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :entry_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING id, user_id, entry_type, amount, balance_after,
              reference_type, reference_id, description, created_at
""")

_LIST_LEDGER_SQL = text("""
    SELECT id, user_id, entry_type, amount, balance_after,
           reference_type, reference_id, description, created_at
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = :entry_type)
    ORDER BY id DESC
    LIMIT :limit
""")

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id
""")

# Sorted lock order keeps two offers touching the same pair of users deadlock-free
_LOCK_ACCOUNTS_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = ANY(:user_ids)
    ORDER BY user_id
    FOR UPDATE
""")


def _row_to_account(row: Any) -> Account:
    return Account(
        id=str(row.id),
        user_id=row.user_id,
        spendable_balance=row.spendable_balance,
        escrow_balance=row.escrow_balance,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_ledger(row: Any) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        user_id=row.user_id,
        entry_type=row.entry_type,
        amount=row.amount,
        balance_after=row.balance_after,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        description=row.description,
        created_at=row.created_at,
    )


class AccountRepository:
    """Concrete repository: all operations atomic at the SQL level."""

    async def get_account_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def lock_accounts(
        self, db: AsyncSession, user_ids: list[str]
    ) -> dict[str, Account]:
        """SELECT ... FOR UPDATE every listed account; blocks on contention.

        Raises AccountNotFoundError if any user has no account row.
        """
        wanted = sorted(set(user_ids))
        result = await db.execute(_LOCK_ACCOUNTS_SQL, {"user_ids": wanted})
        accounts = {acc.user_id: acc for acc in map(_row_to_account, result.fetchall())}
        for user_id in wanted:
            if user_id not in accounts:
                raise AccountNotFoundError(user_id)
        return accounts

    async def deposit(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> tuple[Account, LedgerEntry]:
        row = (await db.execute(_DEPOSIT_SQL, {"user_id": user_id, "amount": amount})).fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        account = _row_to_account(row)
        entry = await self._write_ledger(
            db, account, LedgerEntryType.DEPOSIT, amount, "DEPOSIT", None, "External top-up"
        )
        return account, entry

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> tuple[Account, LedgerEntry]:
        row = (await db.execute(_WITHDRAW_SQL, {"user_id": user_id, "amount": amount})).fetchone()
        if row is None:
            raise InsufficientFundsError(amount, await self._spendable(db, user_id), user_id)
        account = _row_to_account(row)
        entry = await self._write_ledger(
            db, account, LedgerEntryType.WITHDRAW, -amount, "WITHDRAW", None, "External drawdown"
        )
        return account, entry

    async def hold_funds(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        row = (await db.execute(_HOLD_SQL, {"user_id": user_id, "amount": amount})).fetchone()
        if row is None:
            raise InsufficientFundsError(amount, await self._spendable(db, user_id), user_id)
        account = _row_to_account(row)
        entry = await self._write_ledger(
            db, account, LedgerEntryType.ESCROW_HOLD, -amount, ref_type, ref_id, description
        )
        return account, entry

    async def refund_funds(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        account = await self._mutate_escrow(db, _REFUND_SQL, user_id, amount)
        entry = await self._write_ledger(
            db, account, LedgerEntryType.ESCROW_REFUND, amount, ref_type, ref_id, description
        )
        return account, entry

    async def debit_escrow(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        account = await self._mutate_escrow(db, _DEBIT_ESCROW_SQL, user_id, amount)
        entry = await self._write_ledger(
            db, account, LedgerEntryType.ESCROW_RELEASE, -amount, ref_type, ref_id, description
        )
        return account, entry

    async def credit_spendable(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        row = (
            await db.execute(_CREDIT_SPENDABLE_SQL, {"user_id": user_id, "amount": amount})
        ).fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        account = _row_to_account(row)
        entry = await self._write_ledger(
            db, account, LedgerEntryType.SETTLEMENT_PAYOUT, amount, ref_type, ref_id, description
        )
        return account, entry

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _spendable(self, db: AsyncSession, user_id: str) -> int:
        row = (await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return int(row.spendable_balance)

    async def _mutate_escrow(
        self, db: AsyncSession, sql: TextClause, user_id: str, amount: int
    ) -> Account:
        """Escrow can only shrink by what was held; a failed guard is an accounting bug."""
        row = (await db.execute(sql, {"user_id": user_id, "amount": amount})).fetchone()
        if row is None:
            acc_row = (await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})).fetchone()
            if acc_row is None:
                raise AccountNotFoundError(user_id)
            raise InvariantViolationError(
                f"escrow of user {user_id} is {acc_row.escrow_balance}, cannot remove {amount}"
            )
        return _row_to_account(row)

    async def _write_ledger(
        self,
        db: AsyncSession,
        account: Account,
        entry_type: LedgerEntryType,
        amount: int,
        ref_type: str,
        ref_id: str | None,
        description: str,
    ) -> LedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": account.user_id,
                "entry_type": entry_type.value,
                "amount": amount,
                "balance_after": account.spendable_balance,
                "reference_type": ref_type,
                "reference_id": ref_id,
                "description": description,
            },
        )
        ledger_row = result.fetchone()
        if ledger_row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(ledger_row)
