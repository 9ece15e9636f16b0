"""In-memory implementations of the repository Protocols for engine tests.

FakeSession keeps an undo log: every fake repository write registers how to
revert itself, commit forgets the log and rollback replays it backwards. Reads
and row locks yield to the event loop so concurrent transitions interleave.
"""

import asyncio
import copy
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from src.mp_account.domain.models import Account, LedgerEntry
from src.mp_common.enums import (
    EscrowOperation,
    ItemStatus,
    LedgerEntryType,
    OfferStatus,
    TransactionStatus,
)
from src.mp_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvariantViolationError,
)
from src.mp_escrow.domain.custodian import EscrowCustodian
from src.mp_item.domain.models import Item
from src.mp_journal.domain.journal import TransactionJournal
from src.mp_journal.domain.models import TimelineEntry, Transaction
from src.mp_offer.domain.models import Offer
from src.mp_offer.domain.registry import OfferRegistry
from src.mp_settlement.domain.fee import FeeSchedule
from src.mp_settlement.engine.engine import SettlementEngine


class FakeSession:
    def __init__(self) -> None:
        self._undo: list[Callable[[], None]] = []
        self.commits = 0
        self.rollbacks = 0

    def on_rollback(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    async def commit(self) -> None:
        self._undo.clear()
        self.commits += 1

    async def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()
        self.rollbacks += 1


@dataclass
class FakeStore:
    accounts: dict[str, Account] = field(default_factory=dict)
    ledger: list[LedgerEntry] = field(default_factory=list)
    items: dict[str, Item] = field(default_factory=dict)
    offers: dict[str, Offer] = field(default_factory=dict)
    transactions: dict[str, Transaction] = field(default_factory=dict)
    timeline: list[TimelineEntry] = field(default_factory=list)
    escrow_ops: set[tuple[str, str, str]] = field(default_factory=set)

    def add_account(self, user_id: str, spendable: int = 0, escrow: int = 0) -> None:
        self.accounts[user_id] = Account(
            id=f"acc-{user_id}",
            user_id=user_id,
            spendable_balance=spendable,
            escrow_balance=escrow,
            version=0,
        )

    def add_item(self, item: Item) -> None:
        self.items[item.id] = item

    def holdings(self, *user_ids: str) -> int:
        return sum(self.accounts[u].total_balance for u in user_ids)


def _keep(db: FakeSession, mapping: dict, key: str) -> None:
    """Register an undo that puts ``mapping[key]`` back the way it is now."""
    previous = mapping.get(key)
    if previous is None:
        db.on_rollback(lambda: mapping.pop(key, None))
    else:
        saved = copy.deepcopy(previous)
        db.on_rollback(lambda: mapping.__setitem__(key, saved))


def _append(db: FakeSession, items: list, value: object) -> None:
    items.append(value)
    db.on_rollback(lambda: items.remove(value))


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class FakeAccountRepository:
    def __init__(self, store: FakeStore) -> None:
        self._s = store
        self._ids = itertools.count(1)

    def _get(self, user_id: str) -> Account:
        acc = self._s.accounts.get(user_id)
        if acc is None:
            raise AccountNotFoundError(user_id)
        return acc

    async def get_account_by_user_id(self, db: FakeSession, user_id: str) -> Account | None:
        acc = self._s.accounts.get(user_id)
        return replace(acc) if acc else None

    async def lock_accounts(self, db: FakeSession, user_ids: list[str]) -> dict[str, Account]:
        await asyncio.sleep(0)
        return {u: replace(self._get(u)) for u in sorted(set(user_ids))}

    def _move(
        self,
        db: FakeSession,
        user_id: str,
        spendable_delta: int,
        escrow_delta: int,
        entry_type: LedgerEntryType,
        ledger_amount: int,
        ref_type: str | None,
        ref_id: str | None,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        acc = self._get(user_id)
        _keep(db, self._s.accounts, user_id)
        updated = replace(
            acc,
            spendable_balance=acc.spendable_balance + spendable_delta,
            escrow_balance=acc.escrow_balance + escrow_delta,
            version=acc.version + 1,
        )
        self._s.accounts[user_id] = updated
        entry = LedgerEntry(
            id=next(self._ids),
            user_id=user_id,
            entry_type=entry_type.value,
            amount=ledger_amount,
            balance_after=updated.spendable_balance,
            reference_type=ref_type,
            reference_id=ref_id,
            description=description,
        )
        _append(db, self._s.ledger, entry)
        return replace(updated), entry

    async def deposit(
        self, db: FakeSession, user_id: str, amount: int
    ) -> tuple[Account, LedgerEntry]:
        return self._move(
            db, user_id, amount, 0, LedgerEntryType.DEPOSIT, amount, "DEPOSIT", None, "top-up"
        )

    async def withdraw(
        self, db: FakeSession, user_id: str, amount: int
    ) -> tuple[Account, LedgerEntry]:
        acc = self._get(user_id)
        if acc.spendable_balance < amount:
            raise InsufficientFundsError(amount, acc.spendable_balance, user_id)
        return self._move(
            db, user_id, -amount, 0, LedgerEntryType.WITHDRAW, -amount,
            "WITHDRAW", None, "drawdown",
        )

    async def hold_funds(
        self,
        db: FakeSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        acc = self._get(user_id)
        if acc.spendable_balance < amount:
            raise InsufficientFundsError(amount, acc.spendable_balance, user_id)
        return self._move(
            db, user_id, -amount, amount, LedgerEntryType.ESCROW_HOLD, -amount,
            ref_type, ref_id, description,
        )

    def _check_escrow(self, user_id: str, amount: int) -> None:
        acc = self._get(user_id)
        if acc.escrow_balance < amount:
            raise InvariantViolationError(f"escrow of {user_id} below {amount}")

    async def refund_funds(
        self,
        db: FakeSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        self._check_escrow(user_id, amount)
        return self._move(
            db, user_id, amount, -amount, LedgerEntryType.ESCROW_REFUND, amount,
            ref_type, ref_id, description,
        )

    async def debit_escrow(
        self,
        db: FakeSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        self._check_escrow(user_id, amount)
        return self._move(
            db, user_id, 0, -amount, LedgerEntryType.ESCROW_RELEASE, -amount,
            ref_type, ref_id, description,
        )

    async def credit_spendable(
        self,
        db: FakeSession,
        user_id: str,
        amount: int,
        ref_type: str,
        ref_id: str,
        description: str,
    ) -> tuple[Account, LedgerEntry]:
        return self._move(
            db, user_id, amount, 0, LedgerEntryType.SETTLEMENT_PAYOUT, amount,
            ref_type, ref_id, description,
        )

    async def list_ledger_entries(
        self,
        db: FakeSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in reversed(self._s.ledger)
            if e.user_id == user_id
            and (cursor_id is None or e.id < cursor_id)
            and (entry_type is None or e.entry_type == entry_type)
        ]
        return entries[:limit]


# ---------------------------------------------------------------------------
# Items / offers / escrow log / journal
# ---------------------------------------------------------------------------


class FakeItemRepository:
    def __init__(self, store: FakeStore) -> None:
        self._s = store

    async def save(self, item: Item, db: FakeSession) -> None:
        _keep(db, self._s.items, item.id)
        self._s.items[item.id] = copy.deepcopy(item)

    async def get_by_id(self, item_id: str, db: FakeSession) -> Item | None:
        item = self._s.items.get(item_id)
        return copy.deepcopy(item) if item else None

    async def get_for_update(self, item_id: str, db: FakeSession) -> Item | None:
        await asyncio.sleep(0)
        return await self.get_by_id(item_id, db)

    async def transition_status(
        self, item_id: str, from_status: ItemStatus, to_status: ItemStatus, db: FakeSession
    ) -> bool:
        item = self._s.items.get(item_id)
        if item is None or item.status != from_status.value:
            return False
        _keep(db, self._s.items, item_id)
        self._s.items[item_id] = replace(item, status=to_status.value)
        return True


class FakeOfferRepository:
    def __init__(self, store: FakeStore) -> None:
        self._s = store

    async def save(self, offer: Offer, db: FakeSession) -> None:
        _keep(db, self._s.offers, offer.id)
        self._s.offers[offer.id] = copy.deepcopy(offer)

    async def get_by_id(self, offer_id: str, db: FakeSession) -> Offer | None:
        offer = self._s.offers.get(offer_id)
        return copy.deepcopy(offer) if offer else None

    async def get_for_update(self, offer_id: str, db: FakeSession) -> Offer | None:
        await asyncio.sleep(0)
        return await self.get_by_id(offer_id, db)

    async def update(self, offer: Offer, expected_status: OfferStatus, db: FakeSession) -> bool:
        await asyncio.sleep(0)
        current = self._s.offers.get(offer.id)
        if current is None or current.status != expected_status.value:
            return False
        _keep(db, self._s.offers, offer.id)
        self._s.offers[offer.id] = copy.deepcopy(offer)
        return True

    async def list_by_user(
        self,
        user_id: str,
        statuses: list[str] | None,
        limit: int,
        cursor_id: str | None,
        db: FakeSession,
    ) -> list[Offer]:
        offers = sorted(
            (
                o for o in self._s.offers.values()
                if user_id in (o.buyer_id, o.seller_id)
                and (statuses is None or o.status in statuses)
                and (cursor_id is None or o.id < cursor_id)
            ),
            key=lambda o: o.id,
            reverse=True,
        )
        return copy.deepcopy(offers[:limit])


class FakeEscrowOperationLog:
    def __init__(self, store: FakeStore) -> None:
        self._s = store

    async def claim(
        self, db: FakeSession, offer_id: str, user_id: str, operation: EscrowOperation, amount: int
    ) -> bool:
        key = (offer_id, user_id, operation.value)
        if key in self._s.escrow_ops:
            return False
        self._s.escrow_ops.add(key)
        db.on_rollback(lambda: self._s.escrow_ops.discard(key))
        return True


class FakeTransactionRepository:
    def __init__(self, store: FakeStore) -> None:
        self._s = store
        self._ids = itertools.count(1)

    def _load(self, txn: Transaction) -> Transaction:
        loaded = copy.deepcopy(txn)
        loaded.timeline = [
            copy.deepcopy(e) for e in self._s.timeline if e.transaction_id == txn.id
        ]
        return loaded

    async def save(self, txn: Transaction, db: FakeSession) -> None:
        _keep(db, self._s.transactions, txn.id)
        stored = copy.deepcopy(txn)
        stored.timeline = []
        self._s.transactions[txn.id] = stored

    async def get_by_id(self, txn_id: str, db: FakeSession) -> Transaction | None:
        txn = self._s.transactions.get(txn_id)
        return self._load(txn) if txn else None

    async def get_by_offer_id(self, offer_id: str, db: FakeSession) -> Transaction | None:
        for txn in self._s.transactions.values():
            if txn.offer_id == offer_id:
                return self._load(txn)
        return None

    async def list_by_user(
        self, user_id: str, limit: int, cursor_id: str | None, db: FakeSession
    ) -> list[Transaction]:
        txns = sorted(
            (
                t for t in self._s.transactions.values()
                if user_id in (t.buyer_id, t.seller_id)
                and (cursor_id is None or t.id < cursor_id)
            ),
            key=lambda t: t.id,
            reverse=True,
        )
        return [self._load(t) for t in txns[:limit]]

    async def update_status(
        self,
        txn_id: str,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
        db: FakeSession,
    ) -> bool:
        txn = self._s.transactions.get(txn_id)
        if txn is None or txn.status != from_status.value:
            return False
        _keep(db, self._s.transactions, txn_id)
        self._s.transactions[txn_id] = replace(txn, status=to_status.value)
        return True

    async def append_timeline(self, entry: TimelineEntry, db: FakeSession) -> TimelineEntry:
        stored = replace(entry, id=next(self._ids))
        _append(db, self._s.timeline, stored)
        return replace(stored)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@dataclass
class Harness:
    store: FakeStore
    engine: SettlementEngine
    registry: OfferRegistry
    journal: TransactionJournal
    accounts: FakeAccountRepository


def build_harness(
    store: FakeStore | None = None,
    trade_bps: int = 1000,
    purchase_bps: int = 1500,
    seller_escrow: bool = True,
) -> Harness:
    store = store or FakeStore()
    accounts = FakeAccountRepository(store)
    items = FakeItemRepository(store)
    registry = OfferRegistry(offer_repo=FakeOfferRepository(store), item_repo=items)
    journal = TransactionJournal(repo=FakeTransactionRepository(store))
    custodian = EscrowCustodian(account_repo=accounts, operation_log=FakeEscrowOperationLog(store))
    engine = SettlementEngine(
        registry=registry,
        custodian=custodian,
        journal=journal,
        account_repo=accounts,
        item_repo=items,
        fees=FeeSchedule(trade_bps=trade_bps, purchase_bps=purchase_bps),
        seller_escrow=seller_escrow,
    )
    return Harness(
        store=store, engine=engine, registry=registry, journal=journal, accounts=accounts
    )
