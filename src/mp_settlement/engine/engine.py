"""SettlementEngine: the offer state machine.

    PENDING ──accept──> ACCEPTED ──confirm x2──> COMPLETED
       │  └─accept, buyer short─> PENDING_PAYMENT ──accept──> ACCEPTED
       └──────────────reject (from any non-terminal)──────────> REJECTED

    ACCEPTED ──refund──> REJECTED, transaction REFUNDED (dispute unwind)

Each transition runs under a per-offer asyncio.Lock and inside one database
transaction that row-locks offer, item, then both accounts (sorted by user
id). Commit on success, rollback on any error.
"""

import asyncio
import logging
import weakref

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import (
    ItemStatus,
    OfferKind,
    OfferStatus,
    PartyRole,
    TransactionStatus,
)
from src.mp_common.errors import (
    InsufficientFundsError,
    InvalidOfferError,
    InvalidTransitionError,
    InvariantViolationError,
    ItemNotFoundError,
    UnauthorizedActionError,
)
from src.mp_escrow.domain.custodian import EscrowCustodian
from src.mp_escrow.domain.policy import compute_escrow_amount, seller_bond_amount
from src.mp_item.domain.models import Item
from src.mp_item.domain.repository import ItemRepositoryProtocol
from src.mp_item.infrastructure.persistence import ItemRepository
from src.mp_journal.domain.journal import TransactionJournal
from src.mp_journal.domain.models import Transaction
from src.mp_offer.domain.models import Offer
from src.mp_offer.domain.registry import OfferRegistry
from src.mp_settlement.domain.fee import FeeSchedule
from src.mp_settlement.domain.invariants import total_holdings, verify_conservation
from src.mp_settlement.domain.models import SettlementResult

logger = logging.getLogger(__name__)

_ACCEPTABLE = (OfferStatus.PENDING, OfferStatus.PENDING_PAYMENT)
_REJECTABLE = (OfferStatus.PENDING, OfferStatus.PENDING_PAYMENT, OfferStatus.ACCEPTED)


class SettlementEngine:
    def __init__(
        self,
        registry: OfferRegistry | None = None,
        custodian: EscrowCustodian | None = None,
        journal: TransactionJournal | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        item_repo: ItemRepositoryProtocol | None = None,
        fees: FeeSchedule | None = None,
        seller_escrow: bool | None = None,
    ) -> None:
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._items: ItemRepositoryProtocol = item_repo or ItemRepository()
        self._registry = registry or OfferRegistry(item_repo=self._items)
        self._custodian = custodian or EscrowCustodian(account_repo=self._accounts)
        self._journal = journal or TransactionJournal()
        self._fees = fees or FeeSchedule.from_settings()
        self._seller_escrow = (
            settings.TRADE_SELLER_ESCROW if seller_escrow is None else seller_escrow
        )
        # Entries disappear once no coroutine holds the lock
        self._offer_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get_or_create_lock(self, offer_id: str) -> asyncio.Lock:
        lock = self._offer_locks.get(offer_id)
        if lock is None:
            lock = asyncio.Lock()
            self._offer_locks[offer_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def accept(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole = PartyRole.SELLER
    ) -> SettlementResult:
        """Seller accepts: hold escrow, reserve the item, open a PENDING transaction.

        Role and party checks run before the status check, so a non-seller gets
        UnauthorizedActionError even on a terminal offer.

        A buyer shortfall still commits PENDING_PAYMENT before the
        InsufficientFundsError is raised, so the buyer can top up and the
        seller retry.
        """
        async with self._get_or_create_lock(offer_id):
            try:
                result, shortfall = await self._accept_inner(db, offer_id, actor_id, role)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        if shortfall is not None:
            raise shortfall
        return result

    async def confirm(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> SettlementResult:
        """Set the caller's confirmation flag; the second distinct confirmation settles."""
        async with self._get_or_create_lock(offer_id):
            try:
                result = await self._confirm_inner(db, offer_id, actor_id, role)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return result

    async def reject(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> SettlementResult:
        """Either party walks away; any escrow goes back to whoever placed it."""
        async with self._get_or_create_lock(offer_id):
            try:
                result = await self._reject_inner(db, offer_id, actor_id, role)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return result

    async def refund(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> SettlementResult:
        """Unwind an accepted offer after a dispute; the transaction ends REFUNDED."""
        async with self._get_or_create_lock(offer_id):
            try:
                result = await self._refund_inner(db, offer_id, actor_id, role)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return result

    # ------------------------------------------------------------------
    # Inner steps (run inside the lock and the DB transaction)
    # ------------------------------------------------------------------

    async def _accept_inner(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> tuple[SettlementResult, InsufficientFundsError | None]:
        offer = await self._registry.get_offer_for_update(db, offer_id)
        if role is not PartyRole.SELLER:
            raise UnauthorizedActionError(f"only the seller may accept offer {offer_id}")
        self._registry.authorize(offer, actor_id, role)
        previous = offer.status_enum
        if previous not in _ACCEPTABLE:
            raise InvalidTransitionError(offer.id, offer.status, "accepted")

        item = await self._lock_item(db, offer)
        if not item.is_available:
            raise InvalidOfferError(f"item {item.id} is {item.status}")

        kind = OfferKind(offer.kind)
        amount = compute_escrow_amount(kind, item, offer.proposed_value)
        bond = seller_bond_amount(kind, amount, self._seller_escrow)

        # Both balances are checked before either hold is placed
        accounts = await self._accounts.lock_accounts(db, [offer.buyer_id, offer.seller_id])
        buyer = accounts[offer.buyer_id]
        seller = accounts[offer.seller_id]
        if buyer.spendable_balance < amount:
            shortfall = InsufficientFundsError(amount, buyer.spendable_balance, offer.buyer_id)
            if previous is not OfferStatus.PENDING_PAYMENT:
                offer.status = OfferStatus.PENDING_PAYMENT.value
                await self._save(db, offer, previous)
            logger.info(
                "Offer %s awaiting payment: buyer=%s needs %d has %d",
                offer.id, offer.buyer_id, amount, buyer.spendable_balance,
            )
            return SettlementResult(offer=offer), shortfall
        if seller.spendable_balance < bond:
            raise InsufficientFundsError(bond, seller.spendable_balance, offer.seller_id)

        await self._custodian.hold(db, offer.id, offer.buyer_id, amount)
        await self._custodian.hold(db, offer.id, offer.seller_id, bond)
        await self._move_item(db, item.id, ItemStatus.AVAILABLE, ItemStatus.RESERVED)

        offer.status = OfferStatus.ACCEPTED.value
        offer.escrow_amount = amount
        offer.seller_escrow_amount = bond
        await self._save(db, offer, previous)

        fee = self._fees.fee_for(kind, amount)
        txn = await self._journal.create(
            db, offer, amount, fee, note=f"accepted by seller, escrow {amount} held"
        )
        logger.info(
            "Offer %s accepted: escrow=%d seller_bond=%d fee=%d txn=%s",
            offer.id, amount, bond, fee, txn.id,
        )
        return SettlementResult(offer=offer, transaction=txn), None

    async def _confirm_inner(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> SettlementResult:
        offer = await self._registry.get_offer_for_update(db, offer_id)
        self._registry.authorize(offer, actor_id, role)
        if offer.status_enum is not OfferStatus.ACCEPTED:
            raise InvalidTransitionError(offer.id, offer.status, "confirmed")
        txn = await self._journal.get_by_offer(db, offer.id)
        if txn is None:
            logger.error("Accepted offer %s has no transaction", offer.id)
            raise InvariantViolationError(f"accepted offer {offer.id} has no transaction")

        if offer.is_confirmed_by(role):
            logger.info("Offer %s already confirmed by %s", offer.id, role.value)
            return SettlementResult(offer=offer, transaction=txn)

        offer.mark_confirmed(role)
        await self._journal.append_timeline_entry(db, txn, f"confirmed by {role.value.lower()}")
        if not offer.both_confirmed:
            await self._save(db, offer, OfferStatus.ACCEPTED)
            logger.info("Offer %s confirmed by %s", offer.id, role.value)
            return SettlementResult(offer=offer, transaction=txn)

        await self._settle(db, offer, txn)
        return SettlementResult(offer=offer, transaction=txn)

    async def _settle(self, db: AsyncSession, offer: Offer, txn: Transaction) -> None:
        """Single commit point: release escrow, sell the item, complete offer and transaction."""
        await self._lock_item(db, offer)
        parties = [offer.buyer_id, offer.seller_id]
        before = total_holdings((await self._accounts.lock_accounts(db, parties)).values())

        await self._custodian.release(
            db, offer.id, offer.buyer_id, offer.escrow_amount, offer.seller_id, txn.platform_fee
        )
        await self._custodian.refund(db, offer.id, offer.seller_id, offer.seller_escrow_amount)
        await self._move_item(db, offer.item_id, ItemStatus.RESERVED, ItemStatus.SOLD)

        offer.status = OfferStatus.COMPLETED.value
        await self._save(db, offer, OfferStatus.ACCEPTED)
        await self._journal.finalize(
            db,
            txn,
            TransactionStatus.COMPLETED,
            f"completed, seller credited {txn.seller_proceeds}, platform fee {txn.platform_fee}",
        )

        after = total_holdings((await self._accounts.lock_accounts(db, parties)).values())
        verify_conservation(offer.id, before, after, txn.platform_fee)
        logger.info(
            "Offer %s settled: amount=%d fee=%d txn=%s",
            offer.id, txn.amount, txn.platform_fee, txn.id,
        )

    async def _reject_inner(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> SettlementResult:
        offer = await self._registry.get_offer_for_update(db, offer_id)
        self._registry.authorize(offer, actor_id, role)
        previous = offer.status_enum
        if previous not in _REJECTABLE:
            raise InvalidTransitionError(offer.id, offer.status, "rejected")

        if previous is OfferStatus.ACCEPTED:
            await self._release_holds(db, offer)

        offer.status = OfferStatus.REJECTED.value
        await self._save(db, offer, previous)

        txn = await self._journal.get_by_offer(db, offer.id)
        if txn is not None:
            await self._journal.finalize(
                db, txn, TransactionStatus.CANCELLED, f"rejected by {role.value.lower()}"
            )
        logger.info("Offer %s rejected by %s (was %s)", offer.id, role.value, previous.value)
        return SettlementResult(offer=offer, transaction=txn)

    async def _refund_inner(
        self, db: AsyncSession, offer_id: str, actor_id: str, role: PartyRole
    ) -> SettlementResult:
        offer = await self._registry.get_offer_for_update(db, offer_id)
        self._registry.authorize(offer, actor_id, role)
        if offer.status_enum is not OfferStatus.ACCEPTED:
            raise InvalidTransitionError(offer.id, offer.status, "refunded")
        txn = await self._journal.get_by_offer(db, offer.id)
        if txn is None:
            logger.error("Accepted offer %s has no transaction", offer.id)
            raise InvariantViolationError(f"accepted offer {offer.id} has no transaction")

        await self._release_holds(db, offer)
        offer.status = OfferStatus.REJECTED.value
        await self._save(db, offer, OfferStatus.ACCEPTED)
        await self._journal.finalize(
            db,
            txn,
            TransactionStatus.REFUNDED,
            f"refunded by {role.value.lower()}, {offer.escrow_amount} returned to buyer",
        )
        logger.info("Offer %s refunded by %s: txn=%s", offer.id, role.value, txn.id)
        return SettlementResult(offer=offer, transaction=txn)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _release_holds(self, db: AsyncSession, offer: Offer) -> None:
        """Return every hold of an accepted offer and put the item back on sale."""
        await self._lock_item(db, offer)
        await self._accounts.lock_accounts(db, [offer.buyer_id, offer.seller_id])
        await self._custodian.refund(db, offer.id, offer.buyer_id, offer.escrow_amount)
        await self._custodian.refund(db, offer.id, offer.seller_id, offer.seller_escrow_amount)
        await self._move_item(db, offer.item_id, ItemStatus.RESERVED, ItemStatus.AVAILABLE)

    async def _lock_item(self, db: AsyncSession, offer: Offer) -> Item:
        item = await self._items.get_for_update(offer.item_id, db)
        if item is None:
            raise ItemNotFoundError(offer.item_id)
        return item

    async def _move_item(
        self, db: AsyncSession, item_id: str, from_status: ItemStatus, to_status: ItemStatus
    ) -> None:
        if not await self._items.transition_status(item_id, from_status, to_status, db):
            logger.error(
                "Item %s not %s when moving to %s", item_id, from_status.value, to_status.value
            )
            raise InvariantViolationError(
                f"item {item_id} expected {from_status.value} before {to_status.value}"
            )

    async def _save(self, db: AsyncSession, offer: Offer, previous: OfferStatus) -> None:
        offer.updated_at = utc_now()
        if not await self._registry.save_transition(db, offer, previous):
            logger.error("Lost update on offer %s (expected %s)", offer.id, previous.value)
            raise InvariantViolationError(
                f"offer {offer.id} changed concurrently, expected {previous.value}"
            )
