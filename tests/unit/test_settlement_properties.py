"""Money and state-machine properties of the settlement engine.

Randomized cases use a seeded ``random.Random`` so failures reproduce.
"""

import asyncio
import random

import pytest

from src.mp_common.cents import calculate_fee
from src.mp_common.enums import (
    ItemStatus,
    LedgerEntryType,
    OfferKind,
    OfferStatus,
    PartyRole,
    TransactionStatus,
)
from src.mp_common.errors import InvalidTransitionError
from src.mp_escrow.domain.policy import compute_escrow_amount
from src.mp_item.domain.models import Item
from src.mp_offer.domain.models import Offer
from tests.unit.settlement_fakes import FakeSession, Harness, build_harness

BUYER = "buyer-1"
SELLER = "seller-1"


async def _open_trade(
    h: Harness, item_id: str, trade_value: int, proposed: int
) -> Offer:
    h.store.add_item(Item(id=item_id, owner_id=SELLER, title=item_id, trade_value=trade_value))
    db = FakeSession()
    offer = await h.registry.create_offer(db, BUYER, SELLER, item_id, OfferKind.TRADE, proposed)
    await db.commit()
    return offer


async def _accepted_trade(h: Harness, item_id: str, trade_value: int, proposed: int) -> Offer:
    offer = await _open_trade(h, item_id, trade_value, proposed)
    result = await h.engine.accept(FakeSession(), offer.id, SELLER)
    return result.offer


def _payouts(h: Harness, offer_id: str) -> list[int]:
    return [
        e.amount
        for e in h.store.ledger
        if e.entry_type == LedgerEntryType.SETTLEMENT_PAYOUT.value and e.reference_id == offer_id
    ]


class TestEscrowPolicy:
    def test_trade_escrows_the_larger_value(self) -> None:
        item = Item(id="i", owner_id=SELLER, title="t", trade_value=100)
        assert compute_escrow_amount(OfferKind.TRADE, item, 150) == 150

    def test_trade_escrow_is_never_the_sum(self) -> None:
        item = Item(id="i", owner_id=SELLER, title="t", trade_value=150)
        assert compute_escrow_amount(OfferKind.TRADE, item, 100) == 150

    def test_trade_without_listing_value_uses_offer(self) -> None:
        item = Item(id="i", owner_id=SELLER, title="t", trade_value=None)
        assert compute_escrow_amount(OfferKind.TRADE, item, 70) == 70

    def test_purchase_escrows_listed_price(self) -> None:
        item = Item(id="i", owner_id=SELLER, title="t", price=999, trade_value=5000)
        assert compute_escrow_amount(OfferKind.PURCHASE, item, 10) == 999


class TestConservation:
    @pytest.mark.parametrize("seller_escrow", [True, False])
    async def test_settlement_removes_exactly_the_fee(self, seller_escrow: bool) -> None:
        rng = random.Random(20261018)
        for case in range(40):
            bps = rng.choice([0, 1000, 1250, 1500, 2000])
            h = build_harness(trade_bps=bps, seller_escrow=seller_escrow)
            trade_value = rng.randint(1, 50_000)
            proposed = rng.randint(1, 50_000)
            escrow = max(trade_value, proposed)
            h.store.add_account(BUYER, escrow + rng.randint(0, 10_000))
            h.store.add_account(SELLER, escrow + rng.randint(0, 10_000))
            before = h.store.holdings(BUYER, SELLER)

            offer = await _accepted_trade(h, f"item-{case}", trade_value, proposed)
            roles = [PartyRole.BUYER, PartyRole.SELLER]
            rng.shuffle(roles)
            for role in roles:
                await h.engine.confirm(FakeSession(), offer.id, offer.party_id(role), role)

            fee = calculate_fee(escrow, bps)
            assert h.store.holdings(BUYER, SELLER) == before - fee
            assert h.store.accounts[BUYER].escrow_balance == 0
            assert h.store.accounts[SELLER].escrow_balance == 0
            assert _payouts(h, offer.id) == ([escrow - fee] if escrow > fee else [])

    async def test_rejection_after_acceptance_restores_every_balance(self) -> None:
        rng = random.Random(7)
        for case in range(25):
            h = build_harness()
            h.store.add_account(BUYER, rng.randint(50_000, 90_000))
            h.store.add_account(SELLER, rng.randint(50_000, 90_000))
            initial = {u: a.spendable_balance for u, a in h.store.accounts.items()}
            offer = await _accepted_trade(
                h, f"item-{case}", rng.randint(1, 50_000), rng.randint(1, 50_000)
            )
            role = rng.choice([PartyRole.BUYER, PartyRole.SELLER])

            await h.engine.reject(FakeSession(), offer.id, offer.party_id(role), role)

            assert {u: a.spendable_balance for u, a in h.store.accounts.items()} == initial
            assert all(a.escrow_balance == 0 for a in h.store.accounts.values())

    async def test_refund_restores_every_balance(self) -> None:
        rng = random.Random(11)
        for case in range(25):
            h = build_harness(seller_escrow=rng.choice([True, False]))
            h.store.add_account(BUYER, rng.randint(50_000, 90_000))
            h.store.add_account(SELLER, rng.randint(50_000, 90_000))
            initial = {u: a.spendable_balance for u, a in h.store.accounts.items()}
            offer = await _accepted_trade(
                h, f"item-{case}", rng.randint(1, 50_000), rng.randint(1, 50_000)
            )
            role = rng.choice([PartyRole.BUYER, PartyRole.SELLER])

            result = await h.engine.refund(FakeSession(), offer.id, offer.party_id(role), role)

            assert {u: a.spendable_balance for u, a in h.store.accounts.items()} == initial
            assert all(a.escrow_balance == 0 for a in h.store.accounts.values())
            assert result.transaction.status == TransactionStatus.REFUNDED.value
            assert h.store.items[f"item-{case}"].status == ItemStatus.AVAILABLE.value


class TestNoDoubleSettlement:
    async def test_concurrent_confirmations_settle_once(self) -> None:
        rng = random.Random(42)
        h = build_harness()
        h.store.add_account(BUYER, 10_000_000)
        h.store.add_account(SELLER, 10_000_000)
        for case in range(30):
            offer = await _accepted_trade(h, f"item-{case}", 1000, rng.randint(1, 5000))
            calls = [
                h.engine.confirm(FakeSession(), offer.id, BUYER, PartyRole.BUYER)
                for _ in range(rng.randint(1, 3))
            ] + [
                h.engine.confirm(FakeSession(), offer.id, SELLER, PartyRole.SELLER)
                for _ in range(rng.randint(1, 3))
            ]
            rng.shuffle(calls)

            results = await asyncio.gather(*calls, return_exceptions=True)

            # Confirms queued behind the settling one find the offer terminal
            assert all(
                not isinstance(r, Exception) or isinstance(r, InvalidTransitionError)
                for r in results
            )
            assert sum(1 for r in results if not isinstance(r, Exception) and r.completed) >= 1
            assert len(_payouts(h, offer.id)) == 1
            assert h.store.offers[offer.id].status == OfferStatus.COMPLETED.value

    async def test_duplicate_confirmations_from_one_party_do_not_settle(self) -> None:
        h = build_harness()
        h.store.add_account(BUYER, 1000)
        h.store.add_account(SELLER, 1000)
        offer = await _accepted_trade(h, "item-x", 300, 200)

        await asyncio.gather(
            *(h.engine.confirm(FakeSession(), offer.id, BUYER, PartyRole.BUYER) for _ in range(5))
        )

        stored = h.store.offers[offer.id]
        assert stored.status == OfferStatus.ACCEPTED.value
        assert stored.buyer_confirmed is True
        assert stored.seller_confirmed is False
        assert _payouts(h, offer.id) == []
        confirmations = [e for e in h.store.timeline if e.note == "confirmed by buyer"]
        assert len(confirmations) == 1

    async def test_confirm_racing_reject_ends_in_exactly_one_outcome(self) -> None:
        rng = random.Random(99)
        for case in range(30):
            h = build_harness()
            h.store.add_account(BUYER, 5000)
            h.store.add_account(SELLER, 5000)
            before = h.store.holdings(BUYER, SELLER)
            offer = await _accepted_trade(h, f"item-{case}", 1000, 800)
            rejector = rng.choice([PartyRole.BUYER, PartyRole.SELLER])
            calls = [
                h.engine.confirm(FakeSession(), offer.id, BUYER, PartyRole.BUYER),
                h.engine.confirm(FakeSession(), offer.id, SELLER, PartyRole.SELLER),
                h.engine.reject(FakeSession(), offer.id, offer.party_id(rejector), rejector),
            ]
            rng.shuffle(calls)

            results = await asyncio.gather(*calls, return_exceptions=True)

            assert all(
                not isinstance(r, Exception) or isinstance(r, InvalidTransitionError)
                for r in results
            )
            status = h.store.offers[offer.id].status
            (txn,) = h.store.transactions.values()
            if status == OfferStatus.COMPLETED.value:
                assert txn.status == TransactionStatus.COMPLETED.value
                assert h.store.holdings(BUYER, SELLER) == before - txn.platform_fee
                assert h.store.items[f"item-{case}"].status == ItemStatus.SOLD.value
            else:
                assert status == OfferStatus.REJECTED.value
                assert txn.status == TransactionStatus.CANCELLED.value
                assert h.store.accounts[BUYER].spendable_balance == 5000
                assert h.store.accounts[SELLER].spendable_balance == 5000
                assert h.store.items[f"item-{case}"].status == ItemStatus.AVAILABLE.value
            assert all(a.escrow_balance == 0 for a in h.store.accounts.values())

    async def test_confirm_racing_refund_ends_in_exactly_one_outcome(self) -> None:
        rng = random.Random(1234)
        for case in range(30):
            h = build_harness()
            h.store.add_account(BUYER, 5000)
            h.store.add_account(SELLER, 5000)
            before = h.store.holdings(BUYER, SELLER)
            offer = await _accepted_trade(h, f"item-{case}", 1000, rng.randint(1, 4000))
            refunder = rng.choice([PartyRole.BUYER, PartyRole.SELLER])
            calls = [
                h.engine.confirm(FakeSession(), offer.id, BUYER, PartyRole.BUYER),
                h.engine.confirm(FakeSession(), offer.id, SELLER, PartyRole.SELLER),
                h.engine.refund(FakeSession(), offer.id, offer.party_id(refunder), refunder),
            ]
            rng.shuffle(calls)

            results = await asyncio.gather(*calls, return_exceptions=True)

            assert all(
                not isinstance(r, Exception) or isinstance(r, InvalidTransitionError)
                for r in results
            )
            (txn,) = h.store.transactions.values()
            if h.store.offers[offer.id].status == OfferStatus.COMPLETED.value:
                assert txn.status == TransactionStatus.COMPLETED.value
                assert h.store.holdings(BUYER, SELLER) == before - txn.platform_fee
            else:
                assert h.store.offers[offer.id].status == OfferStatus.REJECTED.value
                assert txn.status == TransactionStatus.REFUNDED.value
                assert h.store.holdings(BUYER, SELLER) == before
                assert _payouts(h, offer.id) == []
            assert all(a.escrow_balance == 0 for a in h.store.accounts.values())


class TestScenarios:
    async def test_trade_accepted_confirmed_and_settled(self) -> None:
        h = build_harness(trade_bps=1000)
        h.store.add_account(BUYER, 1000)
        h.store.add_account(SELLER, 500)
        offer = await _open_trade(h, "listing", trade_value=150, proposed=200)

        accepted = await h.engine.accept(FakeSession(), offer.id, SELLER)
        assert accepted.offer.escrow_amount == 200
        assert h.store.accounts[BUYER].spendable_balance == 800
        assert h.store.accounts[BUYER].escrow_balance == 200

        await h.engine.confirm(FakeSession(), offer.id, BUYER, PartyRole.BUYER)
        done = await h.engine.confirm(FakeSession(), offer.id, SELLER, PartyRole.SELLER)

        assert done.completed is True
        assert _payouts(h, offer.id) == [180]
        assert h.store.accounts[BUYER].spendable_balance == 800
        assert h.store.accounts[BUYER].escrow_balance == 0
        # 500 - 200 bond + 200 bond back + 180 proceeds
        assert h.store.accounts[SELLER].spendable_balance == 680
        assert h.store.accounts[SELLER].escrow_balance == 0
        assert h.store.items["listing"].status == ItemStatus.SOLD.value
        assert done.transaction is not None
        assert done.transaction.status == TransactionStatus.COMPLETED.value
        assert h.store.holdings(BUYER, SELLER) == 1500 - 20

    async def test_seller_rejects_pending_offer(self) -> None:
        h = build_harness()
        h.store.add_account(BUYER, 1000)
        h.store.add_account(SELLER, 500)
        offer = await _open_trade(h, "listing", trade_value=150, proposed=200)

        result = await h.engine.reject(FakeSession(), offer.id, SELLER, PartyRole.SELLER)

        assert result.offer.status == OfferStatus.REJECTED.value
        assert h.store.transactions == {}
        assert h.store.ledger == []
        assert h.store.accounts[BUYER].spendable_balance == 1000
        assert h.store.accounts[SELLER].spendable_balance == 500

    async def test_buyer_rejects_after_acceptance(self) -> None:
        h = build_harness()
        h.store.add_account(BUYER, 1000)
        h.store.add_account(SELLER, 500)
        offer = await _accepted_trade(h, "listing", 150, 200)

        result = await h.engine.reject(FakeSession(), offer.id, BUYER, PartyRole.BUYER)

        assert h.store.accounts[BUYER].spendable_balance == 1000
        assert h.store.accounts[BUYER].escrow_balance == 0
        assert result.transaction is not None
        assert result.transaction.status == TransactionStatus.CANCELLED.value
