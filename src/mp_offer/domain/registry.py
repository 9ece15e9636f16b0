"""OfferRegistry: creates, stores and authorizes offers.

The registry only guards structural validity (no self-trades, no offers on
items that cannot take them). Which transition may run in which state is the
settlement engine's business.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.cents import validate_amount
from src.mp_common.datetime_utils import utc_now
from src.mp_common.enums import OfferKind, OfferStatus, PartyRole
from src.mp_common.errors import (
    InvalidOfferError,
    ItemNotFoundError,
    OfferNotFoundError,
    UnauthorizedActionError,
)
from src.mp_common.id_generator import generate_id
from src.mp_item.domain.models import Item
from src.mp_item.domain.repository import ItemRepositoryProtocol
from src.mp_item.infrastructure.persistence import ItemRepository
from src.mp_offer.domain.models import Offer, OfferItemDetails
from src.mp_offer.domain.repository import OfferRepositoryProtocol
from src.mp_offer.infrastructure.persistence import OfferRepository

logger = logging.getLogger(__name__)


def _check_amount(name: str, value: int) -> None:
    try:
        validate_amount(value)
    except ValueError as exc:
        raise InvalidOfferError(f"{name}: {exc}") from None


def _check_kind_rules(kind: OfferKind, item: Item, proposed_value: int) -> None:
    if kind is OfferKind.PURCHASE:
        if not item.allow_buy or item.price is None:
            raise InvalidOfferError(f"item {item.id} is not for sale")
        return
    if not item.allow_trade:
        raise InvalidOfferError(f"item {item.id} is not open to trades")
    if proposed_value <= 0:
        raise InvalidOfferError("a trade must declare a positive value for the offered item")


class OfferRegistry:
    def __init__(
        self,
        offer_repo: OfferRepositoryProtocol | None = None,
        item_repo: ItemRepositoryProtocol | None = None,
    ) -> None:
        self._offers: OfferRepositoryProtocol = offer_repo or OfferRepository()
        self._items: ItemRepositoryProtocol = item_repo or ItemRepository()

    async def create_offer(
        self,
        db: AsyncSession,
        buyer_id: str,
        seller_id: str,
        item_id: str,
        kind: OfferKind,
        proposed_value: int,
        item_details: OfferItemDetails | None = None,
    ) -> Offer:
        """Validate and store a new PENDING offer. The caller commits."""
        if buyer_id == seller_id:
            raise InvalidOfferError("buyer and seller must be different users")
        _check_amount("proposed_value", proposed_value)

        item = await self._items.get_by_id(item_id, db)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.owner_id != seller_id:
            raise InvalidOfferError(f"user {seller_id} does not own item {item_id}")
        if not item.is_available:
            raise InvalidOfferError(f"item {item_id} is {item.status}")
        _check_kind_rules(kind, item, proposed_value)

        details = item_details or OfferItemDetails()
        now = utc_now()
        offer = Offer(
            id=generate_id(),
            buyer_id=buyer_id,
            seller_id=seller_id,
            item_id=item_id,
            kind=kind.value,
            proposed_value=proposed_value,
            status=OfferStatus.PENDING.value,
            offered_item_name=details.name,
            description=details.description,
            created_at=now,
            updated_at=now,
        )
        await self._offers.save(offer, db)
        logger.info(
            "Offer created: id=%s kind=%s buyer=%s seller=%s item=%s value=%d",
            offer.id, offer.kind, buyer_id, seller_id, item_id, proposed_value,
        )
        return offer

    async def get_offer(self, db: AsyncSession, offer_id: str) -> Offer:
        offer = await self._offers.get_by_id(offer_id, db)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return offer

    async def get_offer_for_update(self, db: AsyncSession, offer_id: str) -> Offer:
        """Row-locked read for a transition in progress."""
        offer = await self._offers.get_for_update(offer_id, db)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return offer

    async def get_offer_for_participant(
        self, db: AsyncSession, offer_id: str, user_id: str
    ) -> Offer:
        offer = await self.get_offer(db, offer_id)
        if user_id not in (offer.buyer_id, offer.seller_id):
            raise UnauthorizedActionError(f"user {user_id} is not a party to offer {offer_id}")
        return offer

    async def list_offers_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        status: OfferStatus | None = None,
        limit: int = 20,
        cursor_id: str | None = None,
    ) -> list[Offer]:
        """Offers where the user is buyer or seller, newest first."""
        statuses = [status.value] if status else None
        return await self._offers.list_by_user(user_id, statuses, limit, cursor_id, db)

    async def save_transition(
        self, db: AsyncSession, offer: Offer, previous: OfferStatus
    ) -> bool:
        """Persist an offer whose status moved from ``previous``. False on a lost race."""
        return await self._offers.update(offer, previous, db)

    @staticmethod
    def authorize(offer: Offer, actor_id: str, role: PartyRole) -> None:
        """The claimed role must belong to the acting user on this offer."""
        if offer.party_id(role) != actor_id:
            raise UnauthorizedActionError(
                f"user {actor_id} is not the {role.value.lower()} of offer {offer.id}"
            )
