"""OfferApplicationService: offer submission and read-side queries."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import OfferStatus
from src.mp_offer.application.schemas import (
    CreateOfferRequest,
    OfferListResponse,
    OfferResponse,
)
from src.mp_offer.domain.models import OfferItemDetails
from src.mp_offer.domain.registry import OfferRegistry


class OfferApplicationService:
    def __init__(self, registry: OfferRegistry | None = None) -> None:
        self._registry = registry or OfferRegistry()

    async def create_offer(
        self, db: AsyncSession, buyer_id: str, req: CreateOfferRequest
    ) -> OfferResponse:
        try:
            offer = await self._registry.create_offer(
                db,
                buyer_id=buyer_id,
                seller_id=req.seller_id,
                item_id=req.item_id,
                kind=req.kind,
                proposed_value=req.proposed_value_cents,
                item_details=OfferItemDetails(req.offered_item_name, req.description),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return OfferResponse.from_offer(offer)

    async def get_offer(
        self, db: AsyncSession, offer_id: str, user_id: str
    ) -> OfferResponse:
        offer = await self._registry.get_offer_for_participant(db, offer_id, user_id)
        return OfferResponse.from_offer(offer)

    async def list_offers(
        self,
        db: AsyncSession,
        user_id: str,
        status: OfferStatus | None,
        limit: int,
        cursor: str | None,
    ) -> OfferListResponse:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        offers = await self._registry.list_offers_for_user(
            db, user_id, status=status, limit=limit + 1, cursor_id=cursor
        )
        has_more = len(offers) > limit
        page = offers[:limit]
        return OfferListResponse(
            items=[OfferResponse.from_offer(o) for o in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )
