"""Pydantic schemas for mp_offer API."""

from pydantic import BaseModel, Field

from src.mp_common.cents import cents_to_display
from src.mp_common.datetime_utils import to_iso
from src.mp_common.enums import OfferKind
from src.mp_offer.domain.models import Offer


class CreateOfferRequest(BaseModel):
    item_id: str
    seller_id: str
    kind: OfferKind
    proposed_value_cents: int = Field(..., ge=0, description="Cash offered, or value of the offered item")
    offered_item_name: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=2000)


class OfferResponse(BaseModel):
    id: str
    buyer_id: str
    seller_id: str
    item_id: str
    kind: str
    status: str
    proposed_value_cents: int
    proposed_value_display: str
    escrow_amount_cents: int
    seller_escrow_amount_cents: int
    buyer_confirmed: bool
    seller_confirmed: bool
    offered_item_name: str | None
    description: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_offer(cls, offer: Offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            item_id=offer.item_id,
            kind=offer.kind,
            status=offer.status,
            proposed_value_cents=offer.proposed_value,
            proposed_value_display=cents_to_display(offer.proposed_value),
            escrow_amount_cents=offer.escrow_amount,
            seller_escrow_amount_cents=offer.seller_escrow_amount,
            buyer_confirmed=offer.buyer_confirmed,
            seller_confirmed=offer.seller_confirmed,
            offered_item_name=offer.offered_item_name,
            description=offer.description,
            created_at=to_iso(offer.created_at),
            updated_at=to_iso(offer.updated_at),
        )


class OfferListResponse(BaseModel):
    items: list[OfferResponse]
    next_cursor: str | None
    has_more: bool
