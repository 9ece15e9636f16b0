"""Offer domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.mp_common.enums import OfferKind, OfferStatus, PartyRole


@dataclass
class OfferItemDetails:
    """What the buyer puts on the table besides cash (TRADE offers)."""

    name: str | None = None
    description: str | None = None


@dataclass
class Offer:
    id: str
    buyer_id: str
    seller_id: str
    item_id: str
    kind: str  # PURCHASE / TRADE
    proposed_value: int  # cents; for TRADE the declared value of the offered item
    status: str = OfferStatus.PENDING.value
    offered_item_name: str | None = None
    description: str | None = None
    # Confirmation flags, meaningful only once ACCEPTED
    buyer_confirmed: bool = False
    seller_confirmed: bool = False
    # Custody actually placed at acceptance
    escrow_amount: int = 0  # held from the buyer
    seller_escrow_amount: int = 0  # held from the seller (two-sided trades only)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def status_enum(self) -> OfferStatus:
        return OfferStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    @property
    def is_trade(self) -> bool:
        return self.kind == OfferKind.TRADE.value

    @property
    def both_confirmed(self) -> bool:
        return self.buyer_confirmed and self.seller_confirmed

    def party_id(self, role: PartyRole) -> str:
        return self.buyer_id if role is PartyRole.BUYER else self.seller_id

    def is_confirmed_by(self, role: PartyRole) -> bool:
        return self.buyer_confirmed if role is PartyRole.BUYER else self.seller_confirmed

    def mark_confirmed(self, role: PartyRole) -> None:
        if role is PartyRole.BUYER:
            self.buyer_confirmed = True
        else:
            self.seller_confirmed = True
