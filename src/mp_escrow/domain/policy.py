"""Escrow amount policy.

PURCHASE: the listed price.
TRADE:    the larger of the two declared values (listing trade value vs the
          value the buyer puts on the offered item), never their sum.
"""

from src.mp_common.enums import OfferKind
from src.mp_common.errors import InvalidOfferError
from src.mp_item.domain.models import Item


def compute_escrow_amount(kind: OfferKind, item: Item, proposed_value: int) -> int:
    if kind is OfferKind.PURCHASE:
        if item.price is None:
            raise InvalidOfferError(f"item {item.id} has no listed price")
        return item.price
    return max(item.trade_value or 0, proposed_value)


def seller_bond_amount(kind: OfferKind, escrow_amount: int, two_sided: bool) -> int:
    """Amount the seller places in custody alongside the buyer (0 for one-sided deals)."""
    if kind is OfferKind.TRADE and two_sided:
        return escrow_amount
    return 0
