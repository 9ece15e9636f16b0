"""Settlement engine result type."""

from dataclasses import dataclass

from src.mp_common.enums import OfferStatus
from src.mp_journal.domain.models import Transaction
from src.mp_offer.domain.models import Offer


@dataclass
class SettlementResult:
    offer: Offer
    transaction: Transaction | None = None

    @property
    def completed(self) -> bool:
        return self.offer.status == OfferStatus.COMPLETED.value
