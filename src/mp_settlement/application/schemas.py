"""Pydantic schemas for settlement transitions."""

from pydantic import BaseModel

from src.mp_common.enums import PartyRole
from src.mp_journal.application.schemas import TransactionResponse
from src.mp_offer.application.schemas import OfferResponse
from src.mp_settlement.domain.models import SettlementResult


class TransitionRequest(BaseModel):
    """The acting user states the role they act in; it is checked against the offer."""

    role: PartyRole


class SettlementResponse(BaseModel):
    offer: OfferResponse
    transaction: TransactionResponse | None
    completed: bool

    @classmethod
    def from_result(cls, result: SettlementResult) -> "SettlementResponse":
        return cls(
            offer=OfferResponse.from_offer(result.offer),
            transaction=(
                TransactionResponse.from_transaction(result.transaction)
                if result.transaction
                else None
            ),
            completed=result.completed,
        )
