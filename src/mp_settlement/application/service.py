# src/mp_settlement/application/service.py
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import PartyRole
from src.mp_settlement.application.schemas import SettlementResponse
from src.mp_settlement.engine.engine import SettlementEngine

_engine: SettlementEngine | None = None


def get_settlement_engine() -> SettlementEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = SettlementEngine()
    return _engine


async def accept_offer(offer_id: str, user_id: str, db: AsyncSession) -> SettlementResponse:
    result = await get_settlement_engine().accept(db, offer_id, user_id, PartyRole.SELLER)
    return SettlementResponse.from_result(result)


async def confirm_offer(
    offer_id: str, user_id: str, role: PartyRole, db: AsyncSession
) -> SettlementResponse:
    result = await get_settlement_engine().confirm(db, offer_id, user_id, role)
    return SettlementResponse.from_result(result)


async def reject_offer(
    offer_id: str, user_id: str, role: PartyRole, db: AsyncSession
) -> SettlementResponse:
    result = await get_settlement_engine().reject(db, offer_id, user_id, role)
    return SettlementResponse.from_result(result)


async def refund_offer(
    offer_id: str, user_id: str, role: PartyRole, db: AsyncSession
) -> SettlementResponse:
    result = await get_settlement_engine().refund(db, offer_id, user_id, role)
    return SettlementResponse.from_result(result)
