"""OfferRepository Protocol: interface contract for persistence layer."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import OfferStatus
from src.mp_offer.domain.models import Offer


class OfferRepositoryProtocol(Protocol):
    async def save(self, offer: Offer, db: AsyncSession) -> None: ...

    async def get_by_id(self, offer_id: str, db: AsyncSession) -> Offer | None: ...

    async def get_for_update(self, offer_id: str, db: AsyncSession) -> Offer | None: ...

    async def update(
        self, offer: Offer, expected_status: OfferStatus, db: AsyncSession
    ) -> bool: ...

    async def list_by_user(
        self,
        user_id: str,
        statuses: list[str] | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Offer]: ...
