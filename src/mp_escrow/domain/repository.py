"""EscrowOperationLog Protocol: at-most-once record of custody movements."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import EscrowOperation


class EscrowOperationLogProtocol(Protocol):
    async def claim(
        self,
        db: AsyncSession,
        offer_id: str,
        user_id: str,
        operation: EscrowOperation,
        amount: int,
    ) -> bool:
        """Record the operation; False when the same key was already recorded."""
        ...
