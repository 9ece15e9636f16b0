"""EscrowOperationLog: idempotency keys for custody movements.

The key row is written in the same database transaction as the balance
change it guards, so a rollback forgets both.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.enums import EscrowOperation

_CLAIM_SQL = text("""
    INSERT INTO escrow_operations (offer_id, user_id, operation, amount)
    VALUES (:offer_id, :user_id, :operation, :amount)
    ON CONFLICT (offer_id, user_id, operation) DO NOTHING
    RETURNING offer_id
""")


class EscrowOperationLog:
    async def claim(
        self,
        db: AsyncSession,
        offer_id: str,
        user_id: str,
        operation: EscrowOperation,
        amount: int,
    ) -> bool:
        result = await db.execute(
            _CLAIM_SQL,
            {
                "offer_id": offer_id,
                "user_id": user_id,
                "operation": operation.value,
                "amount": amount,
            },
        )
        return result.fetchone() is not None
