"""EscrowCustodian: moves funds between spendable and escrow balances.

Every movement is idempotent per (offer_id, user_id, operation): the key is
claimed first and a replayed key returns False without touching balances.
All writes share the caller's session; the caller commits or rolls back.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_account.domain.repository import AccountRepositoryProtocol
from src.mp_account.infrastructure.persistence import AccountRepository
from src.mp_common.enums import EscrowOperation
from src.mp_common.errors import InvariantViolationError
from src.mp_escrow.domain.repository import EscrowOperationLogProtocol
from src.mp_escrow.infrastructure.operation_log import EscrowOperationLog

logger = logging.getLogger(__name__)

_REF_TYPE = "OFFER"


class EscrowCustodian:
    def __init__(
        self,
        account_repo: AccountRepositoryProtocol | None = None,
        operation_log: EscrowOperationLogProtocol | None = None,
    ) -> None:
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._log: EscrowOperationLogProtocol = operation_log or EscrowOperationLog()

    async def _claim(
        self,
        db: AsyncSession,
        offer_id: str,
        user_id: str,
        operation: EscrowOperation,
        amount: int,
    ) -> bool:
        if amount < 0:
            raise InvariantViolationError(f"negative escrow {operation.value} amount {amount}")
        if amount == 0:
            return False
        if not await self._log.claim(db, offer_id, user_id, operation, amount):
            logger.info(
                "Escrow %s already applied: offer=%s user=%s",
                operation.value, offer_id, user_id,
            )
            return False
        return True

    async def hold(self, db: AsyncSession, offer_id: str, user_id: str, amount: int) -> bool:
        """spendable -= amount; escrow += amount. Raises InsufficientFundsError."""
        if not await self._claim(db, offer_id, user_id, EscrowOperation.HOLD, amount):
            return False
        await self._accounts.hold_funds(
            db, user_id, amount, _REF_TYPE, offer_id, f"Escrow hold for offer {offer_id}"
        )
        logger.info("Escrow hold: offer=%s user=%s amount=%d", offer_id, user_id, amount)
        return True

    async def release(
        self,
        db: AsyncSession,
        offer_id: str,
        user_id: str,
        amount: int,
        destination_user_id: str,
        fee: int,
    ) -> bool:
        """Clear ``amount`` from the source escrow and pay ``amount - fee`` to the destination.

        The fee is not credited anywhere: it leaves the accounts as platform revenue.
        """
        if fee < 0 or fee > amount:
            raise InvariantViolationError(f"fee {fee} outside [0, {amount}] for offer {offer_id}")
        if not await self._claim(db, offer_id, user_id, EscrowOperation.RELEASE, amount):
            return False
        await self._accounts.debit_escrow(
            db, user_id, amount, _REF_TYPE, offer_id, f"Escrow released for offer {offer_id}"
        )
        payout = amount - fee
        if payout > 0:
            await self._accounts.credit_spendable(
                db,
                destination_user_id,
                payout,
                _REF_TYPE,
                offer_id,
                f"Settlement of offer {offer_id} (fee {fee})",
            )
        logger.info(
            "Escrow release: offer=%s from=%s to=%s amount=%d fee=%d",
            offer_id, user_id, destination_user_id, amount, fee,
        )
        return True

    async def refund(self, db: AsyncSession, offer_id: str, user_id: str, amount: int) -> bool:
        """escrow -= amount; spendable += amount."""
        if not await self._claim(db, offer_id, user_id, EscrowOperation.REFUND, amount):
            return False
        await self._accounts.refund_funds(
            db, user_id, amount, _REF_TYPE, offer_id, f"Escrow refund for offer {offer_id}"
        )
        logger.info("Escrow refund: offer=%s user=%s amount=%d", offer_id, user_id, amount)
        return True
