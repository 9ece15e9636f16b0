"""Money conservation check around a settlement."""

import logging
from collections.abc import Iterable

from src.mp_account.domain.models import Account
from src.mp_common.errors import InvariantViolationError

logger = logging.getLogger(__name__)


def total_holdings(accounts: Iterable[Account]) -> int:
    """Spendable plus escrow across the given accounts."""
    return sum(acc.spendable_balance + acc.escrow_balance for acc in accounts)


def verify_conservation(offer_id: str, before: int, after: int, fee: int) -> None:
    """Settlement may only remove the platform fee from the parties' combined holdings."""
    if before - fee != after:
        logger.error(
            "Conservation violated: offer=%s before=%d fee=%d after=%d",
            offer_id, before, fee, after,
        )
        raise InvariantViolationError(
            f"offer {offer_id}: holdings {before} - fee {fee} != {after}"
        )
    logger.debug("Conservation OK: offer=%s before=%d after=%d", offer_id, before, after)
