"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class OfferKind(str, Enum):
    """Cash-for-item purchase or item-for-item trade."""
    PURCHASE = "PURCHASE"
    TRADE = "TRADE"


class OfferStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (OfferStatus.COMPLETED, OfferStatus.REJECTED)


class PartyRole(str, Enum):
    BUYER = "BUYER"
    SELLER = "SELLER"


class ItemStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class EscrowOperation(str, Enum):
    HOLD = "HOLD"
    RELEASE = "RELEASE"
    REFUND = "REFUND"


class LedgerEntryType(str, Enum):
    # External top-up / drawdown
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    # Escrow custody (user side)
    ESCROW_HOLD = "ESCROW_HOLD"
    ESCROW_REFUND = "ESCROW_REFUND"
    ESCROW_RELEASE = "ESCROW_RELEASE"
    # Settlement credit to the counterparty
    SETTLEMENT_PAYOUT = "SETTLEMENT_PAYOUT"
