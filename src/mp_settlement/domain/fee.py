"""Platform fee policy: basis points of the escrowed amount, per offer kind."""

from dataclasses import dataclass

from config.settings import settings
from src.mp_common.cents import calculate_fee
from src.mp_common.enums import OfferKind

MAX_FEE_BPS = 10_000  # 100%: a larger rate would take more than the escrow holds


@dataclass(frozen=True)
class FeeSchedule:
    trade_bps: int
    purchase_bps: int

    def __post_init__(self) -> None:
        for name in ("trade_bps", "purchase_bps"):
            bps = getattr(self, name)
            if not 0 <= bps <= MAX_FEE_BPS:
                raise ValueError(f"{name} must be between 0 and {MAX_FEE_BPS}, got {bps}")

    @classmethod
    def from_settings(cls) -> "FeeSchedule":
        return cls(trade_bps=settings.TRADE_FEE_BPS, purchase_bps=settings.PURCHASE_FEE_BPS)

    def rate_bps(self, kind: OfferKind) -> int:
        return self.trade_bps if kind is OfferKind.TRADE else self.purchase_bps

    def fee_for(self, kind: OfferKind, escrow_amount: int) -> int:
        """round_half_up(escrow_amount * bps / 10000), in cents."""
        return calculate_fee(escrow_amount, self.rate_bps(kind))
