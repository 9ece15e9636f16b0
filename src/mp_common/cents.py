"""Integer arithmetic utilities for cents-based settlement.

All prices, amounts, and balances use int (cents). No float, no Decimal.
"""

BPS_DENOMINATOR = 10_000


def validate_amount(amount: int) -> None:
    """Validate that a monetary amount is a non-negative integer number of cents."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of cents, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def calculate_fee(amount: int, fee_rate_bps: int) -> int:
    """Calculate a fee rounded half-up to the nearest cent.

    fee = round(amount * fee_rate_bps / 10000), ties away from zero.
    Using integer arithmetic: (a * bps + 5000) // 10000
    """
    if amount == 0 or fee_rate_bps == 0:
        return 0
    return (amount * fee_rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR
