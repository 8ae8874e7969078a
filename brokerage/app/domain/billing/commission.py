"""
Commission policy.

The platform fee is a deployment setting, either a percentage of the
accepted price or a flat amount per invoice.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from brokerage.app.models.billing_enums import CommissionMode

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize any numeric to cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionPolicy:
    mode: CommissionMode = CommissionMode.PERCENTAGE
    value: Decimal = Decimal("0")

    def __post_init__(self):
        # Accept plain strings and floats coming from settings
        object.__setattr__(self, "mode", CommissionMode(self.mode))
        object.__setattr__(self, "value", Decimal(str(self.value)))
        if self.value < 0:
            raise ValueError(f"commission value must be non-negative, got {self.value}")

    def fee_for(self, amount) -> Decimal:
        """
        Platform fee for an invoice amount.

        The fee never exceeds the amount, so the partner share is never
        negative.
        """
        amount = to_money(amount)
        if self.mode is CommissionMode.PERCENTAGE:
            fee = amount * self.value / Decimal("100")
        else:
            fee = self.value
        fee = min(max(fee, Decimal("0")), amount)
        return to_money(fee)

    def split(self, amount) -> tuple[Decimal, Decimal, Decimal]:
        """Return (amount, platform_fee, partner_amount), summing exactly."""
        amount = to_money(amount)
        fee = self.fee_for(amount)
        return amount, fee, amount - fee
