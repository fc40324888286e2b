from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

BPS_DENOMINATOR = 10_000


class FeePolicy(BaseModel):
    """Proportional fee in basis points, rounded down in the asset's smallest unit."""

    model_config = ConfigDict(frozen=True)

    rate_bps: int = Field(ge=0, le=BPS_DENOMINATOR)

    def fee_for(self, amount: int) -> int:
        if amount < 0:
            msg = "amount must be >= 0"
            raise ValueError(msg)
        return amount * self.rate_bps // BPS_DENOMINATOR

    def split(self, amount: int) -> tuple[int, int]:
        """Return (fee, net) for a deposited amount."""
        fee = self.fee_for(amount)
        return fee, amount - fee
