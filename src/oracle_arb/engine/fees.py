"""Settlement fee model.

The settlement leg is a redemption whose fee grows with the redeemed share
of outstanding debt. ``FeeModel`` adds the slippage buffer on top of the
protocol quote and caps the result at 100%.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from oracle_arb.utils.fixed import WAD, div_trunc, wdiv

REDEMPTION_FEE_FLOOR = 5 * 10**15  # 0.5%
BETA = 2


class FeeSchedule(Protocol):
    """Protocol fee state captured once per cycle."""

    @property
    def total_debt(self) -> int:
        """Total outstanding debt (quote asset, wad)."""

    def quote_fee(self, amount: int, total_debt: int) -> int:
        """Uncapped base rate for settling ``amount``."""


@dataclass(frozen=True, slots=True)
class RedemptionFeeSchedule:
    """Redemption rate = current decayed rate + redeemed fraction / BETA.

    ``current_rate`` is the protocol's rate with decay, floor included.
    """

    current_rate: int
    total_debt: int

    def quote_fee(self, amount: int, total_debt: int) -> int:
        if total_debt <= 0:
            return WAD
        fraction = wdiv(amount, total_debt)
        return self.current_rate + div_trunc(fraction, BETA)


class FeeModel:
    """Marginal settlement fee for a given size, in [0, WAD]."""

    def __init__(self, schedule: FeeSchedule, slippage_tolerance: int) -> None:
        if not 0 <= slippage_tolerance <= WAD:
            raise ValueError(f"slippage_tolerance_out_of_range: {slippage_tolerance}")
        self._schedule = schedule
        self._slippage_tolerance = slippage_tolerance

    @property
    def total_debt(self) -> int:
        return self._schedule.total_debt

    def marginal_fee(self, candidate_amount: int, total_outstanding_debt: int | None = None) -> int:
        """Return the capped fee rate for settling ``candidate_amount``."""
        if candidate_amount < 0:
            raise ValueError(f"negative_settlement_amount: {candidate_amount}")
        debt = self.total_debt if total_outstanding_debt is None else total_outstanding_debt
        if debt <= 0:
            return WAD
        rate = self._schedule.quote_fee(candidate_amount, debt) + self._slippage_tolerance
        return max(0, min(rate, WAD))
