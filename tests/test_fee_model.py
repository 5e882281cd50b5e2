from __future__ import annotations

import pytest

from oracle_arb.engine.fees import REDEMPTION_FEE_FLOOR, FeeModel, RedemptionFeeSchedule
from oracle_arb.utils.fixed import WAD, to_wad


class _NegativeSchedule:
    total_debt = 1_000 * WAD

    def quote_fee(self, amount: int, total_debt: int) -> int:
        return -5 * WAD


def test_redemption_schedule_adds_half_of_redeemed_fraction() -> None:
    schedule = RedemptionFeeSchedule(current_rate=REDEMPTION_FEE_FLOOR, total_debt=1_000_000 * WAD)
    # 10k of 1M debt is 1%, half of it is 0.5%
    assert schedule.quote_fee(10_000 * WAD, schedule.total_debt) == to_wad("0.01")


def test_marginal_fee_adds_slippage_buffer() -> None:
    schedule = RedemptionFeeSchedule(current_rate=REDEMPTION_FEE_FLOOR, total_debt=1_000_000 * WAD)
    model = FeeModel(schedule, slippage_tolerance=to_wad("0.001"))
    assert model.marginal_fee(10_000 * WAD, model.total_debt) == to_wad("0.011")
    assert model.marginal_fee(10_000 * WAD) == to_wad("0.011")


@pytest.mark.parametrize("amount", [0, 1, WAD, 1_000 * WAD, 10**9 * WAD])
def test_marginal_fee_always_within_unit_interval(amount: int) -> None:
    schedule = RedemptionFeeSchedule(current_rate=to_wad("0.4"), total_debt=2_000 * WAD)
    model = FeeModel(schedule, slippage_tolerance=to_wad("0.01"))
    rate = model.marginal_fee(amount)
    assert 0 <= rate <= WAD


def test_pathological_ratio_clamps_to_exactly_one() -> None:
    schedule = RedemptionFeeSchedule(current_rate=to_wad("0.9"), total_debt=100 * WAD)
    model = FeeModel(schedule, slippage_tolerance=to_wad("0.005"))
    assert model.marginal_fee(1_000 * WAD) == WAD
    assert model.marginal_fee(1 * WAD, total_outstanding_debt=0) == WAD


def test_negative_quote_clamps_to_zero() -> None:
    model = FeeModel(_NegativeSchedule(), slippage_tolerance=to_wad("0.001"))
    assert model.marginal_fee(WAD) == 0


def test_invalid_inputs_rejected() -> None:
    schedule = RedemptionFeeSchedule(current_rate=REDEMPTION_FEE_FLOOR, total_debt=WAD)
    with pytest.raises(ValueError):
        FeeModel(schedule, slippage_tolerance=2 * WAD)
    with pytest.raises(ValueError):
        FeeModel(schedule, slippage_tolerance=0).marginal_fee(-1)
