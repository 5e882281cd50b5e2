"""Fee-adjusted profit of one candidate trade size."""

from __future__ import annotations

from oracle_arb.engine.fees import FeeModel
from oracle_arb.types import PoolReserves, ProfitResult, TradeCandidate
from oracle_arb.utils.fixed import WAD, div_trunc, wdiv, wmul

DEFAULT_POOL_FEE = 3 * 10**15  # 0.3%


def constant_product_out(amount_in: int, reserve_in: int, reserve_out: int, fee: int) -> int:
    """Output of a constant-product swap with the fee taken from the input.

    ``out = reserve_out * in*(1-fee) / (reserve_in + in*(1-fee))``, evaluated
    with a single truncating division.
    """
    if amount_in <= 0:
        raise ValueError(f"amount_in must be positive: {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(f"reserves must be positive: in={reserve_in}, out={reserve_out}")
    if not 0 <= fee < WAD:
        raise ValueError(f"fee must be in [0, 1): {fee}")

    in_with_fee = amount_in * (WAD - fee)
    return div_trunc(reserve_out * in_with_fee, reserve_in * WAD + in_with_fee)


class ProfitEvaluator:
    """Evaluate the AMM leg plus settlement leg for one candidate.

    The settlement fee is deducted from the AMM output before the quote
    amount is converted back to base at the oracle price, so the fee reduces
    the base actually redeemed.
    """

    def __init__(self, pool_fee: int = DEFAULT_POOL_FEE) -> None:
        if not 0 <= pool_fee < WAD:
            raise ValueError(f"pool_fee_out_of_range: {pool_fee}")
        self._pool_fee = pool_fee

    def evaluate(
        self,
        candidate: TradeCandidate,
        reserves: PoolReserves,
        oracle_price: int,
        fee_model: FeeModel,
    ) -> ProfitResult:
        if oracle_price <= 0:
            raise ValueError(f"oracle_price must be positive: {oracle_price}")

        amm_output = constant_product_out(
            candidate.amount_in,
            reserves.reserve_base,
            reserves.reserve_quote,
            self._pool_fee,
        )
        marginal_fee = fee_model.marginal_fee(amm_output, fee_model.total_debt)
        fee_amount = wmul(amm_output, marginal_fee)
        net_settlement = amm_output - fee_amount
        redeemed_base = wdiv(net_settlement, oracle_price)
        return ProfitResult(
            candidate=candidate,
            amm_output=amm_output,
            marginal_fee=marginal_fee,
            fee_amount=fee_amount,
            net_settlement=net_settlement,
            redeemed_base=redeemed_base,
            profit=redeemed_base - candidate.amount_in,
        )
