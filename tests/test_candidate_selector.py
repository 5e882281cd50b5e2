from __future__ import annotations

from typing import Sequence

from oracle_arb.engine.evaluator import ProfitEvaluator
from oracle_arb.engine.fees import FeeModel, RedemptionFeeSchedule
from oracle_arb.engine.selector import CandidateSelector
from oracle_arb.errors import CandidateBuildError
from oracle_arb.types import PoolReserves, ProfitResult, TradeCandidate, TxData
from oracle_arb.utils.fixed import WAD, to_wad

_RESERVES = PoolReserves(reserve_base=1_000 * WAD, reserve_quote=2_000_000 * WAD, block_number=1)
_ORACLE_PRICE = 1_900 * WAD


class _FakePool:
    def __init__(self) -> None:
        self.swaps: list[tuple[int, int, str]] = []

    def reserves(self) -> Sequence[int]:
        return (_RESERVES.reserve_base, _RESERVES.reserve_quote, 0)

    def build_swap_tx(self, amount_in: int, amount_out_min: int, recipient: str) -> TxData:
        self.swaps.append((amount_in, amount_out_min, recipient))
        return TxData(to="0xpool", data="0x01")


class _FakeSettlement:
    def __init__(self, max_amount: int | None = None) -> None:
        self._max_amount = max_amount
        self.fee_rates: list[int] = []

    def fee_schedule(self) -> RedemptionFeeSchedule:
        return RedemptionFeeSchedule(current_rate=to_wad("0.005"), total_debt=500_000_000 * WAD)

    def build_settlement_tx(self, amount: int, max_fee_rate: int = WAD) -> TxData:
        if self._max_amount is not None and amount > self._max_amount:
            raise CandidateBuildError("redemption_hints_failed: too large")
        self.fee_rates.append(max_fee_rate)
        return TxData(to="0xtrove", data="0x02")


class _FakeBundler:
    def build_bundle(self, initial_amount: int, legs: Sequence[TxData]) -> TxData:
        return TxData(
            to="0xbundler",
            data="0x" + "".join(leg.data[2:] for leg in legs),
            value=initial_amount,
            gas_limit=700_000,
        )


class _FixedProfitEvaluator(ProfitEvaluator):
    def __init__(self, profit: int) -> None:
        super().__init__()
        self._profit = profit

    def evaluate(
        self,
        candidate: TradeCandidate,
        reserves: PoolReserves,
        oracle_price: int,
        fee_model: FeeModel,
    ) -> ProfitResult:
        return ProfitResult(
            candidate=candidate,
            amm_output=candidate.amount_in * 2_000,
            marginal_fee=0,
            fee_amount=0,
            net_settlement=candidate.amount_in * 2_000,
            redeemed_base=candidate.amount_in + self._profit,
            profit=self._profit,
        )


def _fee_model() -> FeeModel:
    return FeeModel(_FakeSettlement().fee_schedule(), slippage_tolerance=to_wad("0.001"))


def _candidates(*sizes: int) -> list[TradeCandidate]:
    return [TradeCandidate(amount_in=size * WAD) for size in sizes]


def _selector(
    settlement: _FakeSettlement | None = None,
    evaluator: ProfitEvaluator | None = None,
    pool: _FakePool | None = None,
) -> CandidateSelector:
    return CandidateSelector(
        evaluator or ProfitEvaluator(),
        pool or _FakePool(),
        settlement or _FakeSettlement(),
        _FakeBundler(),
        recipient="0xbundler",
    )


def test_selects_most_profitable_candidate() -> None:
    pool = _FakePool()
    decision = _selector(pool=pool).select_best(
        _candidates(1, 10, 20), _RESERVES, _ORACLE_PRICE, _fee_model()
    )

    assert decision.best is not None
    assert decision.best.candidate.amount_in == 20 * WAD
    assert decision.best.swap_tx == TxData(to="0xpool", data="0x01")
    assert decision.best.settlement_tx == TxData(to="0xtrove", data="0x02")
    assert decision.bundle is not None and decision.bundle.value == 20 * WAD
    assert decision.submit is False
    assert all(recipient == "0xbundler" for _, _, recipient in pool.swaps)


def test_outcomes_keep_candidate_order() -> None:
    decision = _selector().select_best(
        _candidates(20, 1, 10), _RESERVES, _ORACLE_PRICE, _fee_model()
    )
    assert [o.candidate.amount_in for o in decision.outcomes] == [20 * WAD, WAD, 10 * WAD]


def test_unbuildable_candidate_falls_back_to_next_best() -> None:
    # 20 ETH buys ~39k LUSD, above what the settlement can redeem
    settlement = _FakeSettlement(max_amount=30_000 * WAD)
    decision = _selector(settlement=settlement).select_best(
        _candidates(1, 10, 20), _RESERVES, _ORACLE_PRICE, _fee_model()
    )

    assert decision.best is not None
    assert decision.best.candidate.amount_in == 10 * WAD
    excluded = decision.excluded
    assert len(excluded) == 1
    assert excluded[0].candidate.amount_in == 20 * WAD
    assert excluded[0].excluded_reason is not None
    assert excluded[0].excluded_reason.startswith("build_failed")
    assert excluded[0].result is not None and excluded[0].result.profit > decision.best.profit


class _BrokenHintsSettlement(_FakeSettlement):
    def build_settlement_tx(self, amount: int, max_fee_rate: int = WAD) -> TxData:
        if amount > 30_000 * WAD:
            raise RuntimeError("node returned garbage for hints")
        return super().build_settlement_tx(amount, max_fee_rate)


def test_unexpected_leg_error_excludes_only_that_candidate() -> None:
    decision = _selector(settlement=_BrokenHintsSettlement()).select_best(
        _candidates(1, 10, 20), _RESERVES, _ORACLE_PRICE, _fee_model()
    )

    assert decision.best is not None
    assert decision.best.candidate.amount_in == 10 * WAD
    assert decision.bundle is not None
    excluded = decision.excluded
    assert [o.candidate.amount_in for o in excluded] == [20 * WAD]
    assert excluded[0].excluded_reason == "build_failed: RuntimeError: node returned garbage for hints"


def test_settlement_fee_cap_matches_evaluated_fee() -> None:
    settlement = _FakeSettlement()
    decision = _selector(settlement=settlement).select_best(
        _candidates(1), _RESERVES, _ORACLE_PRICE, _fee_model()
    )
    assert decision.best is not None
    assert settlement.fee_rates == [decision.best.marginal_fee]


def test_ties_keep_first_candidate() -> None:
    decision = _selector(evaluator=_FixedProfitEvaluator(WAD)).select_best(
        _candidates(1, 2, 3), _RESERVES, _ORACLE_PRICE, _fee_model()
    )
    assert decision.best is not None
    assert decision.best.candidate.amount_in == WAD


def test_non_positive_profit_excluded_without_building() -> None:
    pool = _FakePool()
    decision = _selector(pool=pool).select_best(
        _candidates(1, 10), _RESERVES, 2_100 * WAD, _fee_model()
    )

    assert decision.best is None
    assert decision.bundle is None
    assert [o.excluded_reason for o in decision.outcomes] == ["non_positive_profit"] * 2
    assert pool.swaps == []


def test_all_candidates_failing_yields_no_best() -> None:
    decision = _selector(settlement=_FakeSettlement(max_amount=0)).select_best(
        _candidates(1, 10, 20), _RESERVES, _ORACLE_PRICE, _fee_model()
    )
    assert decision.best is None
    assert len(decision.excluded) == 3


def test_evaluation_error_excludes_candidate() -> None:
    decision = _selector().select_best(_candidates(1), _RESERVES, 0, _fee_model())
    assert decision.best is None
    reason = decision.outcomes[0].excluded_reason
    assert reason is not None and reason.startswith("evaluation_failed")


def test_empty_candidate_list() -> None:
    decision = _selector().select_best([], _RESERVES, _ORACLE_PRICE, _fee_model())
    assert decision.best is None
    assert decision.outcomes == ()
