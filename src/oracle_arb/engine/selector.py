"""Concurrent candidate evaluation and best-candidate reduction."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Protocol, Sequence

from oracle_arb.data.pool import AmmPool
from oracle_arb.engine.evaluator import ProfitEvaluator
from oracle_arb.engine.fees import FeeModel, FeeSchedule
from oracle_arb.errors import CandidateBuildError
from oracle_arb.types import (
    CandidateOutcome,
    CycleDecision,
    PoolReserves,
    ProfitResult,
    TradeCandidate,
    TxData,
)
from oracle_arb.utils.fixed import WAD
from oracle_arb.utils.logging import get_logger, log_candidate


class SettlementProtocol(Protocol):
    """Protocol that redeems the quote asset for base at the oracle price."""

    def fee_schedule(self) -> FeeSchedule:
        """Snapshot the fee state used to quote redemptions this cycle."""

    def build_settlement_tx(self, amount: int, max_fee_rate: int = WAD) -> TxData:
        """Build the redemption leg. Raises CandidateBuildError below the protocol minimum."""


class TransactionBundler(Protocol):
    """Contract that executes several calls atomically."""

    def build_bundle(self, initial_amount: int, legs: Sequence[TxData]) -> TxData:
        """Combine legs into one transaction funded with ``initial_amount``."""


class CandidateSelector:
    """Evaluate every candidate concurrently and keep the best buildable one.

    Only candidates whose swap leg, settlement leg and bundle all build are
    eligible. Ties keep the first candidate in the given order. The returned
    decision has ``submit=False``; the controller applies the threshold.
    """

    def __init__(
        self,
        evaluator: ProfitEvaluator,
        pool: AmmPool,
        settlement: SettlementProtocol,
        bundler: TransactionBundler,
        *,
        recipient: str,
        max_workers: int | None = None,
    ) -> None:
        self._evaluator = evaluator
        self._pool = pool
        self._settlement = settlement
        self._bundler = bundler
        self._recipient = recipient
        self._max_workers = max_workers
        self._logger = get_logger("oracle_arb.engine.selector")

    def select_best(
        self,
        candidates: Sequence[TradeCandidate],
        reserves: PoolReserves,
        oracle_price: int,
        fee_model: FeeModel,
    ) -> CycleDecision:
        if not candidates:
            return CycleDecision(best=None, bundle=None, submit=False)

        workers = self._max_workers or len(candidates)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="candidate") as executor:
            outcomes = tuple(
                executor.map(
                    lambda candidate: self._evaluate_one(
                        candidate, reserves, oracle_price, fee_model
                    ),
                    candidates,
                )
            )

        best: ProfitResult | None = None
        bundle: TxData | None = None
        for outcome in outcomes:
            if not outcome.eligible or outcome.result is None:
                continue
            if best is None or outcome.result.profit > best.profit:
                best, bundle = outcome.result, outcome.bundle

        return CycleDecision(best=best, bundle=bundle, submit=False, outcomes=outcomes)

    def _evaluate_one(
        self,
        candidate: TradeCandidate,
        reserves: PoolReserves,
        oracle_price: int,
        fee_model: FeeModel,
    ) -> CandidateOutcome:
        try:
            result = self._evaluator.evaluate(candidate, reserves, oracle_price, fee_model)
        except (ValueError, ZeroDivisionError) as exc:
            return self._excluded(candidate, f"evaluation_failed: {exc}")

        if result.profit <= 0:
            return self._excluded(candidate, "non_positive_profit", result=result)

        try:
            swap_tx = self._pool.build_swap_tx(
                candidate.amount_in, result.amm_output, self._recipient
            )
            settlement_tx = self._settlement.build_settlement_tx(
                result.amm_output, max_fee_rate=result.marginal_fee
            )
            bundle = self._bundler.build_bundle(candidate.amount_in, [swap_tx, settlement_tx])
        except CandidateBuildError as exc:
            return self._excluded(candidate, f"build_failed: {exc}", result=result)
        except Exception as exc:  # noqa: BLE001 - a broken leg excludes its candidate only.
            return self._excluded(
                candidate, f"build_failed: {type(exc).__name__}: {exc}", result=result
            )

        log_candidate(
            self._logger,
            amount_in=candidate.amount_in,
            amm_output=result.amm_output,
            profit=result.profit,
            status="built",
        )
        return CandidateOutcome(
            candidate=candidate,
            result=replace(result, swap_tx=swap_tx, settlement_tx=settlement_tx),
            bundle=bundle,
        )

    def _excluded(
        self,
        candidate: TradeCandidate,
        reason: str,
        *,
        result: ProfitResult | None = None,
    ) -> CandidateOutcome:
        log_candidate(
            self._logger,
            amount_in=candidate.amount_in,
            amm_output=result.amm_output if result is not None else None,
            profit=result.profit if result is not None else None,
            status="excluded",
            reason=reason,
        )
        return CandidateOutcome(candidate=candidate, result=result, excluded_reason=reason)
