"""Per-block arbitrage cycle: fetch, compare, evaluate, decide, submit."""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import replace
from time import perf_counter
from typing import Any, Sequence

from eth_account import Account
from web3 import Web3

from oracle_arb.chain.contracts import (
    ZERO_ADDRESS,
    ArbitrageBundler,
    ChainlinkFeed,
    LiquitySettlement,
    UniswapV2Pair,
)
from oracle_arb.config import Settings
from oracle_arb.data.oracle import PriceOracleClient
from oracle_arb.data.pool import PoolStateClient
from oracle_arb.engine.evaluator import ProfitEvaluator
from oracle_arb.engine.fees import FeeModel
from oracle_arb.engine.selector import CandidateSelector, SettlementProtocol
from oracle_arb.errors import FetchError, SubmissionError
from oracle_arb.exec.wallet import DryRunWallet, LocalAccountWallet, Wallet
from oracle_arb.journal.store import JournalStore
from oracle_arb.types import (
    CandidateOutcome,
    CycleDecision,
    CycleResult,
    CycleState,
    SubmissionOutcome,
    TradeCandidate,
    TxData,
)
from oracle_arb.utils.fixed import format_wad
from oracle_arb.utils.logging import get_logger, log_cycle_outcome, log_submission


class ArbitrageController:
    """Run one decision cycle per block tick.

    Every failure is cycle-scoped: a fetch error ends the cycle, a candidate
    build error excludes one candidate, a submission error is reported on
    the submission future. Submissions run on a dedicated executor and are
    never awaited by later cycles.
    """

    def __init__(
        self,
        *,
        oracle: PriceOracleClient,
        pool_client: PoolStateClient,
        settlement: SettlementProtocol,
        selector: CandidateSelector,
        wallet: Wallet,
        journal: JournalStore,
        candidate_sizes: Sequence[int],
        min_profit: int,
        slippage_tolerance: int,
        submit_executor: Executor | None = None,
    ) -> None:
        if not candidate_sizes:
            raise ValueError("candidate_sizes_empty")
        self._oracle = oracle
        self._pool_client = pool_client
        self._settlement = settlement
        self._selector = selector
        self._wallet = wallet
        self._journal = journal
        self._candidate_sizes = tuple(candidate_sizes)
        self._min_profit = min_profit
        self._slippage_tolerance = slippage_tolerance
        self._owns_executor = submit_executor is None
        self._submitter = submit_executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="submit"
        )
        self._logger = get_logger("oracle_arb.pipeline")
        self.state = CycleState.IDLE

    def __enter__(self) -> "ArbitrageController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Wait for in-flight submissions and release the submit worker."""
        if self._owns_executor:
            self._submitter.shutdown(wait=True)

    def run_cycle(self, block_number: int | None = None) -> CycleResult:
        """Run one full cycle for ``block_number``."""
        started = perf_counter()
        result = CycleResult(status="unknown", block_number=block_number)
        self._journal.append("cycle_start", {"block_number": block_number})

        try:
            self._enter(result, CycleState.FETCHING)
            try:
                oracle_price = self._oracle.fetch_reference_price()
                reserves = self._pool_client.fetch_reserves(block_number)
            except FetchError as exc:
                return self._abort_fetch(result, started, exc)

            result.oracle_price = oracle_price
            result.amm_price = reserves.price
            self._journal.append(
                "market_data",
                {
                    "block_number": block_number,
                    "oracle_price": oracle_price,
                    "reserve_base": reserves.reserve_base,
                    "reserve_quote": reserves.reserve_quote,
                },
            )

            self._enter(result, CycleState.COMPARING)
            has_direction = reserves.price > oracle_price
            self._journal.append(
                "comparison",
                {
                    "oracle_price": format_wad(oracle_price, 2),
                    "amm_price": format_wad(reserves.price, 2),
                    "has_direction": has_direction,
                },
            )
            if not has_direction:
                return self._finish(result, started, status="no_opportunity")

            self._enter(result, CycleState.EVALUATING)
            try:
                fee_model = FeeModel(self._settlement.fee_schedule(), self._slippage_tolerance)
            except FetchError as exc:
                return self._abort_fetch(result, started, exc)

            candidates = [TradeCandidate(amount_in=size) for size in self._candidate_sizes]
            decision = self._selector.select_best(candidates, reserves, oracle_price, fee_model)
            for outcome in decision.outcomes:
                self._journal.append("candidate", _outcome_payload(outcome))

            self._enter(result, CycleState.DECIDING)
            decision = self._decide(decision)
            result.decision = decision
            self._journal.append("decision", _decision_payload(decision, self._min_profit))
            if decision.best is None:
                return self._finish(result, started, status="no_candidate")
            if not decision.submit or decision.bundle is None:
                return self._finish(result, started, status="below_threshold")

            self._enter(result, CycleState.SUBMITTING)
            result.submission = self._submitter.submit(
                self._dispatch, decision.bundle, block_number
            )
            return self._finish(result, started, status="submitted")

        except Exception as exc:  # noqa: BLE001 - top-level guard for loop resilience.
            self._logger.exception("cycle_failed", block_number=block_number, error=str(exc))
            self._journal.append("error", {"block_number": block_number, "error": str(exc)})
            return self._finish(result, started, status="failed")

    def _decide(self, decision: CycleDecision) -> CycleDecision:
        submit = (
            decision.best is not None
            and decision.bundle is not None
            and decision.best.profit > self._min_profit
        )
        return replace(decision, submit=submit)

    def _dispatch(self, bundle: TxData, block_number: int | None) -> SubmissionOutcome:
        try:
            tx_hash = self._wallet.send(bundle)
        except SubmissionError as exc:
            outcome = SubmissionOutcome(tx_hash=None, error=str(exc))
        except Exception as exc:  # noqa: BLE001 - reported on the future, never retried.
            outcome = SubmissionOutcome(tx_hash=None, error=f"unexpected_submission_error: {exc}")
        else:
            outcome = SubmissionOutcome(tx_hash=tx_hash)

        log_submission(
            self._logger,
            block_number=block_number,
            tx_hash=outcome.tx_hash,
            error=outcome.error,
        )
        self._journal.append(
            "submission",
            {"block_number": block_number, "tx_hash": outcome.tx_hash, "error": outcome.error},
        )
        return outcome

    def _enter(self, result: CycleResult, state: CycleState) -> None:
        self.state = state
        result.states.append(state)

    def _abort_fetch(self, result: CycleResult, started: float, exc: FetchError) -> CycleResult:
        result.warnings.append(f"{type(exc).__name__}: {exc}")
        self._journal.append(
            "error",
            {"block_number": result.block_number, "error": str(exc), "kind": type(exc).__name__},
        )
        return self._finish(result, started, status="fetch_failed")

    def _finish(self, result: CycleResult, started: float, *, status: str) -> CycleResult:
        elapsed_ms = (perf_counter() - started) * 1000
        result.status = status
        result.elapsed_ms = elapsed_ms
        self._enter(result, CycleState.IDLE)
        self._journal.append(
            "cycle_end",
            {"block_number": result.block_number, "status": status, "elapsed_ms": elapsed_ms},
        )

        extra: dict[str, Any] = {}
        if result.oracle_price is not None and result.amm_price is not None:
            extra["oracle_price"] = format_wad(result.oracle_price, 2)
            extra["amm_price"] = format_wad(result.amm_price, 2)
        if result.decision is not None and result.decision.best is not None:
            extra["best_profit_eth"] = format_wad(result.decision.best.profit)
        if result.warnings:
            extra["warnings"] = result.warnings
        log_cycle_outcome(
            self._logger,
            block_number=result.block_number,
            status=status,
            elapsed_ms=elapsed_ms,
            **extra,
        )
        return result


def build_controller(
    settings: Settings,
    web3: Web3,
    *,
    journal: JournalStore | None = None,
) -> ArbitrageController:
    """Wire the controller against live contracts."""
    wallet: Wallet
    if settings.is_live_mode:
        wallet = LocalAccountWallet(web3, settings.ethereum_private_key)
    elif settings.ethereum_private_key:
        wallet = DryRunWallet(Account.from_key(settings.ethereum_private_key).address)
    else:
        wallet = DryRunWallet(ZERO_ADDRESS)

    attempts = settings.rpc_retry_attempts
    pair = UniswapV2Pair(
        web3,
        settings.pair_address,
        base_is_token0=settings.base_is_token0,
        quote_decimals=settings.quote_decimals,
        attempts=attempts,
    )
    settlement = LiquitySettlement(
        web3,
        trove_manager=settings.trove_manager_address,
        hint_helpers=settings.hint_helpers_address,
        sorted_troves=settings.sorted_troves_address,
        price_feed=settings.price_feed_address,
        sender=wallet.address,
        attempts=attempts,
    )
    bundler = ArbitrageBundler(web3, settings.bundler_address, gas_limit=settings.gas_limit)
    selector = CandidateSelector(
        ProfitEvaluator(settings.pool_fee_wad),
        pair,
        settlement,
        bundler,
        recipient=bundler.address,
    )
    return ArbitrageController(
        oracle=PriceOracleClient(
            ChainlinkFeed(web3, settings.oracle_feed_address, attempts=attempts),
            max_age_sec=settings.oracle_max_age_sec,
        ),
        pool_client=PoolStateClient(
            pair,
            base_is_token0=settings.base_is_token0,
            base_decimals=settings.base_decimals,
            quote_decimals=settings.quote_decimals,
        ),
        settlement=settlement,
        selector=selector,
        wallet=wallet,
        journal=journal or JournalStore(settings.journal_dir),
        candidate_sizes=settings.candidate_sizes_wad,
        min_profit=settings.min_profit_wad,
        slippage_tolerance=settings.slippage_tolerance_wad,
    )


def _outcome_payload(outcome: CandidateOutcome) -> dict[str, object]:
    payload: dict[str, object] = {
        "amount_in": outcome.candidate.amount_in,
        "eligible": outcome.eligible,
        "excluded_reason": outcome.excluded_reason,
    }
    if outcome.result is not None:
        payload.update(
            {
                "amm_output": outcome.result.amm_output,
                "marginal_fee": outcome.result.marginal_fee,
                "net_settlement": outcome.result.net_settlement,
                "redeemed_base": outcome.result.redeemed_base,
                "profit": outcome.result.profit,
                "profit_eth": format_wad(outcome.result.profit),
            }
        )
    return payload


def _decision_payload(decision: CycleDecision, min_profit: int) -> dict[str, object]:
    best = decision.best
    return {
        "submit": decision.submit,
        "min_profit": min_profit,
        "best_amount_in": best.candidate.amount_in if best is not None else None,
        "best_profit": best.profit if best is not None else None,
        "excluded": len(decision.excluded),
    }
