"""Shared domain types for the per-block arbitrage pipeline.

Amounts, prices and rates are 18-decimal fixed-point integers.
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum

from oracle_arb.utils.fixed import wdiv

TxHash = str


class CycleState(str, Enum):
    """Controller states of one block cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    COMPARING = "comparing"
    EVALUATING = "evaluating"
    DECIDING = "deciding"
    SUBMITTING = "submitting"


@dataclass(frozen=True, slots=True)
class TxData:
    """Unsigned transaction payload."""

    to: str
    data: str
    value: int = 0
    gas_limit: int | None = None


@dataclass(frozen=True, slots=True)
class OracleRound:
    """Raw round as reported by the oracle feed, native precision."""

    answer: int
    decimals: int
    updated_at: int
    round_id: int = 0


@dataclass(frozen=True, slots=True)
class PoolReserves:
    """One consistent reserve snapshot, normalized to 18 decimals."""

    reserve_base: int
    reserve_quote: int
    block_number: int | None = None

    @property
    def price(self) -> int:
        """Spot quote-per-base price."""
        return wdiv(self.reserve_quote, self.reserve_base)


@dataclass(frozen=True, slots=True)
class TradeCandidate:
    """Base-asset input size evaluated in one cycle."""

    amount_in: int


@dataclass(frozen=True, slots=True)
class ProfitResult:
    """Fee-adjusted economics of one candidate."""

    candidate: TradeCandidate
    amm_output: int
    marginal_fee: int
    fee_amount: int
    net_settlement: int
    redeemed_base: int
    profit: int
    swap_tx: TxData | None = None
    settlement_tx: TxData | None = None


@dataclass(frozen=True, slots=True)
class CandidateOutcome:
    """Per-candidate result: built with a bundle, or excluded with a reason."""

    candidate: TradeCandidate
    result: ProfitResult | None = None
    bundle: TxData | None = None
    excluded_reason: str | None = None

    @property
    def eligible(self) -> bool:
        return self.excluded_reason is None and self.result is not None and self.bundle is not None


@dataclass(frozen=True, slots=True)
class CycleDecision:
    """Best buildable candidate of a cycle and whether to submit it."""

    best: ProfitResult | None
    bundle: TxData | None
    submit: bool
    outcomes: tuple[CandidateOutcome, ...] = ()

    @property
    def excluded(self) -> tuple[CandidateOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.eligible)


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    """Result of dispatching a bundle."""

    tx_hash: TxHash | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class CycleResult:
    """Outcome of one block cycle."""

    status: str
    block_number: int | None = None
    states: list[CycleState] = field(default_factory=list)
    oracle_price: int | None = None
    amm_price: int | None = None
    decision: CycleDecision | None = None
    submission: Future[SubmissionOutcome] | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0
