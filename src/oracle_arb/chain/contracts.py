"""web3 adapters for the oracle feed, AMM pair, redemption protocol and bundler.

Reads go through tenacity with bounded exponential backoff. Transaction
legs are ABI-encoded locally, without an RPC round trip.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence, TypeVar

from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from oracle_arb.chain.abi import (
    AGGREGATOR_V3_ABI,
    ARBITRAGE_BUNDLER_ABI,
    HINT_HELPERS_ABI,
    PRICE_FEED_ABI,
    SORTED_TROVES_ABI,
    TROVE_MANAGER_ABI,
    UNISWAP_V2_PAIR_ABI,
)
from oracle_arb.config import Settings
from oracle_arb.engine.fees import RedemptionFeeSchedule
from oracle_arb.errors import CandidateBuildError, SettlementStateUnavailable
from oracle_arb.types import OracleRound, TxData
from oracle_arb.utils.fixed import WAD, WORKING_DECIMALS, rescale
from oracle_arb.utils.logging import get_logger

T = TypeVar("T")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
REDEMPTION_MAX_ITERATIONS = 70


def connect(settings: Settings) -> Web3:
    """Open an HTTP connection to the configured node."""
    return Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": 10}))


class _RpcReader:
    def __init__(self, attempts: int) -> None:
        self._attempts = attempts

    def _read(self, call: Callable[[], T]) -> T:
        retrying = Retrying(
            retry=(
                retry_if_exception_type((Web3Exception, OSError))
                & retry_if_not_exception_type(ContractLogicError)
            ),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            stop=stop_after_attempt(self._attempts),
            reraise=True,
        )
        return retrying(call)


class ChainlinkFeed(_RpcReader):
    """Aggregator proxy exposing ``latestRoundData`` and ``decimals``."""

    def __init__(self, web3: Web3, address: str, *, attempts: int = 3) -> None:
        super().__init__(attempts)
        self._contract = web3.eth.contract(
            address=Web3.to_checksum_address(address), abi=AGGREGATOR_V3_ABI
        )
        self._decimals: int | None = None

    def latest_round(self) -> OracleRound:
        if self._decimals is None:
            self._decimals = int(self._read(self._contract.functions.decimals().call))
        round_id, answer, _started_at, updated_at, _answered_in = self._read(
            self._contract.functions.latestRoundData().call
        )
        return OracleRound(
            answer=int(answer),
            decimals=self._decimals,
            updated_at=int(updated_at),
            round_id=int(round_id),
        )


class UniswapV2Pair(_RpcReader):
    """Constant-product pair. ``getReserves`` returns both reserves in one call."""

    def __init__(
        self,
        web3: Web3,
        address: str,
        *,
        base_is_token0: bool = True,
        quote_decimals: int = WORKING_DECIMALS,
        attempts: int = 3,
    ) -> None:
        super().__init__(attempts)
        self._contract = web3.eth.contract(
            address=Web3.to_checksum_address(address), abi=UNISWAP_V2_PAIR_ABI
        )
        self._base_is_token0 = base_is_token0
        self._quote_decimals = quote_decimals

    @property
    def address(self) -> str:
        return str(self._contract.address)

    def reserves(self) -> Sequence[Any]:
        return self._read(self._contract.functions.getReserves().call)

    def build_swap_tx(self, amount_in: int, amount_out_min: int, recipient: str) -> TxData:
        """Encode ``swap`` requesting exactly ``amount_out_min`` quote.

        The pair is prefunded with ``amount_in`` base by the bundler contract,
        so only the output side appears in the call.
        """
        amount_out = rescale(amount_out_min, WORKING_DECIMALS, self._quote_decimals)
        if amount_out <= 0:
            raise CandidateBuildError(f"swap_output_too_small: {amount_out_min}")
        amounts = (0, amount_out) if self._base_is_token0 else (amount_out, 0)
        data = self._contract.encode_abi(
            "swap",
            args=[amounts[0], amounts[1], Web3.to_checksum_address(recipient), b""],
        )
        return TxData(to=self.address, data=data)


class LiquitySettlement(_RpcReader):
    """Redemption of LUSD for ETH through the Liquity TroveManager."""

    def __init__(
        self,
        web3: Web3,
        *,
        trove_manager: str,
        hint_helpers: str,
        sorted_troves: str,
        price_feed: str,
        sender: str,
        attempts: int = 3,
    ) -> None:
        super().__init__(attempts)
        self._trove_manager = web3.eth.contract(
            address=Web3.to_checksum_address(trove_manager), abi=TROVE_MANAGER_ABI
        )
        self._hint_helpers = web3.eth.contract(
            address=Web3.to_checksum_address(hint_helpers), abi=HINT_HELPERS_ABI
        )
        self._sorted_troves = web3.eth.contract(
            address=Web3.to_checksum_address(sorted_troves), abi=SORTED_TROVES_ABI
        )
        self._price_feed = web3.eth.contract(
            address=Web3.to_checksum_address(price_feed), abi=PRICE_FEED_ABI
        )
        self._sender = Web3.to_checksum_address(sender)
        self._logger = get_logger("oracle_arb.chain.contracts")

    def fee_schedule(self) -> RedemptionFeeSchedule:
        try:
            current_rate = self._read(
                self._trove_manager.functions.getRedemptionRateWithDecay().call
            )
            total_debt = self._read(self._trove_manager.functions.getEntireSystemDebt().call)
        except (Web3Exception, OSError) as exc:
            raise SettlementStateUnavailable(f"redemption_state_unavailable: {exc}") from exc
        return RedemptionFeeSchedule(current_rate=int(current_rate), total_debt=int(total_debt))

    def build_settlement_tx(self, amount: int, max_fee_rate: int = WAD) -> TxData:
        """Encode ``redeemCollateral`` with fresh hints.

        Raises:
            CandidateBuildError: hints could not be computed, or nothing is redeemable.
        """
        try:
            price = self._read(self._price_feed.functions.lastGoodPrice().call)
            first_hint, partial_nicr, truncated = self._read(
                self._hint_helpers.functions.getRedemptionHints(
                    amount, price, REDEMPTION_MAX_ITERATIONS
                ).call
            )
            if int(truncated) == 0:
                raise CandidateBuildError(f"amount_below_redemption_minimum: {amount}")
            upper_hint, lower_hint = self._read(
                self._sorted_troves.functions.findInsertPosition(
                    partial_nicr, self._sender, self._sender
                ).call
            )
        except (Web3Exception, OSError) as exc:
            raise CandidateBuildError(f"redemption_hints_failed: {exc}") from exc

        if int(truncated) != amount:
            self._logger.warning(
                "redemption_truncated",
                requested=amount,
                truncated=int(truncated),
                unredeemed=amount - int(truncated),
            )
        data = self._trove_manager.encode_abi(
            "redeemCollateral",
            args=[
                int(truncated),
                first_hint,
                upper_hint,
                lower_hint,
                int(partial_nicr),
                REDEMPTION_MAX_ITERATIONS,
                max_fee_rate,
            ],
        )
        return TxData(to=str(self._trove_manager.address), data=data)


class ArbitrageBundler:
    """Contract executing the swap and redemption calls atomically via ``MakeCalls``."""

    def __init__(self, web3: Web3, address: str, *, gas_limit: int) -> None:
        self._contract = web3.eth.contract(
            address=Web3.to_checksum_address(address or ZERO_ADDRESS),
            abi=ARBITRAGE_BUNDLER_ABI,
        )
        self._gas_limit = gas_limit

    @property
    def address(self) -> str:
        return str(self._contract.address)

    def build_bundle(self, initial_amount: int, legs: Sequence[TxData]) -> TxData:
        calls = [Web3.to_bytes(hexstr=leg.data) for leg in legs]
        data = self._contract.encode_abi("MakeCalls", args=[initial_amount, calls])
        return TxData(to=self.address, data=data, gas_limit=self._gas_limit)
