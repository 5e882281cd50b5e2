from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from oracle_arb.chain.contracts import (
    REDEMPTION_MAX_ITERATIONS,
    ZERO_ADDRESS,
    ArbitrageBundler,
    LiquitySettlement,
    UniswapV2Pair,
    _RpcReader,
)
from oracle_arb.errors import CandidateBuildError, SettlementStateUnavailable
from oracle_arb.exec.wallet import DryRunWallet
from oracle_arb.types import TxData
from oracle_arb.utils.fixed import WAD, to_wad

_PAIR = "0xF20EF17b889b437C151eB5bA15A47bFc62bfF469"
_BUNDLER = "0x" + "22" * 20
_SENDER = "0x" + "33" * 20
_HINT = "0x" + "44" * 20
_UPPER = "0x" + "55" * 20
_LOWER = "0x" + "66" * 20


def _web3() -> Web3:
    # encoding only, never connects
    return Web3()


def _settlement(web3: Web3) -> LiquitySettlement:
    return LiquitySettlement(
        web3,
        trove_manager="0xA39739EF8b0231DbFA0DcdA07d7e29faAbCf4bb2",
        hint_helpers="0xE84251b93D9524E0d2e621Ba7dc7cb3579F997C0",
        sorted_troves="0x8FdD3fbFEb32b28fb73555518f8b361bCeA741A6",
        price_feed="0x4c517D4e2C851CA76d7eC94B805269Df0f2201De",
        sender=_SENDER,
        attempts=1,
    )


def _sequential_reads(values: list[Any]) -> Callable[[Callable[[], Any]], Any]:
    pending: Iterator[Any] = iter(values)

    def _read(call: Callable[[], Any]) -> Any:
        value = next(pending)
        if isinstance(value, Exception):
            raise value
        return value

    return _read


def test_swap_leg_requests_quote_output_to_recipient() -> None:
    web3 = _web3()
    pair = UniswapV2Pair(web3, _PAIR, base_is_token0=True)
    tx = pair.build_swap_tx(WAD, 1_992 * WAD, _BUNDLER)

    func, params = pair._contract.decode_function_input(tx.data)
    assert func.fn_name == "swap"
    assert params["amount0Out"] == 0
    assert params["amount1Out"] == 1_992 * WAD
    assert params["to"] == Web3.to_checksum_address(_BUNDLER)
    assert tx.to == Web3.to_checksum_address(_PAIR)


def test_swap_leg_rescales_output_and_flips_side() -> None:
    web3 = _web3()
    pair = UniswapV2Pair(web3, _PAIR, base_is_token0=False, quote_decimals=6)
    tx = pair.build_swap_tx(WAD, 2_000 * WAD, _BUNDLER)

    _, params = pair._contract.decode_function_input(tx.data)
    assert params["amount0Out"] == 2_000 * 10**6
    assert params["amount1Out"] == 0

    with pytest.raises(CandidateBuildError):
        pair.build_swap_tx(WAD, 10**11, _BUNDLER)


def test_bundle_wraps_legs_in_make_calls() -> None:
    web3 = _web3()
    bundler = ArbitrageBundler(web3, _BUNDLER, gas_limit=700_000)
    legs = [TxData(to="0xpool", data="0xdeadbeef"), TxData(to="0xtrove", data="0x01")]
    tx = bundler.build_bundle(20 * WAD, legs)

    func, params = bundler._contract.decode_function_input(tx.data)
    assert func.fn_name == "MakeCalls"
    assert params["amount"] == 20 * WAD
    assert list(params["calls"]) == [bytes.fromhex("deadbeef"), b"\x01"]
    assert tx.gas_limit == 700_000
    assert tx.value == 0
    assert tx.to == Web3.to_checksum_address(_BUNDLER)


def test_bundler_without_address_uses_zero_address() -> None:
    assert ArbitrageBundler(_web3(), "", gas_limit=700_000).address == ZERO_ADDRESS


def test_settlement_fee_schedule_snapshot(monkeypatch: pytest.MonkeyPatch) -> None:
    settlement = _settlement(_web3())
    monkeypatch.setattr(settlement, "_read", _sequential_reads([to_wad("0.005"), 500_000_000 * WAD]))

    schedule = settlement.fee_schedule()
    assert schedule.current_rate == to_wad("0.005")
    assert schedule.total_debt == 500_000_000 * WAD


def test_settlement_fee_schedule_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    settlement = _settlement(_web3())
    monkeypatch.setattr(settlement, "_read", _sequential_reads([Web3Exception("node down")]))

    with pytest.raises(SettlementStateUnavailable):
        settlement.fee_schedule()


def test_settlement_leg_uses_truncated_amount_and_fee_cap(monkeypatch: pytest.MonkeyPatch) -> None:
    settlement = _settlement(_web3())
    reads = [
        1_900 * WAD,
        (_HINT, 123_456, 39_000 * WAD),
        (_UPPER, _LOWER),
    ]
    monkeypatch.setattr(settlement, "_read", _sequential_reads(reads))

    tx = settlement.build_settlement_tx(39_100 * WAD, max_fee_rate=to_wad("0.0061"))
    func, params = settlement._trove_manager.decode_function_input(tx.data)
    assert func.fn_name == "redeemCollateral"
    assert params["_LUSDamount"] == 39_000 * WAD
    assert params["_firstRedemptionHint"] == Web3.to_checksum_address(_HINT)
    assert params["_upperPartialRedemptionHint"] == Web3.to_checksum_address(_UPPER)
    assert params["_lowerPartialRedemptionHint"] == Web3.to_checksum_address(_LOWER)
    assert params["_partialRedemptionHintNICR"] == 123_456
    assert params["_maxIterations"] == REDEMPTION_MAX_ITERATIONS
    assert params["_maxFeePercentage"] == to_wad("0.0061")


def test_settlement_leg_build_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    settlement = _settlement(_web3())
    monkeypatch.setattr(settlement, "_read", _sequential_reads([1_900 * WAD, (_HINT, 0, 0)]))
    with pytest.raises(CandidateBuildError, match="amount_below_redemption_minimum"):
        settlement.build_settlement_tx(WAD)

    monkeypatch.setattr(settlement, "_read", _sequential_reads([OSError("connection reset")]))
    with pytest.raises(CandidateBuildError, match="redemption_hints_failed"):
        settlement.build_settlement_tx(WAD)


def test_reader_does_not_retry_reverts() -> None:
    calls = {"n": 0}

    def reverting() -> int:
        calls["n"] += 1
        raise ContractLogicError("execution reverted")

    with pytest.raises(ContractLogicError):
        _RpcReader(attempts=3)._read(reverting)
    assert calls["n"] == 1


def test_reader_retries_transient_errors() -> None:
    calls = {"n": 0}

    def flaky() -> int:
        calls["n"] += 1
        if calls["n"] == 1:
            raise OSError("connection reset")
        return 7

    assert _RpcReader(attempts=2)._read(flaky) == 7
    assert calls["n"] == 2


def test_dry_run_wallet_records_without_signing() -> None:
    wallet = DryRunWallet()
    tx = TxData(to=_BUNDLER, data="0xabcd", gas_limit=700_000)

    first = wallet.send(tx)
    second = wallet.send(tx)
    assert first == second
    assert first.startswith("0x") and len(first) == 66
    assert wallet.sent == [tx, tx]
    assert wallet.address == ZERO_ADDRESS


class _RecordingLogger:
    def __init__(self) -> None:
        self.warnings: list[tuple[str, dict[str, Any]]] = []

    def warning(self, event: str, **fields: Any) -> None:
        self.warnings.append((event, fields))

    def debug(self, event: str, **fields: Any) -> None:
        return None


def test_truncated_redemption_is_reported_as_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    settlement = _settlement(_web3())
    logger = _RecordingLogger()
    monkeypatch.setattr(settlement, "_logger", logger)
    reads = [1_900 * WAD, (_HINT, 123_456, 39_000 * WAD), (_UPPER, _LOWER)]
    monkeypatch.setattr(settlement, "_read", _sequential_reads(reads))

    settlement.build_settlement_tx(39_100 * WAD)

    assert logger.warnings == [
        (
            "redemption_truncated",
            {"requested": 39_100 * WAD, "truncated": 39_000 * WAD, "unredeemed": 100 * WAD},
        )
    ]
