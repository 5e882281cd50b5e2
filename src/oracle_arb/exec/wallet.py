"""Bundle submission: signing wallet for live mode, dry-run wallet for paper mode."""

from __future__ import annotations

from typing import Protocol

from eth_account import Account
from web3 import Web3

from oracle_arb.chain.contracts import ZERO_ADDRESS
from oracle_arb.errors import SubmissionError
from oracle_arb.types import TxData, TxHash
from oracle_arb.utils.fixed import format_wad
from oracle_arb.utils.logging import get_logger


class Wallet(Protocol):
    """Signs and broadcasts transactions."""

    @property
    def address(self) -> str:
        """Sender address."""

    def send(self, tx: TxData) -> TxHash:
        """Broadcast ``tx``. Raises SubmissionError on rejection."""


class LocalAccountWallet:
    """Sign locally with a private key and push the raw transaction."""

    def __init__(self, web3: Web3, private_key: str) -> None:
        self._web3 = web3
        self._account = Account.from_key(private_key)
        self._logger = get_logger("oracle_arb.exec.wallet")

    @property
    def address(self) -> str:
        return str(self._account.address)

    def send(self, tx: TxData) -> TxHash:
        try:
            params = {
                "to": Web3.to_checksum_address(tx.to),
                "data": tx.data,
                "value": tx.value,
                "nonce": self._web3.eth.get_transaction_count(self.address, "pending"),
                "chainId": self._web3.eth.chain_id,
                "gasPrice": self._web3.eth.gas_price,
            }
            params["gas"] = tx.gas_limit or self._web3.eth.estimate_gas(
                {"from": self.address, "to": params["to"], "data": tx.data, "value": tx.value}
            )
            signed = self._account.sign_transaction(params)
            tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:  # noqa: BLE001 - every node/signing failure is a rejected submission.
            raise SubmissionError(f"send_failed: {exc}") from exc
        return Web3.to_hex(tx_hash)


class DryRunWallet:
    """Paper-mode wallet: records the would-be submission and returns a pseudo hash."""

    def __init__(self, address: str = ZERO_ADDRESS) -> None:
        self._address = address
        self._logger = get_logger("oracle_arb.exec.wallet")
        self.sent: list[TxData] = []

    @property
    def address(self) -> str:
        return self._address

    def send(self, tx: TxData) -> TxHash:
        tx_hash = Web3.to_hex(Web3.keccak(text=f"{tx.to}:{tx.data}:{tx.value}"))
        self.sent.append(tx)
        self._logger.info(
            "dry_run_submission",
            to=tx.to,
            value_eth=format_wad(tx.value),
            gas_limit=tx.gas_limit,
            calldata_bytes=(len(tx.data) - 2) // 2,
            tx_hash=tx_hash,
        )
        return tx_hash
