"""AMM reserve client."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from oracle_arb.data.schemas import RawReserves
from oracle_arb.errors import PoolDataInvalid
from oracle_arb.types import PoolReserves, TxData
from oracle_arb.utils.fixed import WORKING_DECIMALS, rescale
from oracle_arb.utils.logging import get_logger, log_fetch_failure


class AmmPool(Protocol):
    """Constant-product pair."""

    def reserves(self) -> Sequence[Any]:
        """Return ``(reserve0, reserve1, block_timestamp_last)`` from one call."""

    def build_swap_tx(self, amount_in: int, amount_out_min: int, recipient: str) -> TxData:
        """Build the base-to-quote swap leg paying ``recipient``."""


class PoolStateClient:
    """Read one consistent reserve snapshot and orient it as base/quote."""

    def __init__(
        self,
        pool: AmmPool,
        *,
        base_is_token0: bool = True,
        base_decimals: int = WORKING_DECIMALS,
        quote_decimals: int = WORKING_DECIMALS,
    ) -> None:
        self._pool = pool
        self._base_is_token0 = base_is_token0
        self._base_decimals = base_decimals
        self._quote_decimals = quote_decimals
        self._logger = get_logger("oracle_arb.data.pool")

    def fetch_reserves(self, block_number: int | None = None) -> PoolReserves:
        """Return normalized reserves.

        Raises:
            PoolDataInvalid: the read failed, or a reserve is missing, zero or non-numeric.
        """
        try:
            raw = self._pool.reserves()
        except Exception as exc:  # noqa: BLE001 - any pool read failure invalidates the cycle.
            log_fetch_failure(self._logger, source="pool", error=str(exc))
            raise PoolDataInvalid(f"reserves_call_failed: {exc}") from exc

        try:
            reserves = RawReserves.parse_strict(_as_payload(raw))
        except PoolDataInvalid as exc:
            log_fetch_failure(self._logger, source="pool", error=str(exc))
            raise

        if self._base_is_token0:
            base_raw, quote_raw = reserves.reserve0, reserves.reserve1
        else:
            base_raw, quote_raw = reserves.reserve1, reserves.reserve0
        return PoolReserves(
            reserve_base=rescale(base_raw, self._base_decimals),
            reserve_quote=rescale(quote_raw, self._quote_decimals),
            block_number=block_number,
        )


def _as_payload(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return {
            "reserve0": raw.get("reserve0", raw.get("_reserve0")),
            "reserve1": raw.get("reserve1", raw.get("_reserve1")),
            "block_timestamp_last": raw.get(
                "block_timestamp_last", raw.get("_blockTimestampLast", 0)
            ),
        }
    try:
        values = list(raw)
    except TypeError as exc:
        raise PoolDataInvalid(f"invalid_reserves: unexpected payload {raw!r}") from exc
    if len(values) < 2:
        raise PoolDataInvalid(f"invalid_reserves: expected 2 reserves, got {len(values)}")
    return {
        "reserve0": values[0],
        "reserve1": values[1],
        "block_timestamp_last": values[2] if len(values) > 2 else 0,
    }
