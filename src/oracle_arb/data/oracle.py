"""Reference price client backed by an oracle feed."""

from __future__ import annotations

import time
from dataclasses import asdict
from typing import Callable, Protocol

from oracle_arb.data.schemas import RawOracleRound
from oracle_arb.errors import OracleUnavailable
from oracle_arb.types import OracleRound
from oracle_arb.utils.fixed import WORKING_DECIMALS, rescale
from oracle_arb.utils.logging import get_logger, log_fetch_failure


class OracleFeed(Protocol):
    """Aggregator-style price feed."""

    def latest_round(self) -> OracleRound:
        """Return the latest round in the feed's native precision."""


class PriceOracleClient:
    """Fetch the oracle price normalized to 18 decimals."""

    def __init__(
        self,
        feed: OracleFeed,
        *,
        max_age_sec: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._feed = feed
        self._max_age_sec = max_age_sec
        self._clock = clock
        self._logger = get_logger("oracle_arb.data.oracle")

    def fetch_reference_price(self) -> int:
        """Return quote-per-base price as a wad.

        Raises:
            OracleUnavailable: feed call failed, or the round is malformed or stale.
        """
        try:
            latest = self._feed.latest_round()
        except Exception as exc:  # noqa: BLE001 - any feed failure is an unavailable oracle.
            log_fetch_failure(self._logger, source="oracle", error=str(exc))
            raise OracleUnavailable(f"oracle_call_failed: {exc}") from exc

        try:
            raw = RawOracleRound.parse_strict(asdict(latest))
        except OracleUnavailable as exc:
            log_fetch_failure(self._logger, source="oracle", error=str(exc))
            raise

        if self._max_age_sec > 0:
            age = self._clock() - raw.updated_at
            if age > self._max_age_sec:
                log_fetch_failure(
                    self._logger,
                    source="oracle",
                    error="stale_oracle_round",
                    age_sec=round(age, 1),
                )
                raise OracleUnavailable(f"stale_oracle_round: age={age:.0f}s")

        return rescale(raw.answer, raw.decimals, WORKING_DECIMALS)
