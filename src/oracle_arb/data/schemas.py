"""Strict validation of raw oracle rounds and pool reserve payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from oracle_arb.errors import OracleUnavailable, PoolDataInvalid


class RawOracleRound(BaseModel):
    """Round data as returned by ``latestRoundData`` plus feed decimals."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    answer: int = Field(gt=0)
    decimals: int = Field(ge=0, le=36)
    updated_at: int = Field(gt=0)
    round_id: int = Field(default=0, ge=0)

    @classmethod
    def parse_strict(cls, payload: dict[str, Any]) -> "RawOracleRound":
        """Validate a raw round. Any violation is an unavailable oracle."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise OracleUnavailable(f"malformed_oracle_round: {_first_error(exc)}") from exc


class RawReserves(BaseModel):
    """Reserves as returned by ``getReserves`` (token0, token1, timestamp)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    reserve0: int = Field(gt=0)
    reserve1: int = Field(gt=0)
    block_timestamp_last: int = Field(default=0, ge=0)

    @classmethod
    def parse_strict(cls, payload: dict[str, Any]) -> "RawReserves":
        """Validate a raw reserve payload. Any violation is invalid pool data."""
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise PoolDataInvalid(f"invalid_reserves: {_first_error(exc)}") from exc


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else str(error["msg"])
