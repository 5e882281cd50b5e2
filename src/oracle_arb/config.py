"""Configuration loading from environment variables and the .env file."""

import json
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from oracle_arb.utils.fixed import WORKING_DECIMALS, to_wad


class RunMode(str, Enum):
    """Run mode."""

    PAPER = "paper"  # sign nothing, report would-be submissions
    LIVE = "live"  # sign and broadcast


class LogFormat(str, Enum):
    """Log output format."""

    JSON = "json"
    CONSOLE = "console"


_DEFAULT_CANDIDATE_SIZES = [
    Decimal("0.5"),
    Decimal("1"),
    Decimal("2"),
    Decimal("5"),
    Decimal("10"),
    Decimal("20"),
]


class Settings(BaseSettings):
    """System settings.

    Loaded from environment variables and the .env file. Amounts are in
    human units (ether), converted to 18-decimal integers by the ``*_wad``
    properties.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== Run mode ====================
    mode: RunMode = Field(default=RunMode.PAPER, description="paper or live")

    # ==================== Chain access ====================
    rpc_url: str = Field(default="", description="HTTP JSON-RPC endpoint")
    ethereum_private_key: str = Field(default="", description="Hex private key of the sender")
    network: str = Field(default="mainnet", description="Network label used in logs")
    rpc_retry_attempts: int = Field(default=3, ge=1, le=10, description="RPC read attempts")
    block_poll_interval_sec: float = Field(
        default=2.0,
        gt=0.0,
        le=60.0,
        description="Head polling interval for the watch loop",
    )
    gas_limit: int = Field(default=700_000, ge=21_000, description="Gas limit for the bundle")

    # ==================== Contracts ====================
    oracle_feed_address: str = Field(
        default="0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
        description="Chainlink ETH/USD aggregator proxy",
    )
    pair_address: str = Field(
        default="0xF20EF17b889b437C151eB5bA15A47bFc62bfF469",
        description="Uniswap V2 LUSD/WETH pair",
    )
    bundler_address: str = Field(default="", description="Arbitrage contract exposing MakeCalls")
    trove_manager_address: str = Field(
        default="0xA39739EF8b0231DbFA0DcdA07d7e29faAbCf4bb2",
        description="Liquity TroveManager",
    )
    hint_helpers_address: str = Field(
        default="0xE84251b93D9524E0d2e621Ba7dc7cb3579F997C0",
        description="Liquity HintHelpers",
    )
    sorted_troves_address: str = Field(
        default="0x8FdD3fbFEb32b28fb73555518f8b361bCeA741A6",
        description="Liquity SortedTroves",
    )
    price_feed_address: str = Field(
        default="0x4c517D4e2C851CA76d7eC94B805269Df0f2201De",
        description="Liquity PriceFeed",
    )

    # ==================== Market data ====================
    oracle_max_age_sec: int = Field(
        default=3_600,
        ge=0,
        description="Reject oracle rounds older than this; 0 disables the check",
    )
    base_is_token0: bool = Field(default=True, description="Base asset is token0 of the pair")
    base_decimals: int = Field(default=18, ge=0, le=36, description="Base token decimals")
    quote_decimals: int = Field(default=18, ge=0, le=36, description="Quote token decimals")

    # ==================== Strategy parameters ====================
    candidate_sizes_eth: Annotated[list[Decimal], NoDecode] = Field(
        default_factory=lambda: list(_DEFAULT_CANDIDATE_SIZES),
        description="Ordered candidate input sizes (base asset)",
    )
    min_profit_eth: Decimal = Field(
        default=Decimal("0.02"),
        ge=0,
        description="Minimum absolute profit required to submit",
    )
    pool_fee: Decimal = Field(default=Decimal("0.003"), ge=0, lt=1, description="AMM trading fee")
    slippage_tolerance: Decimal = Field(
        default=Decimal("0.001"),
        ge=0,
        le=1,
        description="Buffer added on top of the quoted settlement fee",
    )
    working_precision: Literal[18] = Field(
        default=WORKING_DECIMALS,
        description="Fractional digits of the fixed-point domain",
    )

    # ==================== Logging ====================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: LogFormat = Field(
        default=LogFormat.CONSOLE,
        description="Log output format",
    )

    # ==================== Storage ====================
    journal_dir: Path = Field(
        default=Path("data/journal"),
        description="Cycle journal directory",
    )

    @field_validator("journal_dir", mode="before")
    @classmethod
    def parse_journal_dir(cls, v: str | Path) -> Path:
        """Convert strings to Path."""
        return Path(v) if isinstance(v, str) else v

    @field_validator("candidate_sizes_eth", mode="before")
    @classmethod
    def parse_candidate_sizes(cls, v: object) -> object:
        """Accept a JSON list or a comma-separated string."""
        if isinstance(v, str):
            stripped = v.strip()
            if stripped.startswith("["):
                return [str(item) for item in json.loads(stripped)]
            return [part.strip() for part in stripped.split(",") if part.strip()]
        return v

    @field_validator("candidate_sizes_eth")
    @classmethod
    def check_candidate_sizes(cls, v: list[Decimal]) -> list[Decimal]:
        """Sizes must be positive and strictly ascending."""
        if not v:
            raise ValueError("candidate_sizes_eth must not be empty")
        if any(size <= 0 for size in v):
            raise ValueError("candidate sizes must be positive")
        if any(later <= earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("candidate sizes must be strictly ascending")
        return v

    def ensure_directories(self) -> None:
        """Create required directories."""
        self.journal_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_paper_mode(self) -> bool:
        return self.mode == RunMode.PAPER

    @property
    def is_live_mode(self) -> bool:
        return self.mode == RunMode.LIVE

    @property
    def candidate_sizes_wad(self) -> tuple[int, ...]:
        return tuple(to_wad(size) for size in self.candidate_sizes_eth)

    @property
    def min_profit_wad(self) -> int:
        return to_wad(self.min_profit_eth)

    @property
    def pool_fee_wad(self) -> int:
        return to_wad(self.pool_fee)

    @property
    def slippage_tolerance_wad(self) -> int:
        return to_wad(self.slippage_tolerance)

    def validate_for_chain(self) -> list[str]:
        """Return the settings missing for any on-chain run."""
        missing = []
        if not self.rpc_url:
            missing.append("RPC_URL")
        return missing

    def validate_for_live(self) -> list[str]:
        """Return the settings missing for live mode."""
        missing = self.validate_for_chain()
        if not self.ethereum_private_key:
            missing.append("ETHEREUM_PRIVATE_KEY")
        if not self.bundler_address:
            missing.append("BUNDLER_ADDRESS")
        return missing


# Global settings instance (lazy)
_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from the environment."""
    global _settings
    _settings = Settings()
    return _settings
