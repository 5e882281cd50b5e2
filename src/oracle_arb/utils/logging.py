"""Structured logging configuration.

structlog over stdlib logging, with JSON or console output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from oracle_arb.config import LogFormat, get_settings
from oracle_arb.utils.fixed import format_wad


def setup_logging() -> None:
    """Configure structured logging from settings."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == LogFormat.JSON:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structured logger.

    Args:
        name: Logger name. Defaults to the calling module.

    Returns:
        Bound structlog logger.
    """
    return structlog.get_logger(name)


def log_fetch_failure(
    logger: structlog.stdlib.BoundLogger,
    *,
    source: str,
    error: str,
    **kwargs: Any,
) -> None:
    """Record a failed oracle/pool/settlement read."""
    logger.warning("fetch_failed", source=source, error=error, **kwargs)


def log_candidate(
    logger: structlog.stdlib.BoundLogger,
    *,
    amount_in: int,
    amm_output: int | None,
    profit: int | None,
    status: str,
    **kwargs: Any,
) -> None:
    """Record one evaluated candidate with human-readable amounts."""
    logger.info(
        "candidate_evaluated",
        amount_in_eth=format_wad(amount_in),
        amm_output_quote=format_wad(amm_output) if amm_output is not None else None,
        profit_eth=format_wad(profit) if profit is not None else None,
        status=status,
        **kwargs,
    )


def log_cycle_outcome(
    logger: structlog.stdlib.BoundLogger,
    *,
    block_number: int | None,
    status: str,
    elapsed_ms: float,
    **kwargs: Any,
) -> None:
    """Record the terminal status of one block cycle."""
    level = "warning" if status in {"fetch_failed", "failed"} else "info"
    getattr(logger, level)(
        "cycle_outcome",
        block_number=block_number,
        status=status,
        elapsed_ms=round(elapsed_ms, 2),
        **kwargs,
    )


def log_submission(
    logger: structlog.stdlib.BoundLogger,
    *,
    block_number: int | None,
    tx_hash: str | None,
    error: str | None = None,
    **kwargs: Any,
) -> None:
    """Record the result of a bundle submission."""
    if error is None:
        logger.info("tx_submitted", block_number=block_number, tx_hash=tx_hash, **kwargs)
    else:
        logger.error("submission_failed", block_number=block_number, error=error, **kwargs)
