"""CLI entry point for the oracle arbitrage bot."""

import sys
from decimal import InvalidOperation
from typing import Any, NoReturn

import click

from oracle_arb import __version__
from oracle_arb.chain.contracts import connect
from oracle_arb.config import Settings, get_settings
from oracle_arb.data.blocks import BlockTicker
from oracle_arb.engine.evaluator import ProfitEvaluator
from oracle_arb.engine.fees import FeeModel, RedemptionFeeSchedule
from oracle_arb.pipeline import build_controller
from oracle_arb.types import CycleResult, PoolReserves, TradeCandidate
from oracle_arb.utils.fixed import format_wad, to_wad
from oracle_arb.utils.logging import get_logger, setup_logging


@click.group(invoke_without_command=True)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """Oracle arbitrage bot.

    Buys the stable asset on a constant-product pool when the pool pays more
    than the oracle price, and redeems it at the oracle price in one bundle.
    """
    if version:
        click.echo(f"oracle-arb version {__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def once() -> None:
    """Run a single cycle against the current head block."""
    setup_logging()
    logger = get_logger("oracle_arb.main")
    settings = get_settings()
    settings.ensure_directories()
    _exit_if_misconfigured(settings, logger)

    try:
        web3 = connect(settings)
        with build_controller(settings, web3) as controller:
            head = int(web3.eth.block_number)
            logger.info("starting_single_run", mode=settings.mode.value, block_number=head)
            result = controller.run_cycle(head)
            _log_result(logger, "run_completed", result)

    except KeyboardInterrupt:
        logger.info("run_interrupted", message="User interrupted")
        sys.exit(0)
    except Exception as e:
        logger.exception("run_failed", error=str(e))
        sys.exit(1)


@cli.command()
@click.option(
    "--max-blocks",
    type=int,
    default=0,
    help="Stop after this many cycles (0 runs until interrupted)",
)
def watch(max_blocks: int) -> NoReturn:
    """Run one cycle per new block.

    A failed cycle never stops the loop. Use Ctrl+C to stop.
    """
    setup_logging()
    logger = get_logger("oracle_arb.main")
    settings = get_settings()
    settings.ensure_directories()
    _exit_if_misconfigured(settings, logger)

    web3 = connect(settings)
    ticker = BlockTicker(
        lambda: web3.eth.block_number,
        interval_sec=settings.block_poll_interval_sec,
    )
    logger.info(
        "starting_watch",
        mode=settings.mode.value,
        network=settings.network,
        candidates=[str(size) for size in settings.candidate_sizes_eth],
        min_profit_eth=str(settings.min_profit_eth),
    )

    iteration = 0
    with build_controller(settings, web3) as controller:
        try:
            for block_number in ticker:
                iteration += 1
                try:
                    result = controller.run_cycle(block_number)
                    _log_result(logger, "watch_iteration_completed", result, iteration=iteration)
                except Exception as e:
                    logger.exception(
                        "watch_iteration_failed",
                        iteration=iteration,
                        block_number=block_number,
                        error=str(e),
                    )
                if max_blocks and iteration >= max_blocks:
                    break

        except KeyboardInterrupt:
            logger.info("watch_stopped", message="User stopped loop", total_iterations=iteration)

    sys.exit(0)


@cli.command()
@click.option("--reserve-base", required=True, help="Pool base reserve (ETH)")
@click.option("--reserve-quote", required=True, help="Pool quote reserve (LUSD)")
@click.option("--oracle-price", required=True, help="Oracle price, quote per base")
@click.option("--total-debt", default="500000000", show_default=True, help="Outstanding debt")
@click.option(
    "--redemption-rate",
    default="0.005",
    show_default=True,
    help="Current redemption rate with decay, floor included",
)
@click.option("--sizes", default="", help="Comma-separated candidate sizes (defaults to settings)")
def simulate(
    reserve_base: str,
    reserve_quote: str,
    oracle_price: str,
    total_debt: str,
    redemption_rate: str,
    sizes: str,
) -> None:
    """Print the fee-adjusted profit curve for given market inputs, offline."""
    settings = get_settings()
    try:
        reserves = PoolReserves(reserve_base=to_wad(reserve_base), reserve_quote=to_wad(reserve_quote))
        price = to_wad(oracle_price)
        schedule = RedemptionFeeSchedule(
            current_rate=to_wad(redemption_rate), total_debt=to_wad(total_debt)
        )
        amounts = (
            [to_wad(part.strip()) for part in sizes.split(",") if part.strip()]
            if sizes
            else list(settings.candidate_sizes_wad)
        )
    except InvalidOperation as exc:
        raise click.BadParameter(f"not a number: {exc}") from exc

    fee_model = FeeModel(schedule, settings.slippage_tolerance_wad)
    evaluator = ProfitEvaluator(settings.pool_fee_wad)

    click.echo(f"AMM price: {format_wad(reserves.price, 2)}  Oracle price: {format_wad(price, 2)}")
    if reserves.price <= price:
        click.echo("[--] No arbitrage direction: AMM price does not exceed oracle price")
        return

    click.echo(f"{'size':>12} {'amm_out':>16} {'fee':>10} {'redeemed':>14} {'profit':>12}")
    best_amount: int | None = None
    best_profit = 0
    for amount in amounts:
        try:
            result = evaluator.evaluate(TradeCandidate(amount_in=amount), reserves, price, fee_model)
        except ValueError as exc:
            click.echo(f"{format_wad(amount, 4):>12} excluded: {exc}")
            continue
        click.echo(
            f"{format_wad(amount, 4):>12} {format_wad(result.amm_output, 4):>16} "
            f"{format_wad(result.marginal_fee * 100, 4):>9}% "
            f"{format_wad(result.redeemed_base, 6):>14} {format_wad(result.profit, 6):>12}"
        )
        if result.profit > best_profit:
            best_amount, best_profit = amount, result.profit

    click.echo()
    if best_amount is None:
        click.echo("[--] No profitable candidate")
    elif best_profit > settings.min_profit_wad:
        click.echo(f"[OK] Best {format_wad(best_amount, 4)} ETH, profit {format_wad(best_profit)} ETH")
    else:
        click.echo(
            f"[--] Best {format_wad(best_amount, 4)} ETH, profit {format_wad(best_profit)} ETH "
            f"below threshold {settings.min_profit_eth}"
        )


@cli.command()
def status() -> None:
    """Show configuration summary."""
    setup_logging()
    settings = get_settings()

    click.echo("=" * 50)
    click.echo("Oracle Arbitrage Bot - Status")
    click.echo("=" * 50)
    click.echo()

    mode_marker = "[PAPER]" if settings.is_paper_mode else "[LIVE]"
    mode_text = "Dry run (no signing)" if settings.is_paper_mode else "Live submission"
    click.echo(f"{mode_marker} Mode: {mode_text}")
    click.echo()

    click.echo("[Chain]")
    rpc_status = "[OK] Configured" if settings.rpc_url else "[--] Not configured"
    key_status = "[OK] Configured" if settings.ethereum_private_key else "[--] Not configured"
    click.echo(f"   Network: {settings.network}")
    click.echo(f"   RPC URL: {rpc_status}")
    click.echo(f"   Private key: {key_status}")
    click.echo(f"   Oracle feed: {settings.oracle_feed_address}")
    click.echo(f"   Pool pair: {settings.pair_address}")
    click.echo(f"   Bundler: {settings.bundler_address or '[--] Not configured'}")
    click.echo()

    click.echo("[Strategy]")
    click.echo(f"   Candidate sizes: {', '.join(str(s) for s in settings.candidate_sizes_eth)} ETH")
    click.echo(f"   Min profit: {settings.min_profit_eth} ETH")
    click.echo(f"   Pool fee: {settings.pool_fee}")
    click.echo(f"   Slippage buffer: {settings.slippage_tolerance}")
    click.echo(f"   Oracle max age: {settings.oracle_max_age_sec}s")
    click.echo()

    click.echo("[Logging]")
    click.echo(f"   Log level: {settings.log_level}")
    click.echo(f"   Log format: {settings.log_format.value}")
    click.echo(f"   Journal dir: {settings.journal_dir}")
    click.echo()

    missing = settings.validate_for_live() if settings.is_live_mode else settings.validate_for_chain()
    if missing:
        click.echo("[ERROR] Configuration incomplete, missing:")
        for key in missing:
            click.echo(f"   - {key}")
    else:
        click.echo("[OK] Configuration complete")

    click.echo()
    click.echo("=" * 50)


@cli.command()
def check() -> None:
    """Check dependencies and configuration."""
    setup_logging()
    logger = get_logger("oracle_arb.main")

    click.echo("Checking system dependencies...")
    click.echo()

    all_ok = True

    packages = [
        ("pydantic", "Configuration validation"),
        ("pydantic_settings", "Settings loading"),
        ("structlog", "Structured logging"),
        ("click", "CLI framework"),
        ("tenacity", "Retry mechanism"),
        ("web3", "Ethereum RPC"),
        ("eth_account", "Transaction signing"),
    ]

    for pkg_name, desc in packages:
        try:
            __import__(pkg_name)
            click.echo(f"  [OK] {pkg_name} - {desc}")
        except ImportError:
            click.echo(f"  [MISSING] {pkg_name} - {desc}")
            all_ok = False

    click.echo()

    from pathlib import Path

    env_file = Path(".env")
    if env_file.exists():
        click.echo("  [OK] .env configuration file exists")
    else:
        click.echo("  [WARN] .env file not found (using defaults)")

    click.echo()

    if all_ok:
        click.echo("[OK] All dependency checks passed")
    else:
        click.echo("[ERROR] Some dependencies missing. Run: pip install -e .")

    logger.info("dependency_check_completed", all_ok=all_ok)


def _exit_if_misconfigured(settings: Settings, logger: Any) -> None:
    missing = settings.validate_for_live() if settings.is_live_mode else settings.validate_for_chain()
    if missing:
        logger.error(
            "missing_required_config",
            missing_keys=missing,
            hint="Set the missing keys in the .env file",
        )
        sys.exit(1)


def _log_result(logger: Any, event: str, result: CycleResult, **kwargs: object) -> None:
    fields: dict[str, object] = {
        "block_number": result.block_number,
        "status": result.status,
        "elapsed_ms": round(result.elapsed_ms, 2),
        "warnings": result.warnings,
        **kwargs,
    }
    if result.decision is not None and result.decision.best is not None:
        fields["best_profit_eth"] = format_wad(result.decision.best.profit)
        fields["submit"] = result.decision.submit
    logger.info(event, **fields)


# Support python -m oracle_arb.main
if __name__ == "__main__":
    cli()
