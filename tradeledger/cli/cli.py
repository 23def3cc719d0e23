"""
Command-Line Interface for the Trade Ledger

Provides CLI commands for replaying transaction logs, generating P/L
curves, summarizing realized performance, and validating configurations.

Usage:
    tradeledger replay --transactions trades.yaml
    tradeledger curves --config analysis.yaml --output curves.csv
    tradeledger performance --transactions trades.yaml
    tradeledger validate --config analysis.yaml
    tradeledger init --name "AAPL covered call"
    tradeledger env
"""

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradeledger import __version__
from tradeledger.analytics.performance import performance_summary
from tradeledger.cli.config_loader import config_transactions, load_config, load_transactions
from tradeledger.cli.config_schema import (
    AnalysisConfig,
    ConfigValidationError,
    ConfigValidator,
)
from tradeledger.cli.environment import (
    Environment,
    configure_logging,
    get_settings,
    set_environment,
)
from tradeledger.core.positions import PriceCurvePoint, ProcessedPortfolioState
from tradeledger.core.transactions import TransactionError
from tradeledger.engine.curves import CurveGenerator, curves_frame
from tradeledger.engine.ledger import replay as replay_transactions

console = Console()
err_console = Console(stderr=True)


def echo(message: str, style: Optional[str] = None, err: bool = False) -> None:
    """Output message through rich."""
    if err:
        err_console.print(message, style=style)
    else:
        console.print(message, style=style)


def echo_error(message: str) -> None:
    """Output error message."""
    echo(f"[red]Error:[/red] {message}", err=True)


def echo_success(message: str) -> None:
    """Output success message."""
    echo(f"[green]{message}[/green]")


def echo_warning(message: str) -> None:
    """Output warning message."""
    echo(f"[yellow]Warning:[/yellow] {message}")


@click.group()
@click.option(
    "--env",
    "-e",
    type=click.Choice([e.value for e in Environment]),
    default="development",
    help="Environment to use",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(version=__version__, prog_name="Trade Ledger")
@click.pass_context
def cli(ctx: click.Context, env: str, verbose: bool, quiet: bool) -> None:
    """Trade Ledger CLI - Replay trades and project option P/L."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    set_environment(Environment(env))
    if verbose:
        configure_logging("DEBUG")


@cli.command()
@click.option(
    "--transactions",
    "-t",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to transaction log (YAML or JSON)",
)
@click.pass_context
def replay(ctx: click.Context, transactions: Path) -> None:
    """Replay a transaction log and show open positions."""
    quiet = ctx.obj.get("quiet", False)

    try:
        records = load_transactions(transactions)
    except (TransactionError, ValueError) as e:
        echo_error(f"Invalid transaction log: {e}")
        sys.exit(1)

    state = replay_transactions(records)

    if not quiet:
        echo(f"Replayed [cyan]{len(records)}[/cyan] transactions from {transactions}")

    _display_positions(state)
    _display_diagnostics(state)


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to analysis configuration file (YAML or JSON)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Write the curves to this CSV file",
)
@click.option("--steps", type=int, help="Override the number of sweep steps")
@click.pass_context
def curves(
    ctx: click.Context,
    config: Path,
    output: Optional[Path],
    steps: Optional[int],
) -> None:
    """Generate theoretical, expiration and benchmark P/L curves."""
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    try:
        if not quiet:
            echo(f"Loading configuration from [cyan]{config}[/cyan]...")

        analysis = load_config(config)
        records = config_transactions(analysis)

    except ConfigValidationError as e:
        echo_error(f"Configuration validation failed: {e}")
        for error in e.errors:
            echo(f"  - {error}")
        sys.exit(1)
    except (TransactionError, FileNotFoundError, ValueError) as e:
        echo_error(str(e))
        sys.exit(1)

    if verbose:
        _display_config_summary(analysis)

    state = replay_transactions(records)
    generator = CurveGenerator(
        as_of=analysis.valuation_date,
        implied_volatility=analysis.implied_volatility,
        risk_free_rate=analysis.risk_free_rate,
        steps=steps if steps is not None else analysis.steps,
    )

    theoretical = generator.theoretical_curve(state, analysis.price_range)
    expiration = generator.expiration_curve(state, analysis.price_range)
    benchmark = None
    crossovers: List[float] = []
    if analysis.benchmark:
        benchmark = generator.benchmark_curve(
            analysis.benchmark.quantity,
            analysis.benchmark.cost_basis_per_share,
            analysis.price_range,
        )
        crossovers = generator.find_crossovers(expiration, benchmark)
    breakevens = generator.find_breakevens(state, analysis.price_range)

    console.print(Panel(f"[bold]P/L Curves: {analysis.name}[/bold]"))
    table = Table()
    table.add_column("Curve", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Min P/L", justify="right")
    table.add_column("Max P/L", justify="right")
    for label, curve in (
        ("Theoretical", theoretical),
        ("Expiration", expiration),
        ("Benchmark", benchmark),
    ):
        if curve is None:
            continue
        low, high = _curve_extremes(curve)
        table.add_row(label, str(len(curve)), low, high)
    console.print(table)

    if analysis.benchmark:
        echo(f"Crossover vs Benchmark: {_format_prices(crossovers)}")
    echo(f"Breakevens at Expiration: {_format_prices(breakevens)}")

    _display_diagnostics(state)

    if output:
        frame = curves_frame(theoretical, expiration, benchmark)
        frame.to_csv(output, index=False)
        echo_success(f"Curves written to: {output}")


@cli.command()
@click.option(
    "--transactions",
    "-t",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to transaction log (YAML or JSON)",
)
def performance(transactions: Path) -> None:
    """Summarize realized performance of a transaction log."""
    try:
        records = load_transactions(transactions)
    except (TransactionError, ValueError) as e:
        echo_error(f"Invalid transaction log: {e}")
        sys.exit(1)

    summary = performance_summary(replay_transactions(records))

    table = Table(title="Realized Performance")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Realized P/L", f"${summary['total_realized_pl']:,.2f}")
    table.add_row("Realized Legs", str(summary["num_events"]))
    table.add_row("Success Rate", f"{summary['success_rate']:.1f}%")
    table.add_row("Profit Factor", f"{summary['profit_factor']:.2f}")
    table.add_row("Largest Win", f"${summary['largest_win']:,.2f}")
    table.add_row("Largest Loss", f"${summary['largest_loss']:,.2f}")
    console.print(table)

    if summary["by_month"]:
        monthly = Table(title="Cumulative Realized P/L by Month")
        monthly.add_column("Month", style="cyan")
        monthly.add_column("Cumulative", justify="right")
        for month, total in summary["by_month"].items():
            monthly.add_row(month, f"${total:,.2f}")
        console.print(monthly)


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to analysis configuration file",
)
@click.pass_context
def validate(ctx: click.Context, config: Path) -> None:
    """Validate an analysis configuration file."""
    verbose = ctx.obj.get("verbose", False)

    try:
        echo(f"Validating [cyan]{config}[/cyan]...")

        analysis = load_config(config)
        errors = ConfigValidator.validate(analysis)

        if errors:
            echo_error("Validation failed with the following errors:")
            for error in errors:
                echo(f"  [red]x[/red] {error}")
            sys.exit(1)

        # Resolve the transaction log too, so a bad file fails validation
        records = config_transactions(analysis)

    except ConfigValidationError as e:
        echo_error(str(e))
        for error in e.errors:
            echo(f"  - {error}")
        sys.exit(1)
    except (TransactionError, FileNotFoundError, ValueError) as e:
        echo_error(f"Validation error: {e}")
        sys.exit(1)

    echo_success(f"Configuration '{analysis.name}' is valid!")

    if verbose:
        _display_config_summary(analysis)
        echo(f"Transactions: {len(records)}")


@cli.command()
@click.option("--name", "-n", required=True, help="Analysis name")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Output file path (default: <name>.yaml)",
)
def init(name: str, output: Optional[Path]) -> None:
    """Create a new analysis configuration file."""
    if output is None:
        output = Path(f"{name.lower().replace(' ', '_')}.yaml")

    if output.exists():
        echo_error(f"File already exists: {output}")
        sys.exit(1)

    with open(output, "w") as f:
        f.write(_generate_default_config(name))

    echo_success(f"Created configuration: {output}")


@cli.command()
def env() -> None:
    """Show current environment configuration."""
    settings = get_settings()

    table = Table(title=f"Environment: {settings.name.value}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", settings.log_level)
    table.add_row("Log File", settings.log_file or "Not set")
    table.add_row("Implied Volatility", f"{settings.implied_volatility:.2%}")
    table.add_row("Risk-Free Rate", f"{settings.risk_free_rate:.2%}")
    table.add_row("Curve Steps", str(settings.curve_steps))

    console.print(table)


def _display_positions(state: ProcessedPortfolioState) -> None:
    """Display open positions and realized P/L."""
    if state.open_shares:
        table = Table(title="Open Share Positions")
        table.add_column("Ticker", style="cyan")
        table.add_column("Quantity", justify="right")
        table.add_column("Avg Cost", justify="right")
        table.add_column("Cost Basis", justify="right")
        for share in state.open_shares:
            table.add_row(
                share.ticker,
                f"{share.quantity:g}",
                f"${share.average_cost:,.2f}",
                f"${share.total_cost:,.2f}",
            )
        console.print(table)

    if state.open_options:
        table = Table(title="Open Option Series")
        table.add_column("Series", style="cyan")
        table.add_column("Direction")
        table.add_column("Quantity", justify="right")
        table.add_column("Premium/Contract", justify="right")
        table.add_column("Net Premium", justify="right")
        for option in state.open_options:
            table.add_row(
                option.option_id,
                option.direction.value,
                f"{option.quantity:g}",
                f"${option.premium_per_contract:,.2f}",
                f"${option.net_premium_value:,.2f}",
            )
        console.print(table)

    if state.is_flat:
        echo("No open positions.")

    style = "green" if state.realized_pl >= 0 else "red"
    echo(f"Realized P/L: [{style}]${state.realized_pl:,.2f}[/{style}]")


def _display_diagnostics(state: ProcessedPortfolioState) -> None:
    """Display replay diagnostics as warnings."""
    for diagnostic in state.diagnostics:
        echo_warning(f"{diagnostic.kind.value}: {diagnostic.message}")


def _display_config_summary(config: AnalysisConfig) -> None:
    """Display configuration summary."""
    table = Table(title="Configuration Summary")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Name", config.name)
    table.add_row("Price Range", f"{config.price_low:g} - {config.price_high:g}")
    table.add_row("Steps", str(config.steps))
    table.add_row("Implied Volatility", f"{config.implied_volatility:.2%}")
    table.add_row("Risk-Free Rate", f"{config.risk_free_rate:.2%}")
    table.add_row("As Of", str(config.valuation_date))
    if config.benchmark:
        table.add_row(
            "Benchmark",
            f"{config.benchmark.quantity:g} @ ${config.benchmark.cost_basis_per_share:,.2f}",
        )

    console.print(table)


def _curve_extremes(curve: List[PriceCurvePoint]):
    if not curve:
        return "-", "-"
    values = [point.profit_loss for point in curve]
    return f"${min(values):,.2f}", f"${max(values):,.2f}"


def _format_prices(prices: List[float]) -> str:
    if not prices:
        return "none in range"
    return ", ".join(f"${price:,.2f}" for price in prices)


def _generate_default_config(name: str) -> str:
    """Generate default configuration YAML."""
    return f"""# Analysis Configuration
name: "{name}"
description: "P/L projection"

price_range:
  low: 80
  high: 120
steps: 100

implied_volatility: 0.30
risk_free_rate: 0.04
# as_of: "2024-02-01"   # defaults to today

benchmark:
  quantity: 100
  cost_basis_per_share: 100

# transactions_file: "trades.yaml"
transactions:
  - type: buy_share
    id: "t1"
    date: "2024-01-02"
    ticker: "AAPL"
    quantity: 100
    price: 100
  - type: open_option
    id: "t2"
    date: "2024-01-02"
    ticker: "AAPL"
    option_kind: call
    direction: short
    strike: 110
    expiration: "2024-03-15"
    quantity: 1
    premium_per_contract: 250
"""


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
