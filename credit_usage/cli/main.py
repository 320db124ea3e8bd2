"""
CLI interface for Credit Usage Tracker.

Provides command-line access to the credit ledger and daily usage chart.
"""

import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from credit_usage.config.loader import AppConfig, default_config, load_config
from credit_usage.core.bucketing import DailyUsageTracker
from credit_usage.core.clock import SystemClock
from credit_usage.core.series import UsageSeries, compact, series_for_today
from credit_usage.log import configure_logging
from credit_usage.sdk.usage_log import LedgerUsageLog, UsageLogClient
from credit_usage.storage.kv_store import NamespacedKeyValueStore, SQLiteKeyValueStore
from credit_usage.storage.models import CreditStatus
from credit_usage.storage.repository import (
    DEFAULT_SIGNUP_CREDITS,
    CreditLedgerError,
    get_repository,
    initialize_schema,
)

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    )
):
    """Credit Usage Tracker CLI."""
    try:
        settings = load_config(config) if config else default_config()
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    configure_logging(settings.logging.level)
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        console.print("Credit Usage Tracker - Use --help to see available commands")


def _settings(ctx: typer.Context) -> AppConfig:
    return ctx.obj if isinstance(ctx.obj, AppConfig) else default_config()


@app.command()
def init(ctx: typer.Context):
    """Initialize the credit ledger database."""
    settings = _settings(ctx)
    try:
        initialize_schema(settings.storage.path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def register(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    account_id: Optional[str] = typer.Option(None, "--account-id", "-a", help="External account id"),
    credits: int = typer.Option(DEFAULT_SIGNUP_CREDITS, "--credits", help="Credits granted on sign-up")
):
    """Register an account (no-op if it already exists)."""
    _run_ledger(ctx, lambda repo: repo.register_account(email, account_id, credits))


@app.command()
def status(ctx: typer.Context, email: str = typer.Argument(..., help="Account email")):
    """Show the credit balance of an account."""
    settings = _settings(ctx)
    initialize_schema(settings.storage.path)
    account = get_repository(settings.storage.path).get_status(email)
    if account is None:
        console.print(f"[red]Account not found:[/] {email}")
        sys.exit(EXIT_CODE_FAIL)
    _display_status(account)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def add(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    amount: int = typer.Argument(..., help="Credits to add")
):
    """Add purchased credits to an account."""
    _run_ledger(ctx, lambda repo: repo.add_credits(email, amount))


@app.command()
def consume(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    amount: int = typer.Argument(..., help="Credits to consume")
):
    """Consume credits from an account."""
    _run_ledger(ctx, lambda repo: repo.consume_credits(email, amount))


@app.command()
def track(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Account email"),
    from_day: Optional[str] = typer.Option(None, "--from", help="First day (YYYY-MM-DD)"),
    to_day: Optional[str] = typer.Option(None, "--to", help="Last day (YYYY-MM-DD)"),
    remote: bool = typer.Option(
        False,
        "--remote/--no-remote",
        help="Reconcile with the usage log (configured URL, else the local ledger)"
    )
):
    """
    Record the account's consumed total and show daily usage.

    The cumulative total is read from the ledger and bucketed into calendar
    days in the configured timezone. The chart covers at most the configured
    window, ending today.
    """
    settings = _settings(ctx)
    try:
        initialize_schema(settings.storage.path)
        repository = get_repository(settings.storage.path)
        account = repository.get_status(email)
        if account is None:
            console.print(f"[red]Account not found:[/] {email}")
            sys.exit(EXIT_CODE_FAIL)

        usage_log = None
        if remote:
            if settings.tracker.usage_log_url:
                usage_log = UsageLogClient(
                    settings.tracker.usage_log_url,
                    timeout=settings.tracker.usage_log_timeout,
                    params={"email": account.email}
                )
            else:
                usage_log = LedgerUsageLog(repository, account.email, settings.tracker.retention_days)

        clock = SystemClock(settings.tracker.timezone)
        tracker = DailyUsageTracker(
            NamespacedKeyValueStore(SQLiteKeyValueStore(settings.storage.path), account.email),
            clock=clock,
            usage_log=usage_log,
            retention_days=settings.tracker.retention_days
        )
        usage = tracker.update_usage(account.used)
        series = series_for_today(
            usage,
            clock.today(),
            from_day,
            to_day,
            window_days=settings.chart.window_days,
            ladder=settings.chart.tick_ladder,
            max_ticks=settings.chart.max_ticks
        )
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_series(account.email, series)
    sys.exit(EXIT_CODE_PASS)


def _run_ledger(ctx: typer.Context, operation) -> None:
    """Apply a ledger operation and print the resulting balance."""
    settings = _settings(ctx)
    try:
        initialize_schema(settings.storage.path)
        account = operation(get_repository(settings.storage.path))
    except CreditLedgerError as e:
        console.print(f"[red]{e.code}:[/] {str(e)} ({e.email})")
        sys.exit(EXIT_CODE_FAIL)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    _display_status(account)
    sys.exit(EXIT_CODE_PASS)


def _display_status(account: CreditStatus) -> None:
    table = Table(title=f"Credits for {account.email}")
    table.add_column("Account")
    table.add_column("Total", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Active")
    table.add_row(
        account.account_id,
        f"{account.total:,}",
        f"{account.used:,}",
        f"{account.remaining:,}",
        "yes" if account.active else "no"
    )
    console.print(table)


def _display_series(email: str, series: UsageSeries) -> None:
    """Display the usage series as a table with a bar per day."""
    console.print(f"\n[bold]Credit Usage[/bold] {email}")
    console.print(f"From {series.from_day} to {series.to_day}")
    console.print("-" * 40)

    table = Table()
    table.add_column("Day")
    table.add_column("Used", justify="right")
    table.add_column("")
    width = 30
    for point in series.points:
        bar = "█" * round(width * point.value / series.scale.axis_max)
        table.add_row(point.label, f"{point.value:,}", f"[sky_blue1]{bar}[/]")
    console.print(table)

    console.print(f"Used in range: [bold]{series.total:,}[/bold]")
    console.print(f"Axis: 0 - {compact(series.scale.axis_max)} (step {compact(series.scale.step)})")


if __name__ == "__main__":
    app()
