"""CLI entry point for budgetwatch.

Invoked as::

    budgetwatch [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m budgetwatch.cli.main

Commands
--------
- version          Show version information
- config show      Show the effective engine settings
- budget refresh   Refresh budgets from a YAML fixture and run both alert passes
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from budgetwatch.config import EngineSettings

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("budgetwatch.yaml")
_NOW_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _load_settings(config_path: str) -> "EngineSettings":
    from budgetwatch.config import SettingsLoader

    loader = SettingsLoader()
    cfg_path = Path(config_path)
    try:
        return loader.load(cfg_path) if cfg_path.exists() else loader.defaults()
    except ValidationError as exc:
        err_console.print(f"[red]Invalid settings in {cfg_path}:[/red] {exc}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="budgetwatch")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level for engine messages.",
)
def cli(log_level: str) -> None:
    """budgetwatch CLI — budget utilization, forecast and alert tools."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from budgetwatch import __version__

    console.print(
        Panel(
            f"[bold]budgetwatch[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Budget utilization, forecast and alerting engine.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# config group
# ---------------------------------------------------------------------------


@cli.group(name="config")
def config_group() -> None:
    """Engine settings commands."""


@config_group.command(name="show")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(),
    help="Path to budgetwatch.yaml.",
)
def config_show_command(config_path: str) -> None:
    """Show the effective engine settings."""
    settings = _load_settings(config_path)
    source = config_path if Path(config_path).exists() else "defaults"

    table = Table(title=f"Engine Settings ({source})", box=box.SIMPLE)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="bold")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


# ---------------------------------------------------------------------------
# budget group
# ---------------------------------------------------------------------------


@cli.group(name="budget")
def budget_group() -> None:
    """Budget refresh commands."""


@budget_group.command(name="refresh")
@click.argument("budgets_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--now",
    "now_value",
    type=click.DateTime(formats=_NOW_FORMATS),
    default=None,
    help="Evaluation time (UTC). Defaults to the current time.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    default=str(_DEFAULT_CONFIG),
    type=click.Path(),
    help="Path to budgetwatch.yaml.",
)
def budget_refresh_command(budgets_file: str, now_value: datetime | None, config_path: str) -> None:
    """Refresh budgets from a YAML fixture and run both alert passes.

    The fixture holds ``budgets``, daily ``usage_rows`` and cumulative
    ``forecast_rows`` (each row ``[year, month, day, value]``), and an
    optional ``forecast_generated_at`` timestamp.
    """
    from budgetwatch.budget.models import Budget
    from budgetwatch.query.service import StaticQueryService
    from budgetwatch.service import BudgetService
    from budgetwatch.store.memory import InMemoryBudgetStore

    settings = _load_settings(config_path)
    now = (now_value or datetime.now(tz=timezone.utc)).replace(tzinfo=timezone.utc)

    with Path(budgets_file).open("r", encoding="utf-8") as fh:
        fixture: dict[str, Any] = yaml.safe_load(fh) or {}

    try:
        budgets = [Budget.model_validate(raw) for raw in fixture.get("budgets", [])]
    except ValidationError as exc:
        err_console.print(f"[red]Invalid budget in {budgets_file}:[/red] {exc}")
        sys.exit(1)

    generated_at = fixture.get("forecast_generated_at")
    if isinstance(generated_at, datetime) and generated_at.tzinfo is None:
        generated_at = generated_at.replace(tzinfo=timezone.utc)

    store = InMemoryBudgetStore(budgets)
    query = StaticQueryService(
        usage_rows=list(fixture.get("usage_rows", [])),
        forecast_rows=list(fixture.get("forecast_rows", [])),
        generated_at=generated_at if isinstance(generated_at, datetime) else None,
    )
    service = BudgetService(store, query, settings=settings)
    report = service.run_cycle(now)

    table = Table(title=f"Budget Utilization at {now:%Y-%m-%d %H:%M} UTC", box=box.SIMPLE)
    table.add_column("Budget", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Forecasted", justify="right")
    table.add_column("Full Amount Date")
    table.add_column("Triggered")

    for budget in store.all_budgets():
        cfg = budget.config
        if cfg is None or budget.id not in report.refresh.refreshed:
            continue
        pct = budget.utilization_percentage
        colour = "red" if pct >= 100 else ("yellow" if pct >= 80 else "green")
        triggered = ", ".join(f"{a.percentage:g}%" for a in cfg.alerts if a.enabled and a.triggered)
        full_date = budget.utilization.forecasted_total_amount_date
        table.add_row(
            budget.name or budget.id,
            f"{cfg.currency_symbol}{cfg.amount:,.2f}",
            f"{cfg.currency_symbol}{budget.utilization.current:,.2f}",
            f"[{colour}]{pct:.2f}%[/{colour}]",
            f"{cfg.currency_symbol}{budget.utilization.forecasted:,.2f}",
            full_date.isoformat() if full_date else "-",
            triggered or "-",
        )
    console.print(table)

    notifications = store.all_notifications()
    if notifications:
        sent = Table(title="Notifications", box=box.SIMPLE)
        sent.add_column("Budget", style="cyan")
        sent.add_column("Type", style="magenta")
        sent.add_column("Alert")
        sent.add_column("Recipients")
        for notification in notifications:
            sent.add_row(
                notification.budget_id,
                notification.type.value,
                f"{notification.alert_percentage:g}% ({notification.currency_symbol}{notification.alert_amount})",
                ", ".join(notification.recipients) or "-",
            )
        console.print(sent)
    else:
        console.print("[yellow]No notifications sent.[/yellow]")

    for budget_id in report.refresh.expired:
        console.print(f"  [dim]Expired:[/dim] {budget_id}")
    for budget_id, error in report.refresh.failed.items():
        err_console.print(f"[red]Failed:[/red] {budget_id}: {error}")

    sys.exit(1 if report.refresh.failed else 0)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
