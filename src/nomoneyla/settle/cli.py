"""CLI commands for settling categories and reviewing contributions."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal

import typer
from rich.console import Console
from rich.table import Table

from ..config import Settings, load_settings
from ..db import Database
from ..exceptions import NoMoneyLaError
from ..models import Category, CategorySettlement, ContributionIssue, Subcategory
from .service import SettlementService
from .ui import confirm_action, select_category_interactive
from .validator import group_issues_by_category, total_missing_amount

app = typer.Typer(
    name="settle",
    help="Compute who owes whom and review contribution issues",
)

console = Console()

NO_CATEGORY_TITLE = "No category"


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def cli_session(verbose: bool = False) -> Iterator[tuple[Settings, Database]]:
    """
    Load settings and open the database for one command.

    Errors are printed instead of raised (unless verbose) and the process
    exits with status 1. The database is always closed.
    """
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        db.ensure_default_payer()
        yield settings, db
    except NoMoneyLaError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        if verbose:
            raise
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def format_money(amount: Decimal, currency_code: str, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (HKD 85.02)
    Positive amounts have spaces:      HKD 85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            formatted = f"({currency_code} [red]{abs_amount:,.2f}[/red])"
        else:
            formatted = f"({currency_code} {abs_amount:,.2f})"
    else:
        if use_color:
            formatted = f" [green]{currency_code} {abs_amount:,.2f}[/green] "
        else:
            formatted = f" {currency_code} {abs_amount:,.2f} "
    return formatted


def display_settlement(settlement: CategorySettlement, currency_code: str):
    """Display balances and transfers for a category."""
    console.print(f"\n[bold]Settlement: {settlement.category.name}[/bold]")
    console.print(f"  Transactions: {settlement.transaction_count}")
    console.print(
        f"  Total: {format_money(settlement.total_amount, currency_code)}"
    )
    console.print()

    if not settlement.balances:
        console.print("[yellow]No participants found for this category.[/yellow]")
        return

    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Payer", style="cyan", width=20)
    table.add_column("Paid", justify="right", width=16)
    table.add_column("Fair Share", justify="right", width=16)
    table.add_column("Net", justify="right", width=16)

    for balance in settlement.balances:
        table.add_row(
            balance.payer_name,
            format_money(balance.total_paid, currency_code, use_color=False),
            format_money(balance.total_should_pay, currency_code, use_color=False),
            format_money(balance.net_balance, currency_code),
        )
    console.print(table)

    console.print()
    if settlement.transfers:
        transfers = Table(title="Transfers", show_header=True, header_style="bold blue")
        transfers.add_column("From", style="cyan")
        transfers.add_column("To", style="cyan")
        transfers.add_column("Amount", justify="right")
        for transfer in settlement.transfers:
            transfers.add_row(
                settlement.payer_name(transfer.from_payer_id),
                settlement.payer_name(transfer.to_payer_id),
                format_money(transfer.amount, currency_code, use_color=False),
            )
        console.print(transfers)
    else:
        console.print("[green]✓ Everyone is settled up[/green]")

    # Integrity
    console.print()
    if settlement.is_balanced:
        console.print("  [green]✓ Balances sum to zero[/green]")
    else:
        console.print(
            f"  [red]✗ Balances are off by "
            f"{format_money(settlement.residual, currency_code, use_color=False)}"
            f"[/red]"
        )
    if settlement.issues:
        console.print(
            f"  [yellow]⚠️  {len(settlement.issues)} transactions have contribution "
            f"issues (run 'nomoneyla settle issues')[/yellow]"
        )
    if settlement.dangling_payer_ids:
        console.print(
            f"  [yellow]⚠️  {len(settlement.dangling_payer_ids)} assigned payers no "
            f"longer exist (run 'nomoneyla settle cleanup')[/yellow]"
        )


def _issue_table(title: str, issues: list[ContributionIssue], currency_code: str):
    """Build the issue table for one category."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Date", style="dim", width=10)
    table.add_column("Note", style="cyan", width=30)
    table.add_column("Total", justify="right", width=16)
    table.add_column("Difference", justify="right", width=16)
    table.add_column("Status", style="yellow")

    for issue in issues:
        note = issue.transaction.note or ""
        status = issue.check.status.replace("_", " ")
        if issue.check.severity == "error":
            status = f"[red]{status}[/red]"
        table.add_row(
            issue.transaction.date.isoformat(),
            note[:30] + "..." if len(note) > 30 else note,
            format_money(issue.transaction.amount, currency_code, use_color=False),
            format_money(issue.check.difference, currency_code),
            status,
        )
    return table


def display_issues(
    issues: list[ContributionIssue],
    categories: list[Category],
    subcategories: list[Subcategory],
    currency_code: str,
):
    """Display unbalanced transactions, one table per category."""
    grouped = group_issues_by_category(issues, subcategories, categories)

    sections = [(cat.name, grouped[cat.id]) for cat in categories if cat.id in grouped]
    if None in grouped:
        sections.append((NO_CATEGORY_TITLE, grouped[None]))

    for name, group in sections:
        console.print()
        console.print(_issue_table(f"▸ {name}", group, currency_code))
        console.print(
            f"  {len(group)} issues, missing "
            f"{format_money(total_missing_amount(group), currency_code)}"
        )

    console.print(
        f"\n  Missing amount: "
        f"{format_money(total_missing_amount(issues), currency_code)}"
    )


@app.command()
def show(
    category: str | None = typer.Argument(
        None, help="Category name (prompts when omitted)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Show balances and the transfers that settle a category.
    """
    with cli_session(verbose) as (settings, db):
        service = SettlementService(settings, db)

        if category is None:
            category_id = select_category_interactive(db.get_categories())
            if category_id is None:
                console.print("[yellow]No category selected.[/yellow]")
                return
        else:
            found = db.find_category_by_name(category)
            if found is None:
                console.print(f"[yellow]No category named '{category}'.[/yellow]")
                sys.exit(1)
            category_id = found.id

        console.print("\n[bold blue]Computing settlement...[/bold blue]")
        settlement = service.settle_category(category_id)
        display_settlement(settlement, settings.currency_code)


@app.command()
def issues(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    List expense transactions whose contributions don't match their total.
    """
    with cli_session(verbose) as (settings, db):
        service = SettlementService(settings, db)
        found = service.contribution_issues()

        if not found:
            console.print("[green]✓ All contributions match their totals[/green]")
            return

        display_issues(
            found, db.get_categories(), db.get_subcategories(), settings.currency_code
        )


@app.command()
def fix(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Repair contribution issues.

    Transactions without contributions are assigned to the default payer;
    other mismatches are spread evenly across existing contributions.
    """
    with cli_session(verbose) as (settings, db):
        service = SettlementService(settings, db)
        found = service.contribution_issues()

        if not found:
            console.print("[green]✓ Nothing to fix[/green]")
            return

        display_issues(
            found, db.get_categories(), db.get_subcategories(), settings.currency_code
        )

        if not yes and not confirm_action(
            f"\nRepair {len(found)} transactions?"
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        fixed = service.fix_contribution_issues()
        console.print(f"\n[bold green]✓ Fixed {fixed} transactions[/bold green]")
        if fixed < len(found):
            console.print(
                f"[yellow]{len(found) - fixed} transactions need manual "
                f"attention[/yellow]"
            )


@app.command()
def cleanup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Remove deleted or duplicated payers from category payer assignments.
    """
    with cli_session(verbose) as (settings, db):
        service = SettlementService(settings, db)
        removed = service.cleanup_assigned_payers()

        if not removed:
            console.print("[green]✓ Assigned payer lists are clean[/green]")
            return

        for category_id, count in removed.items():
            name = db.get_category(category_id).name
            console.print(f"  {name}: removed {count} stale payer ids")
        console.print("\n[bold green]✓ Cleanup complete[/bold green]")
