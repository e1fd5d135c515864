"""CLI for NoMoneyLa."""

import re
from datetime import date
from decimal import Decimal, InvalidOperation

import typer
from rich.table import Table

from .db import Database
from .exceptions import InvalidRecordError
from .models import Category, Contribution, Payer, Subcategory, Transaction
from .settle.cli import app as settle_app
from .settle.cli import cli_session, console, format_money
from .settle.rounding import quantize_amount
from .settle.validator import validate_contribution

app = typer.Typer(
    name="nomoneyla",
    help="Shared expense ledger with debt settlement",
)
payer_app = typer.Typer(help="Manage payers")
category_app = typer.Typer(help="Manage categories")
subcategory_app = typer.Typer(help="Manage subcategories")
transaction_app = typer.Typer(help="Record and list transactions")

app.add_typer(payer_app, name="payer")
app.add_typer(category_app, name="category")
app.add_typer(subcategory_app, name="subcategory")
app.add_typer(transaction_app, name="transaction")
app.add_typer(settle_app, name="settle", help="Debt settlement")

HEX_COLOR = re.compile(r"#[0-9A-Fa-f]{6}")


def parse_amount(value: str) -> Decimal:
    """Parse a user-entered amount into a cent-quantized Decimal."""
    try:
        amount = Decimal(value.strip().replace(",", ""))
    except InvalidOperation as e:
        raise InvalidRecordError(f"'{value}' is not a valid amount") from e
    if not amount.is_finite():
        raise InvalidRecordError(f"'{value}' is not a valid amount")
    return quantize_amount(amount)


def parse_name(value: str) -> str:
    """Trim a user-entered name and reject blank ones."""
    name = value.strip()
    if not name:
        raise InvalidRecordError("Name cannot be empty")
    return name


def parse_color(value: str | None) -> str | None:
    """Validate a #RRGGBB color."""
    if value is None:
        return None
    if not HEX_COLOR.fullmatch(value):
        raise InvalidRecordError(f"'{value}' is not a #RRGGBB color")
    return value


def resolve_payer(db: Database, name: str) -> Payer:
    """Find a payer by name or fail with a readable error."""
    payer = db.find_payer_by_name(name)
    if payer is None:
        raise InvalidRecordError(f"No payer named '{name}'")
    return payer


def resolve_category(db: Database, name: str) -> Category:
    """Find a category by name or fail with a readable error."""
    category = db.find_category_by_name(name)
    if category is None:
        raise InvalidRecordError(f"No category named '{name}'")
    return category


def resolve_subcategory(
    db: Database, category: Category, name: str | None
) -> Subcategory:
    """Find a subcategory of a category; None selects its default entry."""
    subcategories = db.get_subcategories(parent_id=category.id)
    for sub in subcategories:
        if name is None and sub.is_default:
            return sub
        if name is not None and sub.name.lower() == name.lower():
            return sub
    raise InvalidRecordError(
        f"No subcategory '{name or 'default'}' in category '{category.name}'"
    )


# ============================================================================
# Payers
# ============================================================================


@payer_app.command("add")
def payer_add(
    name: str = typer.Argument(..., help="Display name"),
    color: str | None = typer.Option(None, "--color", help="Hex color, e.g. #3498db"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a payer. A taken name gets a " - 2", " - 3", ... suffix."""
    with cli_session(verbose) as (_settings, db):
        payer = db.save_payer(
            Payer(
                name=db.unique_payer_name(parse_name(name)),
                order=db.next_payer_order(),
                color_hex=parse_color(color),
            )
        )
        console.print(f"[green]✓ Added payer {payer.name}[/green]")


@payer_app.command("list")
def payer_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List payers in display order."""
    with cli_session(verbose) as (_settings, db):
        table = Table(title="Payers", show_header=True, header_style="bold magenta")
        table.add_column("#", style="dim", width=4)
        table.add_column("Name", style="cyan")
        table.add_column("Color", style="dim")
        for payer in db.get_payers():
            name = f"{payer.name} (default)" if payer.is_default else payer.name
            table.add_row(str(payer.order), name, payer.color_hex or "—")
        console.print(table)


@payer_app.command("rename")
def payer_rename(
    name: str = typer.Argument(..., help="Current name"),
    new_name: str = typer.Argument(..., help="New name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rename a payer."""
    with cli_session(verbose) as (_settings, db):
        payer = resolve_payer(db, name)
        renamed = db.rename_payer(payer.id, parse_name(new_name))
        console.print(f"[green]✓ Renamed {payer.name} to {renamed.name}[/green]")


@payer_app.command("color")
def payer_color(
    name: str = typer.Argument(..., help="Payer name"),
    color: str = typer.Argument(..., help="Hex color, e.g. #3498db"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Change a payer's color."""
    with cli_session(verbose) as (_settings, db):
        payer = resolve_payer(db, name)
        updated = db.set_payer_color(payer.id, parse_color(color))
        console.print(f"[green]✓ {updated.name} is now {updated.color_hex}[/green]")


@payer_app.command("move")
def payer_move(
    name: str = typer.Argument(..., help="Payer name"),
    position: int = typer.Argument(..., help="New position (0 = first)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Move a payer within the display order."""
    with cli_session(verbose) as (_settings, db):
        payer = resolve_payer(db, name)
        ordered = db.move_payer(payer.id, position)
        console.print(
            f"[green]✓ Order: {', '.join(p.name for p in ordered)}[/green]"
        )


@payer_app.command("delete")
def payer_delete(
    name: str = typer.Argument(..., help="Payer name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a payer and their contributions (transactions are kept)."""
    with cli_session(verbose) as (_settings, db):
        payer = resolve_payer(db, name)
        removed = db.delete_payer(payer.id)
        console.print(
            f"[green]✓ Deleted {payer.name} ({removed} contributions removed)[/green]"
        )


# ============================================================================
# Categories
# ============================================================================


@category_app.command("add")
def category_add(
    name: str = typer.Argument(..., help="Category name"),
    color: str | None = typer.Option(None, "--color", help="Hex color"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a category (with its default Uncategorized subcategory)."""
    with cli_session(verbose) as (_settings, db):
        if db.find_category_by_name(name):
            raise InvalidRecordError(f"A category named '{name}' already exists")
        category = db.save_category(
            Category(
                name=name, order=db.next_category_order(), color_hex=parse_color(color)
            )
        )
        console.print(f"[green]✓ Added category {category.name}[/green]")


@category_app.command("list")
def category_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List categories with their subcategories and assigned payers."""
    with cli_session(verbose) as (_settings, db):
        payer_names = {p.id: p.name for p in db.get_payers()}

        table = Table(title="Categories", show_header=True, header_style="bold magenta")
        table.add_column("Category", style="cyan")
        table.add_column("Subcategories")
        table.add_column("Assigned Payers", style="yellow")
        for category in db.get_categories():
            subs = ", ".join(s.name for s in db.get_subcategories(category.id))
            assigned = ", ".join(
                payer_names.get(pid, "[dim]<deleted>[/dim]")
                for pid in category.assigned_payer_ids
            )
            table.add_row(category.name, subs, assigned or "[dim]auto[/dim]")
        console.print(table)


@category_app.command("assign")
def category_assign(
    category: str = typer.Argument(..., help="Category name"),
    payers: list[str] = typer.Argument(None, help="Payer names (none = automatic)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Set the payers who share a category's costs."""
    with cli_session(verbose) as (_settings, db):
        target = resolve_category(db, category)
        payer_ids = [resolve_payer(db, name).id for name in payers or []]
        db.set_assigned_payer_ids(target.id, payer_ids)
        if payer_ids:
            console.print(
                f"[green]✓ {target.name} is shared by {', '.join(payers)}[/green]"
            )
        else:
            console.print(f"[green]✓ {target.name} participants are automatic[/green]")


@category_app.command("rename")
def category_rename(
    category: str = typer.Argument(..., help="Current name"),
    new_name: str = typer.Argument(..., help="New name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rename a category."""
    with cli_session(verbose) as (_settings, db):
        target = resolve_category(db, category)
        db.rename_category(target.id, new_name)
        console.print(f"[green]✓ Renamed {category} to {new_name}[/green]")


@category_app.command("delete")
def category_delete(
    category: str = typer.Argument(..., help="Category name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a category; its transactions become uncategorized."""
    with cli_session(verbose) as (_settings, db):
        target = resolve_category(db, category)
        count = db.delete_category(target.id)
        console.print(
            f"[green]✓ Deleted {target.name} ({count} transactions uncategorized)"
            f"[/green]"
        )


# ============================================================================
# Subcategories
# ============================================================================


@subcategory_app.command("add")
def subcategory_add(
    category: str = typer.Argument(..., help="Parent category name"),
    name: str = typer.Argument(..., help="Subcategory name"),
    color: str | None = typer.Option(None, "--color", help="Hex color"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a subcategory under a category."""
    with cli_session(verbose) as (_settings, db):
        parent = resolve_category(db, category)
        existing = db.get_subcategories(parent_id=parent.id)
        if any(s.name.lower() == name.lower() for s in existing):
            raise InvalidRecordError(f"'{name}' already exists in {parent.name}")
        db.save_subcategory(
            Subcategory(
                name=name,
                parent_id=parent.id,
                order=max((s.order for s in existing), default=-1) + 1,
                color_hex=parse_color(color),
            )
        )
        console.print(f"[green]✓ Added {parent.name} > {name}[/green]")


@subcategory_app.command("rename")
def subcategory_rename(
    category: str = typer.Argument(..., help="Parent category name"),
    name: str = typer.Argument(..., help="Current subcategory name"),
    new_name: str = typer.Argument(..., help="New name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rename a subcategory (the default entry can't be renamed)."""
    with cli_session(verbose) as (_settings, db):
        parent = resolve_category(db, category)
        sub = resolve_subcategory(db, parent, name)
        db.rename_subcategory(sub.id, parse_name(new_name))
        console.print(
            f"[green]✓ Renamed {parent.name} > {sub.name} to {new_name}[/green]"
        )


@subcategory_app.command("delete")
def subcategory_delete(
    category: str = typer.Argument(..., help="Parent category name"),
    name: str = typer.Argument(..., help="Subcategory name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a subcategory; its transactions become uncategorized."""
    with cli_session(verbose) as (_settings, db):
        parent = resolve_category(db, category)
        sub = resolve_subcategory(db, parent, name)
        count = db.delete_subcategory(sub.id)
        console.print(
            f"[green]✓ Deleted {parent.name} > {sub.name} "
            f"({count} transactions uncategorized)[/green]"
        )


# ============================================================================
# Transactions
# ============================================================================


@transaction_app.command("add")
def transaction_add(
    amount: str = typer.Argument(..., help="Total amount"),
    category: str | None = typer.Option(None, "--category", "-c", help="Category"),
    subcategory: str | None = typer.Option(
        None, "--subcategory", "-s", help="Subcategory (default: Uncategorized)"
    ),
    paid: list[str] = typer.Option(
        None, "--paid", "-p", help="Contribution as NAME=AMOUNT (repeatable)"
    ),
    shared_by: list[str] = typer.Option(
        None, "--shared-by", help="Payer sharing the cost (repeatable)"
    ),
    income: bool = typer.Option(False, "--income", help="Record as income"),
    on: str | None = typer.Option(None, "--date", help="Date (YYYY-MM-DD)"),
    note: str | None = typer.Option(None, "--note", "-n", help="Note"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record a transaction.

    Without --paid, the default payer is credited with the full amount.
    """
    with cli_session(verbose) as (settings, db):
        subcategory_id = None
        if category is not None:
            parent = resolve_category(db, category)
            subcategory_id = resolve_subcategory(db, parent, subcategory).id

        try:
            tx_date = date.fromisoformat(on) if on else date.today()
        except ValueError as e:
            raise InvalidRecordError(f"'{on}' is not a valid date") from e

        transaction = Transaction(
            amount=parse_amount(amount),
            date=tx_date,
            note=note,
            type="income" if income else "expense",
            currency_code=settings.currency_code,
            subcategory_id=subcategory_id,
            participant_ids=[resolve_payer(db, n).id for n in shared_by or []],
        )

        if paid:
            for entry in paid:
                name, sep, value = entry.rpartition("=")
                if not sep or not name:
                    raise InvalidRecordError(f"Expected NAME=AMOUNT, got '{entry}'")
                contribution_amount = parse_amount(value)
                if contribution_amount < 0:
                    raise InvalidRecordError(f"Contribution '{entry}' is negative")
                transaction.contributions.append(
                    Contribution(
                        amount=contribution_amount,
                        payer_id=resolve_payer(db, name).id,
                        transaction_id=transaction.id,
                    )
                )
        elif not income:
            default_payer = db.ensure_default_payer()
            transaction.contributions.append(
                Contribution(
                    amount=transaction.amount,
                    payer_id=default_payer.id,
                    transaction_id=transaction.id,
                )
            )

        db.save_transaction(transaction)

        check = validate_contribution(
            transaction, settings.tolerance, settings.warning_limit
        )
        total = format_money(transaction.amount, settings.currency_code)
        console.print(f"[green]✓ Recorded {total}[/green]")
        if check.status != "balanced":
            console.print(
                f"[yellow]⚠️  Contributions are {check.status.replace('_', ' ')} "
                f"(difference {check.difference})[/yellow]"
            )


@transaction_app.command("list")
def transaction_list(
    category: str | None = typer.Option(None, "--category", "-c", help="Category"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List transactions, newest first."""
    with cli_session(verbose) as (settings, db):
        payer_names = {p.id: p.name for p in db.get_payers()}
        sub_names = {s.id: s.name for s in db.get_subcategories()}

        subcategory_ids = None
        if category is not None:
            parent = resolve_category(db, category)
            subcategory_ids = [s.id for s in db.get_subcategories(parent.id)]

        table = Table(
            title="Transactions", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim", width=8)
        table.add_column("Date", width=10)
        table.add_column("Note", style="cyan", width=24)
        table.add_column("Subcategory", style="yellow")
        table.add_column("Amount", justify="right", width=16)
        table.add_column("Paid By")
        table.add_column("", width=2)

        for tx in db.get_transactions(subcategory_ids=subcategory_ids):
            check = validate_contribution(
                tx, settings.tolerance, settings.warning_limit
            )
            paid_by = ", ".join(
                f"{payer_names.get(c.payer_id, '?')} {c.amount}"
                for c in tx.contributions
            )
            amount = tx.amount if tx.type == "income" else -tx.amount
            flag = {"valid": "", "warning": "⚠️", "error": "❌"}[check.severity]
            table.add_row(
                tx.id[:8],
                tx.date.isoformat(),
                tx.note or "",
                sub_names.get(tx.subcategory_id or "", "[dim]—[/dim]"),
                format_money(amount, tx.currency_code),
                paid_by,
                flag,
            )
        console.print(table)


@transaction_app.command("delete")
def transaction_delete(
    transaction_id: str = typer.Argument(..., help="Transaction ID or unique prefix"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a transaction and its contributions."""
    with cli_session(verbose) as (_settings, db):
        matches = [t for t in db.get_transactions() if t.id.startswith(transaction_id)]
        if len(matches) != 1:
            raise InvalidRecordError(
                f"'{transaction_id}' matches {len(matches)} transactions"
            )
        db.delete_transaction(matches[0].id)
        console.print(f"[green]✓ Deleted transaction {matches[0].id[:8]}[/green]")


if __name__ == "__main__":
    app()
