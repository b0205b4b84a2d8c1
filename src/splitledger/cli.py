"""CLI for SplitLedger using Typer."""

import logging
import sys
from uuid import uuid4

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .db import Database
from .models import Expense, Settlement, SplitResult, SplitStrategy, Transaction
from .money import format_amount, percent_to_basis_points, to_minor_units
from .service import LedgerService

app = typer.Typer(
    name="splitledger",
    help="Track shared group expenses and plan the fewest payments to settle up",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def parse_shares(
    raw_shares: list[str], strategy: SplitStrategy, digits: int
) -> dict[str, int] | None:
    """
    Parse ``member=value`` pairs into integer shares.

    EXACT values are currency amounts (converted to minor units);
    PERCENTAGE values are percents (converted to basis points).
    """
    if strategy is SplitStrategy.EQUAL:
        return None

    shares: dict[str, int] = {}
    for raw in raw_shares:
        member, sep, value = raw.partition("=")
        if not sep or not member.strip():
            raise typer.BadParameter(f"Share must look like member=value, got '{raw}'")
        if strategy is SplitStrategy.EXACT:
            shares[member.strip()] = to_minor_units(value, digits)
        else:
            shares[member.strip()] = percent_to_basis_points(value)
    return shares


def format_money(amount: int, settings: Settings, use_color: bool = True) -> str:
    """Format minor units, red when negative and green when positive."""
    text = format_amount(amount, settings.currency_code, settings.minor_unit_digits)
    if not use_color or amount == 0:
        return text
    color = "red" if amount < 0 else "green"
    return f"[{color}]{text}[/{color}]"


def display_split(split: SplitResult, settings: Settings):
    """Display a split result in a table."""
    table = Table(
        title=f"Split for {split.expense_id}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Member", style="cyan")
    table.add_column("Owes", justify="right")
    table.add_column("Note", style="dim")

    for member, owed in split.shares.items():
        note = "payer" if member == split.payer else ""
        table.add_row(member, format_money(owed, settings, use_color=False), note)

    console.print(table)
    console.print(
        f"  Total: {format_money(split.total_amount, settings, use_color=False)} "
        f"paid by [bold]{split.payer}[/bold]"
    )


def display_plan(transactions: list[Transaction], settings: Settings):
    """Display a settlement plan in a table."""
    if not transactions:
        console.print("[green]✓ Everyone is settled up.[/green]")
        return

    table = Table(title="Settlement Plan", show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right")

    for i, transaction in enumerate(transactions, start=1):
        table.add_row(
            str(i),
            transaction.from_member,
            transaction.to_member,
            format_money(transaction.amount, settings, use_color=False),
        )

    console.print(table)


def _build_expense(
    settings: Settings,
    expense_id: str,
    amount: str,
    payer: str,
    participants: list[str],
    strategy: SplitStrategy,
    shares: list[str],
    description: str,
) -> Expense:
    return Expense(
        id=expense_id,
        payer=payer,
        total_amount=to_minor_units(amount, settings.minor_unit_digits),
        strategy=strategy,
        participants=participants,
        shares=parse_shares(shares, strategy, settings.minor_unit_digits),
        description=description,
    )


def _fail(e: Exception, verbose: bool):
    console.print(f"\n[bold red]Error:[/bold red] {e}")
    if verbose:
        raise e
    sys.exit(1)


@app.command("add-expense")
def add_expense(
    group: str = typer.Argument(..., help="Group id"),
    amount: str = typer.Argument(..., help="Total amount, e.g. 12.34"),
    payer: str = typer.Option(..., "--payer", help="Member who paid"),
    participants: list[str] = typer.Option(
        ..., "--participant", "-p", help="Participant (repeat, order matters)"
    ),
    strategy: SplitStrategy = typer.Option(
        SplitStrategy.EQUAL, "--strategy", "-s", help="How to split the total"
    ),
    shares: list[str] = typer.Option(
        [], "--share", help="member=value for exact/percentage splits (repeat)"
    ),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    expense_id: str | None = typer.Option(None, "--id", help="Expense id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a new expense and show how it was split."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        expense = _build_expense(
            settings,
            expense_id or uuid4().hex[:12],
            amount,
            payer,
            participants,
            strategy,
            shares,
            description,
        )
        split = service.add_expense(group, expense)

        display_split(split, settings)
        console.print(f"\n[bold green]✓ Recorded expense {expense.id}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("edit-expense")
def edit_expense(
    group: str = typer.Argument(..., help="Group id"),
    expense_id: str = typer.Argument(..., help="Expense id"),
    amount: str = typer.Argument(..., help="New total amount"),
    payer: str = typer.Option(..., "--payer", help="Member who paid"),
    participants: list[str] = typer.Option(
        ..., "--participant", "-p", help="Participant (repeat, order matters)"
    ),
    strategy: SplitStrategy = typer.Option(
        SplitStrategy.EQUAL, "--strategy", "-s", help="How to split the total"
    ),
    shares: list[str] = typer.Option(
        [], "--share", help="member=value for exact/percentage splits (repeat)"
    ),
    description: str = typer.Option("", "--description", "-d", help="Description"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Replace an existing expense and re-split it."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        expense = _build_expense(
            settings,
            expense_id,
            amount,
            payer,
            participants,
            strategy,
            shares,
            description,
        )
        split = service.edit_expense(group, expense)

        display_split(split, settings)
        console.print(f"\n[bold green]✓ Updated expense {expense.id}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("delete-expense")
def delete_expense(
    group: str = typer.Argument(..., help="Group id"),
    expense_id: str = typer.Argument(..., help="Expense id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense and retract its balances."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        service.delete_expense(group, expense_id)
        console.print(f"[bold green]✓ Deleted expense {expense_id}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def settle(
    group: str = typer.Argument(..., help="Group id"),
    from_member: str = typer.Argument(..., help="Member who paid"),
    to_member: str = typer.Argument(..., help="Member who received"),
    amount: str = typer.Argument(..., help="Amount paid, e.g. 12.34"),
    note: str | None = typer.Option(None, "--note", help="Optional note"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a real-world payment between two members."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        settlement = Settlement(
            from_member=from_member,
            to_member=to_member,
            amount=to_minor_units(amount, settings.minor_unit_digits),
            note=note,
        )
        service.record_settlement(group, settlement)

        console.print(
            f"[bold green]✓ Recorded settlement {settlement.id}:[/bold green] "
            f"{from_member} → {to_member} "
            f"{format_money(settlement.amount, settings, use_color=False)}"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command("delete-settlement")
def delete_settlement(
    group: str = typer.Argument(..., help="Group id"),
    settlement_id: str = typer.Argument(..., help="Settlement id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a recorded settlement."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        service.delete_settlement(group, settlement_id)
        console.print(f"[bold green]✓ Deleted settlement {settlement_id}[/bold green]")

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def expenses(
    group: str = typer.Argument(..., help="Group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a group's expenses and settlements."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        table = Table(title="Expenses", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Payer")
        table.add_column("Split")
        table.add_column("Amount", justify="right")
        for expense in service.list_expenses(group):
            desc = expense.description
            table.add_row(
                expense.id,
                desc[:30] + "..." if len(desc) > 30 else desc,
                expense.payer,
                f"{expense.strategy.value} ({len(expense.participants)})",
                format_money(expense.total_amount, settings, use_color=False),
            )
        console.print(table)

        table = Table(title="Settlements", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Amount", justify="right")
        for settlement in service.list_settlements(group):
            table.add_row(
                settlement.id,
                settlement.from_member,
                settlement.to_member,
                format_money(settlement.amount, settings, use_color=False),
            )
        console.print(table)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def groups(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List every group with recorded activity."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        group_ids = service.list_groups()
        if not group_ids:
            console.print("[yellow]No groups found.[/yellow]")
            return

        table = Table(title="Groups", show_header=True, header_style="bold magenta")
        table.add_column("Group", style="cyan")
        table.add_column("Status")
        for group_id in group_ids:
            settled = service.get_ledger(group_id).is_settled()
            table.add_row(
                group_id,
                "[green]settled[/green]" if settled else "[yellow]open[/yellow]",
            )
        console.print(table)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def balances(
    group: str = typer.Argument(..., help="Group id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show who owes whom, and each member's overall position."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        pairs = service.get_balances(group)
        if not pairs:
            console.print("[green]✓ No outstanding balances.[/green]")
            return

        table = Table(title="Who Owes Whom", show_header=True, header_style="bold magenta")
        table.add_column("Debtor", style="cyan")
        table.add_column("Creditor", style="cyan")
        table.add_column("Amount", justify="right")
        for pair in pairs:
            # positive: member_b owes member_a
            if pair.amount > 0:
                debtor, creditor = pair.member_b, pair.member_a
            else:
                debtor, creditor = pair.member_a, pair.member_b
            table.add_row(
                debtor, creditor, format_money(abs(pair.amount), settings, False)
            )
        console.print(table)

        table = Table(title="Positions", show_header=True, header_style="bold magenta")
        table.add_column("Member", style="cyan")
        table.add_column("Net", justify="right")
        for position in service.get_positions(group):
            table.add_row(position.member, format_money(position.amount, settings))
        console.print(table)

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def plan(
    group: str = typer.Argument(..., help="Group id"),
    exact: bool = typer.Option(
        False, "--exact", help="Use the exact minimal solver for small groups"
    ),
    apply: bool = typer.Option(
        False, "--apply", help="Record the plan's payments as settlements"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Compute the fewest payments that settle the group."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = LedgerService(settings, db)

        transactions = service.plan_settlement(group, exact=exact)
        display_plan(transactions, settings)

        if not apply or not transactions:
            return

        if not yes and not typer.confirm("\nRecord these payments as settlements?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        recorded = service.apply_plan(group, transactions)
        console.print(
            f"\n[bold green]✓ Recorded {len(recorded)} settlements[/bold green]"
        )

    except Exception as e:
        _fail(e, verbose)
    finally:
        if "db" in locals():
            db.close()


if __name__ == "__main__":
    app()
