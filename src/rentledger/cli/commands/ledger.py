"""Ledger viewing commands."""

import click
from rentledger.domain.entities import EntryType, LedgerBasis, SummaryPeriod
from rentledger.domain.errors import DomainError
from rentledger.domain.ledger import LedgerService
from rentledger.utils.amount_parser import format_amount
from rentledger.cli.date_filters import period_options, resolve_cli_date_range
from rentledger.cli.error_handling import handle_domain_error


@click.group()
def ledger_group():
    """View income and expenses."""
    pass


@ledger_group.command("list")
@period_options
@click.option("--type", "entry_type", type=click.Choice([t.value for t in EntryType]), help="Only income or expenses")
@click.option("--search", help="Text to look for in descriptions, categories and payers")
@click.option("--basis", type=click.Choice([b.value for b in LedgerBasis]), default="accrual", show_default=True)
@click.option("--limit", type=click.IntRange(min=0), help="Maximum number of entries to show")
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Number of entries to skip")
@click.option("--oldest-first", is_flag=True, help="Show oldest entries first")
@click.option("--include-other", is_flag=True, help="Include expenses classified as 'other'")
@click.pass_context
def list_entries(
    ctx,
    start_date: str | None,
    end_date: str | None,
    this_month: bool,
    last_month: bool,
    this_year: bool,
    last_year: bool,
    entry_type: str | None,
    search: str | None,
    basis: str,
    limit: int | None,
    offset: int,
    oldest_first: bool,
    include_other: bool,
) -> None:
    """List ledger entries with a running balance.

    Examples:
        rentledger ledger list --this-year
        rentledger ledger list --type income --basis cash
        rentledger ledger list --search electricity --limit 20
    """
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-month": this_month,
            "last-month": last_month,
            "this-year": this_year,
            "last-year": last_year,
        },
    )
    service = LedgerService(ctx.obj["db"])
    try:
        page = service.get_feed(
            start_date=start,
            end_date=end,
            entry_type=EntryType(entry_type) if entry_type else None,
            search=search,
            limit=limit,
            offset=offset,
            basis=LedgerBasis(basis),
            newest_first=not oldest_first,
            include_other=include_other,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not page.entries:
        click.echo("No ledger entries found.")
        return

    click.echo(f"{'Date':<12} {'Type':<8} {'Category':<22} {'Description':<32} {'Amount':>12} {'Balance':>12}")
    click.echo("-" * 104)
    for entry in page.entries:
        description = (entry.description or "")[:32]
        click.echo(
            f"{entry.date.isoformat():<12} {entry.entry_type.value:<8} {entry.category:<22} "
            f"{description:<32} {format_amount(entry.signed_amount):>12} {format_amount(entry.running_balance):>12}"
        )
    click.echo("-" * 104)
    shown_to = page.offset + len(page.entries)
    click.echo(f"Showing {page.offset + 1}-{shown_to} of {page.total_count}")
    click.echo(f"Income:   {format_amount(page.totals.total_income)}")
    click.echo(f"Expenses: {format_amount(page.totals.total_expenses)}")
    click.echo(f"Net:      {format_amount(page.totals.net)}")


@ledger_group.command("summary")
@period_options
@click.option(
    "--period",
    type=click.Choice([p.value for p in SummaryPeriod]),
    default="month",
    show_default=True,
    help="Bucket size",
)
@click.option("--basis", type=click.Choice([b.value for b in LedgerBasis]), default="accrual", show_default=True)
@click.option("--include-other", is_flag=True, help="Include expenses classified as 'other'")
@click.pass_context
def summary(
    ctx,
    start_date: str | None,
    end_date: str | None,
    this_month: bool,
    last_month: bool,
    this_year: bool,
    last_year: bool,
    period: str,
    basis: str,
    include_other: bool,
) -> None:
    """Show income and expenses per period and category."""
    start, end = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-month": this_month,
            "last-month": last_month,
            "this-year": this_year,
            "last-year": last_year,
        },
    )
    service = LedgerService(ctx.obj["db"])
    try:
        buckets = service.get_summary(
            start_date=start,
            end_date=end,
            period=SummaryPeriod(period),
            basis=LedgerBasis(basis),
            include_other=include_other,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not buckets:
        click.echo("No ledger entries found.")
        return

    for i, bucket in enumerate(buckets):
        if i:
            click.echo()
        click.echo(bucket.period_key)
        for category, amount in sorted(bucket.income_by_category.items()):
            click.echo(f"    {'+ ' + category:<40} {format_amount(amount):>14}")
        for category, amount in sorted(bucket.expenses_by_category.items()):
            click.echo(f"    {'- ' + category:<40} {format_amount(amount):>14}")
        click.echo(f"    {'Net':<40} {format_amount(bucket.net):>14}")


def register_commands(cli: click.Group) -> None:
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group, name="ledger")
