"""Scheduled job commands."""

import click
from rentledger.domain.auditor import IntegrityAuditor
from rentledger.domain.errors import DomainError
from rentledger.domain.jobs import run_audit, run_bank_sync, run_bill_split, run_notification_check
from rentledger.domain.ports import JsonFileBankFeed, JsonFileNotificationSource, LoggingNotifier
from rentledger.domain.splitter import BillSplitterService
from rentledger.utils.date_parser import parse_datetime
from rentledger.cli.error_handling import handle_domain_error, report_job_run


def _check_period(ctx, month: int | None, year: int | None) -> None:
    if (month is None) != (year is None):
        click.echo("Error: --month and --year must be given together.", err=True)
        ctx.exit(1)


@click.command("sync-bank")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--since", help="Only import transactions on or after this date")
@click.pass_context
def sync_bank(ctx, file: str, since: str | None) -> None:
    """Import bank transactions from a JSON export and classify them.

    Examples:
        rentledger sync-bank transactions.json
        rentledger sync-bank transactions.json --since 2025-03-01
    """
    db = ctx.obj["db"]
    job_run = run_bank_sync(db, JsonFileBankFeed(file), cursor=since)
    report_job_run(ctx, job_run)


@click.command("split-bills")
@click.option("--month", type=click.IntRange(1, 12), help="Billing month (requires --year)")
@click.option("--year", type=int, help="Billing year (requires --month)")
@click.option("--notify/--no-notify", default=True, help="Deliver created requests")
@click.pass_context
def split_bills(ctx, month: int | None, year: int | None, notify: bool) -> None:
    """Create payment requests for utility bills that have none yet.

    Also issues the monthly rent request when rent is configured.
    """
    _check_period(ctx, month, year)
    db = ctx.obj["db"]
    notifier = LoggingNotifier() if notify else None
    job_run = run_bill_split(db, ctx.obj["settings"], notifier=notifier, month=month, year=year)
    report_job_run(ctx, job_run)


@click.command("rent-requests")
@click.option("--month", type=click.IntRange(1, 12), required=True, help="Billing month")
@click.option("--year", type=int, required=True, help="Billing year")
@click.pass_context
def rent_requests(ctx, month: int, year: int) -> None:
    """Create the rent request for one month."""
    service = BillSplitterService(ctx.obj["db"], ctx.obj["settings"], LoggingNotifier())
    try:
        result = service.create_rent_requests(month, year)
    except DomainError as e:
        handle_domain_error(ctx, e)
    if result.created:
        click.echo(f"Created rent request {result.created[0]} for {year}-{month:02d}")
    else:
        click.echo(f"Rent request for {year}-{month:02d} already exists")


@click.command("check-notifications")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--since", help="Only read messages received at or after this time")
@click.pass_context
def check_notifications(ctx, file: str, since: str | None) -> None:
    """Ingest payment notifications from a JSON export and match them.

    Examples:
        rentledger check-notifications inbox.json
    """
    since_at = None
    if since:
        try:
            since_at = parse_datetime(since)
        except ValueError as e:
            click.echo(f"Error: Invalid --since: {e}", err=True)
            ctx.exit(1)
    db = ctx.obj["db"]
    job_run = run_notification_check(db, ctx.obj["settings"], JsonFileNotificationSource(file), since=since_at)
    report_job_run(ctx, job_run)


@click.command("audit")
@click.option("--dry-run", is_flag=True, help="Only report issues, do not repair")
@click.pass_context
def audit(ctx, dry_run: bool) -> None:
    """Find and repair integrity issues."""
    db = ctx.obj["db"]
    settings = ctx.obj["settings"]
    if dry_run:
        report = IntegrityAuditor(db, settings).scan()
        for key, value in report.as_counts().items():
            click.echo(f"{key.replace('_', ' ')}: {value}")
        click.echo(f"total: {report.total}")
        return
    report_job_run(ctx, run_audit(db, settings))


def register_commands(cli: click.Group) -> None:
    """Register job commands with main CLI."""
    cli.add_command(sync_bank)
    cli.add_command(split_bills)
    cli.add_command(rent_requests)
    cli.add_command(check_notifications)
    cli.add_command(audit)
