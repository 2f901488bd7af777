"""Payment request and payment event commands."""

import click
from datetime import datetime, time
from rentledger.domain.entities import BillType, RequestStatus
from rentledger.domain.errors import DomainError
from rentledger.domain.matcher import MatcherService
from rentledger.utils.amount_parser import format_amount
from rentledger.utils.date_parser import parse_date
from rentledger.cli.error_handling import handle_domain_error


@click.group()
def requests_group():
    """Manage payment requests."""
    pass


@requests_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in RequestStatus]),
    multiple=True,
    help="Only show requests with this status (repeatable)",
)
@click.option("--bill-type", type=click.Choice([t.value for t in BillType]), help="Only show this bill type")
@click.option("--tracking-id", help="Only show requests with this tracking id")
@click.pass_context
def list_requests(ctx, status: tuple[str, ...], bill_type: str | None, tracking_id: str | None) -> None:
    """List payment requests, newest first."""
    db = ctx.obj["db"]
    requests = db.list_payment_requests(
        statuses=[RequestStatus(s) for s in status] if status else None,
        bill_types=[BillType(bill_type)] if bill_type else None,
        tracking_id=tracking_id,
    )
    if not requests:
        click.echo("No payment requests found.")
        return

    click.echo(f"{'ID':<6} {'Tracking ID':<22} {'Participant':<20} {'Amount':>12} {'Status':<10} Paid")
    click.echo("-" * 90)
    for request in requests:
        paid = request.paid_date.strftime("%Y-%m-%d") if request.paid_date else ""
        click.echo(
            f"{request.id:<6} {request.tracking_id:<22} {request.participant[:20]:<20} "
            f"{format_amount(request.amount):>12} {request.status.value:<10} {paid}"
        )


@requests_group.command("mark-paid")
@click.argument("request_id", type=int)
@click.option("--date", "paid_on", help="Date the payment arrived (default: now)")
@click.pass_context
def mark_paid(ctx, request_id: int, paid_on: str | None) -> None:
    """Mark a request paid and record the income.

    Examples:
        rentledger requests mark-paid 12
        rentledger requests mark-paid 12 --date 2025-03-20
    """
    paid_date = None
    if paid_on:
        try:
            paid_date = datetime.combine(parse_date(paid_on), time())
        except ValueError as e:
            click.echo(f"Error: Invalid date format: {e}", err=True)
            ctx.exit(1)

    matcher = MatcherService(ctx.obj["db"], ctx.obj["settings"])
    try:
        request = matcher.mark_paid(request_id, paid_date=paid_date)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Marked request {request.id} ({request.tracking_id}, {request.participant}) as paid")


@requests_group.command("mark-sent")
@click.argument("request_id", type=int)
@click.pass_context
def mark_sent(ctx, request_id: int) -> None:
    """Record that a pending request was delivered."""
    matcher = MatcherService(ctx.obj["db"], ctx.obj["settings"])
    try:
        request = matcher.mark_sent(request_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Marked request {request.id} as sent")


@requests_group.command("forego")
@click.argument("request_id", type=int)
@click.pass_context
def forego(ctx, request_id: int) -> None:
    """Stop collecting an open request."""
    matcher = MatcherService(ctx.obj["db"], ctx.obj["settings"])
    try:
        request = matcher.forego(request_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Request {request.id} foregone")


@requests_group.command("undo")
@click.argument("request_id", type=int)
@click.pass_context
def undo(ctx, request_id: int) -> None:
    """Return a paid or foregone request to pending.

    Removes the income and expense adjustment recorded for the request.
    """
    matcher = MatcherService(ctx.obj["db"], ctx.obj["settings"])
    try:
        request = matcher.undo(request_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Request {request.id} is {request.status.value} again")


@click.group()
def events_group():
    """Inspect payment notifications."""
    pass


@events_group.command("list")
@click.option("--unmatched", is_flag=True, help="Only show events not matched to a request")
@click.pass_context
def list_events(ctx, unmatched: bool) -> None:
    """List payment events, oldest first."""
    db = ctx.obj["db"]
    events = db.list_payment_events(matched=False if unmatched else None)
    if not events:
        click.echo("No payment events found.")
        return

    for event in events:
        amount = format_amount(event.amount) if event.amount is not None else "?"
        kind = event.type.value if event.type else "unrecognized"
        state = f"-> request {event.payment_request_id}" if event.matched else "unmatched"
        click.echo(f"{event.id:<6} {event.occurred_at:%Y-%m-%d} {kind:<17} {amount:>12} {event.actor or '':<20} {state}")
        if event.review_reason:
            click.echo(f"       review: {event.review_reason}")


@events_group.command("match")
@click.argument("event_id", type=int)
@click.pass_context
def match_event(ctx, event_id: int) -> None:
    """Try to match one payment event now."""
    matcher = MatcherService(ctx.obj["db"], ctx.obj["settings"])
    try:
        request = matcher.match_event(event_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Matched event {event_id} to request {request.id} ({request.tracking_id})")


def register_commands(cli: click.Group) -> None:
    """Register request and event commands with main CLI."""
    cli.add_command(requests_group, name="requests")
    cli.add_command(events_group, name="events")
