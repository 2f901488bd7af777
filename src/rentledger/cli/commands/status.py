"""Status command."""

import click
from rentledger.domain.status import StatusService


@click.command("status")
@click.pass_context
def status(ctx) -> None:
    """Show what needs attention: review queue, integrity issues, last job runs."""
    report = StatusService(ctx.obj["db"], ctx.obj["settings"]).get_status()

    click.echo(f"Status: {report.overall}")
    click.echo()
    click.echo(f"Open requests:        {report.open_requests}")
    click.echo(f"Unmatched payments:   {report.unmatched_events}")
    click.echo(f"Needing review:       {report.needs_review}")
    click.echo()
    click.echo("Integrity issues:")
    for key, value in report.integrity.as_counts().items():
        click.echo(f"    {key.replace('_', ' '):<24} {value}")
    click.echo()
    click.echo("Last runs:")
    for job_type, run in report.last_runs.items():
        if run is None:
            click.echo(f"    {job_type.value:<24} never")
        else:
            click.echo(f"    {job_type.value:<24} {run.status.value} at {run.started_at:%Y-%m-%d %H:%M}")


def register_commands(cli: click.Group) -> None:
    """Register status command with main CLI."""
    cli.add_command(status)
