"""CLI error handling helpers."""

import click

from rentledger.domain.entities import JobRun, JobStatus
from rentledger.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def report_job_run(ctx: click.Context, job_run: JobRun) -> None:
    """Print a job run's counts, exiting with failure if the job failed."""
    click.echo(f"{job_run.job_type.value} run {job_run.id}: {job_run.status.value}")
    for key, value in job_run.counts.items():
        if isinstance(value, list):
            for item in value:
                click.echo(f"  ! {item}")
            continue
        click.echo(f"  {key.replace('_', ' ')}: {value}")
    for error in job_run.errors:
        click.echo(f"Error: {error}", err=True)
    if job_run.status is JobStatus.FAILED:
        ctx.exit(1)
