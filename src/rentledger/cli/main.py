"""Main CLI entry point.

Each periodic job and manual action is one command, so an external
scheduler (cron, systemd timers) can drive the whole pipeline.
"""

import click
from rentledger.config import load_settings
from rentledger.database.factories import create_sqlite_database
from rentledger.domain.errors import ValidationError
from rentledger.logging_setup import setup_logging

# Import and register all commands at module level
from rentledger.cli.commands import jobs, ledger, requests, status
from rentledger.cli.error_handling import handle_domain_error


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides RENTLEDGER_DB_PATH environment variable)",
    envvar="RENTLEDGER_DB_PATH",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=".env",
    show_default=True,
    help="Settings file loaded before reading the environment",
)
@click.pass_context
def cli(ctx, db_path: str | None, env_file: str):
    """rentledger - Rent and utility bill tracking for a shared house.

    Splits utility bills among roommates, issues payment requests and
    reconciles them against payment notifications and bank activity.
    """
    ctx.ensure_object(dict)

    # Initialize settings and database only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            settings = load_settings(env_file)
        except ValidationError as e:
            handle_domain_error(ctx, e)
        setup_logging(settings.log_level, settings.log_file)

        db = create_sqlite_database(database_path=db_path or settings.database_path)
        db.connect()
        db.initialize_schema()
        ctx.call_on_close(db.disconnect)
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings


# Register all commands
jobs.register_commands(cli)
requests.register_commands(cli)
ledger.register_commands(cli)
status.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
