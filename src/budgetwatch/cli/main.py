"""Main CLI entry point."""

import logging

import click
from budgetwatch.database.factories import create_sqlite_repository, create_state_store

# Import and register all commands at module level
from budgetwatch.cli.commands import (
    actions,
    balance,
    notification,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides BUDGETWATCH_DB_PATH environment variable)",
    envvar="BUDGETWATCH_DB_PATH",
)
@click.option(
    "--state-path",
    type=click.Path(),
    help="Path to balance state cache (overrides BUDGETWATCH_STATE_PATH environment variable)",
    envvar="BUDGETWATCH_STATE_PATH",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path: str | None, state_path: str | None, verbose: bool):
    """Budgetwatch - Household budget alerting.

    Inspect and replay notification actions, and drive the balance-risk
    toast state machine for a household.
    """
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    # Initialize storage only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        repository = create_sqlite_repository(database_path=db_path)
        repository.connect()
        repository.initialize_schema()
        ctx.call_on_close(repository.disconnect)
        ctx.obj["repository"] = repository
        ctx.obj["state_store"] = create_state_store(state_path=state_path)


# Register all commands
notification.register_commands(cli)
actions.register_commands(cli)
balance.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
