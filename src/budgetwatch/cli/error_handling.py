"""CLI error handling helpers."""

from contextlib import contextmanager
from typing import Iterator

import click

from budgetwatch.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


@contextmanager
def exit_on_domain_error(ctx: click.Context) -> Iterator[None]:
    """Turn domain errors raised inside the block into a CLI failure.

    Repository and state store failures on direct commands are not batched,
    so they reach the user here.
    """
    try:
        yield
    except DomainError as error:
        handle_domain_error(ctx, error)
