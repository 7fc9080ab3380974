"""Replay rule evaluator action batches."""

import json

import click

from budgetwatch.cli.error_handling import handle_domain_error
from budgetwatch.domain.actions import ActionExecutor, action_from_dict
from budgetwatch.domain.errors import ValidationError
from budgetwatch.domain.notification import NotificationService
from budgetwatch.utils.date_parser import parse_date


@click.command("apply")
@click.argument("tenant")
@click.argument("actions_file", type=click.File("r"))
@click.option(
    "--date",
    "reference_date",
    help="Reference date for dedupe time buckets (e.g., '2025-01-15', 'today'). Defaults to today.",
)
@click.pass_context
def apply_actions(ctx, tenant: str, actions_file, reference_date: str | None):
    """Execute the JSON action batch in ACTIONS_FILE for TENANT.

    ACTIONS_FILE holds a JSON list of actions ("-" reads stdin):

    \b
        [
          {"type": "CREATE", "payload": {"eventType": "MONTH_AT_RISK",
           "entityType": "month", "messageKey": "notifications.messages.month_at_risk",
           "severity": "action"}},
          {"type": "ARCHIVE", "eventType": "PAYMENT_DELAYED",
           "referenceId": "overdue_payments"}
        ]

    A failing action is reported and the rest of the batch still runs.
    """
    try:
        day = parse_date(reference_date) if reference_date else None
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)

    try:
        raw = json.load(actions_file)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON in actions file: {e}", err=True)
        ctx.exit(1)

    if not isinstance(raw, list):
        raw = [raw]

    try:
        actions = [action_from_dict(item) for item in raw]
    except ValidationError as e:
        handle_domain_error(ctx, e)

    executor = ActionExecutor(NotificationService(ctx.obj["repository"]))
    batch = executor.execute(tenant, actions, reference_date=day)

    for index, result in enumerate(batch.results, start=1):
        line = f"{index:3d}. {type(result.action).__name__:14s} -> {result.kind}"
        if result.notification_id is not None:
            line += f" (ID: {result.notification_id})"
        if result.error:
            line += f": {result.error}"
        click.echo(line)

    click.echo(
        f"\n{batch.created} created, {batch.updated} updated, {batch.skipped} skipped, "
        f"{batch.archived} archived, {batch.failed} failed"
    )
    if batch.failed:
        ctx.exit(1)


def register_commands(cli):
    """Register action commands with main CLI."""
    cli.add_command(apply_actions)
