"""Notification inspection and management commands."""

import click

from budgetwatch.cli.error_handling import exit_on_domain_error
from budgetwatch.domain.entities import Notification
from budgetwatch.domain.notification import NotificationService
from budgetwatch.domain.precedence import summarize


def format_notification(notification: Notification) -> str:
    """Format a notification as a single list line."""
    return (
        f"ID: {notification.id:3d} | {notification.severity.value:7s} | "
        f"{notification.status.value:8s} | {notification.event_type} | {notification.dedupe_key}"
    )


@click.group()
def notification_group():
    """Inspect and manage notifications."""
    pass


@notification_group.command("list")
@click.argument("tenant")
@click.option("--all", "include_archived", is_flag=True, help="Include archived notifications")
@click.option("--raw", is_flag=True, help="Do not apply precedence rules")
@click.pass_context
def list_notifications(ctx, tenant: str, include_archived: bool, raw: bool):
    """List notifications for TENANT.

    By default only open notifications are listed, with lower-priority alerts
    hidden when a higher-priority alert about the same cash-flow problem is
    open. Archived notifications are never filtered.

    Examples:
        budgetwatch notification list household-1
        budgetwatch notification list household-1 --all
    """
    service = NotificationService(ctx.obj["repository"])

    with exit_on_domain_error(ctx):
        if include_archived or raw:
            notifications = service.list_notifications(tenant, include_archived=include_archived)
        else:
            notifications = service.list_visible(tenant)

    if not notifications:
        click.echo("No notifications found.")
        return

    click.echo(f"\nNotifications for {tenant}:")
    click.echo("-" * 80)
    for item in notifications:
        click.echo(format_notification(item))


@notification_group.command("summary")
@click.argument("tenant")
@click.pass_context
def show_summary(ctx, tenant: str):
    """Show unread counters for TENANT (precedence applied)."""
    service = NotificationService(ctx.obj["repository"])

    with exit_on_domain_error(ctx):
        summary = summarize(service.list_notifications(tenant))

    highest = summary.highest_severity.value if summary.highest_severity else "none"
    click.echo(f"Unread:           {summary.unread_count}")
    click.echo(f"Action:           {summary.action_count}")
    click.echo(f"Warning:          {summary.warning_count}")
    click.echo(f"Info:             {summary.info_count}")
    click.echo(f"Highest severity: {highest} ({summary.dominant_count})")


@notification_group.command("read")
@click.argument("tenant")
@click.argument("notification_id", type=int)
@click.pass_context
def mark_read(ctx, tenant: str, notification_id: int):
    """Mark notification NOTIFICATION_ID of TENANT as read."""
    service = NotificationService(ctx.obj["repository"])

    with exit_on_domain_error(ctx):
        service.mark_as_read(tenant, notification_id)
    click.echo(f"Marked notification {notification_id} as read")


@notification_group.command("dismiss")
@click.argument("tenant")
@click.argument("notification_id", type=int)
@click.pass_context
def dismiss(ctx, tenant: str, notification_id: int):
    """Dismiss notification NOTIFICATION_ID of TENANT."""
    service = NotificationService(ctx.obj["repository"])

    with exit_on_domain_error(ctx):
        service.dismiss(tenant, notification_id)
    click.echo(f"Dismissed notification {notification_id}")


@notification_group.command("archive")
@click.argument("tenant")
@click.argument("event_type")
@click.argument("reference_id")
@click.pass_context
def archive(ctx, tenant: str, event_type: str, reference_id: str):
    """Archive open EVENT_TYPE notifications of TENANT for REFERENCE_ID.

    Examples:
        budgetwatch notification archive household-1 PAYMENT_DELAYED overdue_payments
    """
    service = NotificationService(ctx.obj["repository"])

    with exit_on_domain_error(ctx):
        count = service.archive_by_reference(tenant, event_type, reference_id)
    click.echo(f"Archived {count} notification{'s' if count != 1 else ''}")


@notification_group.command("archive-prefix")
@click.argument("tenant")
@click.argument("prefix")
@click.pass_context
def archive_prefix(ctx, tenant: str, prefix: str):
    """Archive open notifications of TENANT whose dedupe key starts with PREFIX.

    Examples:
        budgetwatch notification archive-prefix household-1 "MONTH_AT_RISK:month:"
    """
    service = NotificationService(ctx.obj["repository"])

    with exit_on_domain_error(ctx):
        count = service.archive_by_dedupe_prefix(tenant, prefix)
    click.echo(f"Archived {count} notification{'s' if count != 1 else ''}")


def register_commands(cli):
    """Register notification commands with main CLI."""
    cli.add_command(notification_group, name="notification")
