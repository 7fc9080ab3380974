"""Balance-risk toast state commands."""

import click

from budgetwatch.cli.error_handling import exit_on_domain_error
from budgetwatch.domain.balance_state import BalanceStateMachine
from budgetwatch.utils.amount_parser import parse_amount
from budgetwatch.utils.date_parser import parse_month


def _resolve_month(ctx, month: str) -> str:
    try:
        return parse_month(month)
    except ValueError as e:
        click.echo(f"Error: Invalid month: {e}", err=True)
        ctx.exit(1)


@click.group()
def balance_group():
    """Drive the balance-risk toast state machine."""
    pass


@balance_group.command("observe")
@click.argument("tenant")
@click.argument("month")
@click.argument("projected_balance")
@click.pass_context
def observe(ctx, tenant: str, month: str, projected_balance: str):
    """Feed PROJECTED_BALANCE for TENANT and MONTH, printing any transition toast.

    Use "--" before negative balances so they are not read as options.

    Examples:
        budgetwatch balance observe household-1 2025-01 150.00
        budgetwatch balance observe household-1 "this month" -- -20
    """
    month_key = _resolve_month(ctx, month)
    try:
        amount = parse_amount(projected_balance)
    except ValueError as e:
        click.echo(f"Error: Invalid balance: {e}", err=True)
        ctx.exit(1)

    machine = BalanceStateMachine(ctx.obj["state_store"])
    with exit_on_domain_error(ctx):
        toast = machine.observe(tenant, month_key, amount)
        state = machine.current_state(tenant, month_key)

    if toast is None:
        click.echo(f"State for {tenant} {month_key}: {state.value} (no toast)")
        return
    click.echo(f"State for {tenant} {month_key}: {state.value}")
    click.echo(f"Toast [{toast.kind.value}]: {toast.title_key}")


@balance_group.command("show")
@click.argument("tenant")
@click.argument("month")
@click.pass_context
def show(ctx, tenant: str, month: str):
    """Show the stored balance state for TENANT and MONTH."""
    month_key = _resolve_month(ctx, month)
    machine = BalanceStateMachine(ctx.obj["state_store"])

    state = machine.current_state(tenant, month_key)
    if state is None:
        click.echo(f"No balance state stored for {tenant} {month_key}")
        return
    click.echo(f"State for {tenant} {month_key}: {state.value}")


@balance_group.command("reset")
@click.argument("tenant", required=False)
@click.argument("month", required=False)
@click.option("--all", "reset_all", is_flag=True, help="Forget every stored state")
@click.pass_context
def reset(ctx, tenant: str | None, month: str | None, reset_all: bool):
    """Forget the stored state for TENANT and MONTH, or every state with --all."""
    machine = BalanceStateMachine(ctx.obj["state_store"])

    if reset_all:
        with exit_on_domain_error(ctx):
            machine.reset_all()
        click.echo("Cleared all balance states")
        return

    if tenant is None or month is None:
        click.echo("Error: TENANT and MONTH are required unless --all is given.", err=True)
        ctx.exit(1)

    month_key = _resolve_month(ctx, month)
    with exit_on_domain_error(ctx):
        machine.reset(tenant, month_key)
    click.echo(f"Cleared balance state for {tenant} {month_key}")


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(balance_group, name="balance")
