"""CLI: growth-checkout account show|activate|package|select|change|cancel|trial"""

import json
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console

from growth_checkout.errors import CheckoutError, VerificationError
from growth_checkout.models.subscription import AccountStatus, PlanType, SelectedPackage

console = Console()

PLAN_CHOICE = click.Choice([p.value for p in PlanType], case_sensitive=False)


def _get_client():
    from growth_checkout.cli.main import _get_client
    return _get_client()


def _run(coro):
    from growth_checkout.cli.main import _run
    return _run(coro)


def _call(method: str, *args: Any) -> Any:
    """Run one SubscriptionsAPI method and close the client."""

    async def _go():
        client = _get_client()
        try:
            return await getattr(client.subscriptions, method)(*args)
        except CheckoutError as e:
            console.print(f"[red]{e.code}: {e.message}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()

    return _run(_go())


def _echo(data: Any) -> None:
    if isinstance(data, (dict, list)):
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(str(data))


@click.group()
def account():
    """Cached account state and subscription plan."""


@account.command("show")
def account_show():
    """Print the cached account record."""
    client = _get_client()
    record = client.account()
    _run(client.close())
    if record is None:
        console.print("[yellow]No cached account.[/yellow]")
        return
    colour = "green" if record.status == AccountStatus.ACTIVE.value else "yellow"
    console.print(f"[{colour}]{record.status or 'UNKNOWN'}[/{colour}]")
    click.echo(json.dumps(record.to_cache(), indent=2))


@account.command("activate")
@click.argument("reference")
@click.option("--package-file", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
              help="JSON file with the purchased package; defaults to the cached selection")
def account_activate(reference: str, package_file: Optional[Path]):
    """Reconcile the account after the payment REFERENCE verifies as succeeded."""

    async def _activate():
        client = _get_client()
        try:
            if package_file is not None:
                package = SelectedPackage.model_validate_json(package_file.read_text())
            else:
                package = client.store.selected_package()
            if package is None:
                console.print("[red]No package selected. Pass --package-file.[/red]")
                raise SystemExit(1)
            with console.status("Verifying payment..."):
                try:
                    record = await client.verify(reference)
                except VerificationError as e:
                    console.print(f"[red]{e.code}: {e.message}[/red]")
                    raise SystemExit(1)
            if not record.succeeded:
                console.print(f"[red]Payment {reference} is {record.status.value}; account not activated.[/red]")
                raise SystemExit(1)
            with console.status(f"Activating {package.name}..."):
                result = await client.activate(package)
        finally:
            await client.close()
        colour = "green" if result.path.value == "confirmed" else "yellow"
        console.print(f"[{colour}]Account {result.record.status} via {result.path.value} path[/{colour}]")
        if result.overridden:
            console.print("[yellow]Backend status was stale and has been overridden locally.[/yellow]")

    _run(_activate())


@account.command("package")
def account_package():
    """Show the package the backend has on record."""
    data = _call("my_package")
    if data is None:
        console.print("[yellow]No package selected.[/yellow]")
        return
    _echo(data)


@account.command("select")
@click.argument("plan", type=PLAN_CHOICE)
def account_select(plan: str):
    """Select a PLAN before paying for it."""
    _echo(_call("select_package", PlanType(plan.upper())))


@account.command("change")
@click.argument("plan", type=PLAN_CHOICE)
def account_change(plan: str):
    """Switch the current subscription to PLAN."""
    _echo(_call("update", PlanType(plan.upper())))


@account.command("cancel")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def account_cancel(yes: bool):
    """Cancel the current subscription."""
    if not yes:
        click.confirm("Cancel the current subscription?", abort=True)
    _echo(_call("cancel"))


@account.group("trial")
def trial():
    """Free trial."""


@trial.command("status")
def trial_status():
    _echo(_call("free_trial_status"))


@trial.command("eligibility")
def trial_eligibility():
    """Check whether the account may start a free trial."""
    _echo(_call("free_trial_eligibility"))


@trial.command("activate")
@click.argument("plan", type=PLAN_CHOICE)
def trial_activate(plan: str):
    _echo(_call("activate_free_trial", PlanType(plan.upper())))
