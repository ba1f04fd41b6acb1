"""CLI: growth-checkout payments verify"""

import json

import click
from rich.console import Console
from rich.table import Table

from growth_checkout.errors import VerificationError

console = Console()


def _get_client():
    from growth_checkout.cli.main import _get_client
    return _get_client()


def _run(coro):
    from growth_checkout.cli.main import _run
    return _run(coro)


@click.group()
def payments():
    """Payment verification."""


@payments.command("verify")
@click.argument("reference")
@click.option("--retries", default=1, type=int, help="Attempts when the backend is unreachable")
@click.option("--json-output", "--json", is_flag=True)
def payments_verify(reference, retries, json_output):
    """Verify a gateway REFERENCE with the backend."""

    async def _verify():
        client = _get_client()
        try:
            with console.status("Verifying payment..."):
                record = await client.verification.verify_with_retry(reference, attempts=max(retries, 1))
        except VerificationError as e:
            console.print(f"[red]{e.code}: {e.message}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()

        if json_output:
            click.echo(json.dumps(record.model_dump(mode="json"), indent=2))
            return
        table = Table(title=f"Payment {reference}")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Status", record.status.value)
        table.add_row("Amount", f"{record.amount} {record.currency}")
        table.add_row("Channel", record.channel or "")
        table.add_row("Verified at", record.verified_at or "")
        if record.failure_message:
            table.add_row("Failure", record.failure_message)
        console.print(table)

    _run(_verify())
