"""
growth-checkout CLI.

Commands:
  growth-checkout auth login|status|logout     Manage the saved access token
  growth-checkout payments verify <reference>  Ask the backend about a payment
  growth-checkout account show|activate        Inspect or reconcile cached account state
  growth-checkout account package|select|change|cancel|trial
                                               Manage the subscription plan
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install growth-checkout[cli]")

from growth_checkout.client import AsyncCheckout
from growth_checkout.config import _load_config, _save_config, load_settings
from growth_checkout.store import DEFAULT_STATE_FILE, JsonFileAccountStore

console = Console()


def _get_client() -> AsyncCheckout:
    settings = load_settings()
    store = JsonFileAccountStore(settings.state_file or DEFAULT_STATE_FILE)
    if not settings.access_token and not store.token():
        console.print("[red]Not logged in. Run `growth-checkout auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncCheckout.from_settings(settings, store=store)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log pipeline activity to stderr")
def main(verbose: bool):
    """growth-checkout: verify payments and reconcile subscriptions."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# Register subcommands from separate modules
from growth_checkout.cli.auth import auth
from growth_checkout.cli.payments import payments
from growth_checkout.cli.account import account

main.add_command(auth)
main.add_command(payments)
main.add_command(account)


if __name__ == "__main__":
    main()
