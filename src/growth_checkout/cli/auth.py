"""CLI: growth-checkout auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

console = Console()


def _load_config() -> dict:
    from growth_checkout.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from growth_checkout.cli.main import _save_config
    _save_config(cfg)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--token", default=None, help="Bearer token issued by the backend")
@click.option("--base-url", default=None, help="Backend API base URL")
@click.option("--public-key", default=None, help="Payment gateway public key")
def auth_login(token: Optional[str], base_url: Optional[str], public_key: Optional[str]):
    """Save an access token for later commands."""
    cfg = _load_config()
    token = token or click.prompt("Access token", hide_input=True)
    cfg["access_token"] = token
    if base_url:
        cfg["base_url"] = base_url
    if public_key:
        cfg["public_key"] = public_key
    _save_config(cfg)
    console.print("[green]Token saved to ~/.growth/config.json[/green]")


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("access_token"):
        console.print(f"[green]Logged in[/green] against {cfg.get('base_url', 'default backend')}")
    else:
        console.print("[yellow]Not logged in. Run `growth-checkout auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    cfg = _load_config()
    cfg.pop("access_token", None)
    _save_config(cfg)
    console.print("[green]Logged out.[/green]")
