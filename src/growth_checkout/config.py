"""
Settings for the checkout pipeline.

Read from ~/.growth/config.json, with GROWTH_* environment variables taking
precedence over the file.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from growth_checkout.transport.http import DEFAULT_BASE_URL

CONFIG_FILE = Path.home() / ".growth" / "config.json"

ENV_OVERRIDES = {
    "GROWTH_API_URL": "base_url",
    "GROWTH_ACCESS_TOKEN": "access_token",
    "GROWTH_PAYSTACK_PUBLIC_KEY": "public_key",
    "GROWTH_STATE_FILE": "state_file",
}


class CheckoutSettings(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    access_token: Optional[str] = None
    public_key: Optional[str] = None
    state_file: Optional[str] = None
    confirm_timeout: float = 10.0
    settle_delay: float = 1.5
    redirect_delay: float = 2.0
    poll_attempts: int = 3
    poll_interval: float = 2.0
    currency: str = "ZAR"
    channels: list[str] = Field(default_factory=lambda: ["card", "bank", "ussd", "mobile_money"])
    label: str = "72X Subscription"
    reference_prefix: str = "ref"
    dashboard_path: str = "/dashboard"
    package_picker_path: str = "/select-package"


def _load_config(path: Optional[Path] = None) -> dict[str, Any]:
    try:
        return json.loads((path or CONFIG_FILE).read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict[str, Any], path: Optional[Path] = None) -> None:
    path = path or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))


def load_settings(path: Optional[Path] = None, env: Optional[dict[str, str]] = None) -> CheckoutSettings:
    env = os.environ if env is None else env
    cfg = _load_config(path)
    for var, field in ENV_OVERRIDES.items():
        if env.get(var):
            cfg[field] = env[var]
    return CheckoutSettings.model_validate(cfg)
