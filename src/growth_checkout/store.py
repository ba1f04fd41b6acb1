"""
Local account state.

The cached account record is a single slot shared with the rest of the
application. Writers always replace the whole record; nothing patches it in
place. Keys mirror the ones the web app keeps in browser storage so a cache
file can be shared with it.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from growth_checkout.models.subscription import AccountRecord, SelectedPackage

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = Path.home() / ".growth" / "state.json"

TOKEN_KEY = "authToken"
USER_KEY = "user"
USER_STATUS_KEY = "userStatus"
USER_EMAIL_KEY = "userEmail"
SELECTED_PACKAGE_KEY = "selectedPackage"
REQUIRES_PACKAGE_KEY = "requiresPackageSelection"
TEMP_CREDENTIAL_KEYS = ("tempPassword", "tempEmail")

PENDING_ACTIVATION_KEYS = (REQUIRES_PACKAGE_KEY, SELECTED_PACKAGE_KEY) + TEMP_CREDENTIAL_KEYS


class AccountStateStore(Protocol):
    def get(self) -> Optional[AccountRecord]: ...

    def set(self, record: AccountRecord) -> None: ...

    def token(self) -> Optional[str]: ...

    def email(self) -> Optional[str]: ...

    def selected_package(self) -> Optional[SelectedPackage]: ...

    def clear_pending_activation(self) -> None: ...


class _KeyValueStore:
    """Shared logic over a flat key/value mapping of JSON-compatible values."""

    def _read(self) -> dict[str, Any]:
        raise NotImplementedError

    def _write(self, data: dict[str, Any]) -> None:
        raise NotImplementedError

    def get(self) -> Optional[AccountRecord]:
        raw = self._read().get(USER_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return AccountRecord.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Ignoring unreadable cached account record")
            return None

    def set(self, record: AccountRecord) -> None:
        data = self._read()
        data[USER_KEY] = record.to_cache()
        if record.status:
            data[USER_STATUS_KEY] = record.status
        self._write(data)

    def token(self) -> Optional[str]:
        return self._read().get(TOKEN_KEY)

    def set_token(self, token: Optional[str]) -> None:
        data = self._read()
        if token:
            data[TOKEN_KEY] = token
        else:
            data.pop(TOKEN_KEY, None)
        self._write(data)

    def email(self) -> Optional[str]:
        data = self._read()
        user = data.get(USER_KEY)
        if isinstance(user, dict) and user.get("email"):
            return user["email"]
        return data.get(USER_EMAIL_KEY)

    def selected_package(self) -> Optional[SelectedPackage]:
        raw = self._read().get(SELECTED_PACKAGE_KEY)
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                return None
        if not isinstance(raw, dict):
            return None
        try:
            return SelectedPackage.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Ignoring unreadable cached package selection")
            return None

    def set_selected_package(self, package: SelectedPackage) -> None:
        data = self._read()
        data[SELECTED_PACKAGE_KEY] = package.model_dump(by_alias=True, mode="json")
        self._write(data)

    def clear_pending_activation(self) -> None:
        data = self._read()
        for key in PENDING_ACTIVATION_KEYS:
            data.pop(key, None)
        self._write(data)

    def snapshot(self) -> dict[str, Any]:
        return dict(self._read())


class InMemoryAccountStore(_KeyValueStore):
    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def _read(self) -> dict[str, Any]:
        return dict(self._data)

    def _write(self, data: dict[str, Any]) -> None:
        self._data = dict(data)


class JsonFileAccountStore(_KeyValueStore):
    def __init__(self, path: Path = DEFAULT_STATE_FILE):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self._path.read_text())
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
