"""Shared fakes: a gateway that records popups, a script host and backend routes."""

import json
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

from growth_checkout.gateway.loader import GLOBAL_NAME, GatewayLoader
from growth_checkout.models.subscription import SelectedPackage
from growth_checkout.store import InMemoryAccountStore
from growth_checkout.transport.http import HttpClient

BASE_URL = "http://backend.test/api"


class FakePopup:
    def __init__(self, gateway: "FakeGateway", config: dict[str, Any]):
        self._gateway = gateway
        self.config = config
        self.opened = False

    def open_iframe(self) -> None:
        self.opened = True
        self._gateway.opened += 1

    def succeed(self, reference: Optional[str] = None) -> None:
        self.config["callback"]({"status": "success", "reference": reference or self.config["ref"]})

    def report(self, status: str) -> None:
        self.config["callback"]({"status": status, "reference": self.config["ref"]})

    def close(self) -> None:
        self.config["onClose"]()


class FakeGateway:
    def __init__(self) -> None:
        self.popups: list[FakePopup] = []
        self.opened = 0

    def setup(self, config: dict[str, Any]) -> FakePopup:
        popup = FakePopup(self, config)
        self.popups.append(popup)
        return popup

    @property
    def last(self) -> FakePopup:
        return self.popups[-1]


class FakeScriptHost:
    def __init__(self, gateway: Optional[FakeGateway] = None, fail: bool = False, preloaded: bool = False):
        self.gateway = gateway or FakeGateway()
        self.fail = fail
        self.globals: dict[str, Any] = {GLOBAL_NAME: self.gateway} if preloaded else {}
        self.scripts: list[str] = []
        self.injections = 0

    def has_global(self, name: str) -> bool:
        return name in self.globals

    def get_global(self, name: str) -> Any:
        return self.globals[name]

    def has_script(self, src: str) -> bool:
        return src in self.scripts

    async def inject_script(self, src: str) -> None:
        self.injections += 1
        self.scripts.append(src)
        if self.fail:
            raise OSError("script error event")
        self.globals[GLOBAL_NAME] = self.gateway

    def remove_script(self, src: str) -> None:
        self.scripts.remove(src)


class Backend:
    """Route table for httpx.MockTransport; handlers get the request and return a Response."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], Any]] = {}
        self.calls: list[tuple[str, str]] = []

    def on(self, method: str, path: str, handler: Callable[[httpx.Request], Any]) -> None:
        self.routes[(method, path)] = handler

    def json(self, method: str, path: str, body: Any, status: int = 200) -> None:
        self.on(method, path, lambda request: httpx.Response(status, json=body))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        self.calls.append((request.method, path))
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"message": f"no route {request.method} {path}"})
        result = handler(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    def called(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def http(backend: Backend) -> HttpClient:
    return HttpClient(base_url=BASE_URL, token="tok_123", transport=backend.transport())


@pytest.fixture
def package() -> SelectedPackage:
    return SelectedPackage(
        id="essential-monthly",
        name="Essential",
        price=499.00,
        currency="ZAR",
        interval="month",
        backendType="ESSENTIAL",
    )


@pytest.fixture
def store(package: SelectedPackage) -> InMemoryAccountStore:
    return InMemoryAccountStore({
        "authToken": "tok_123",
        "user": {"id": "u1", "email": "founder@example.com", "status": "PENDING_PAYMENT"},
        "userStatus": "PENDING_PAYMENT",
        "selectedPackage": package.model_dump(by_alias=True, mode="json"),
        "requiresPackageSelection": "false",
        "tempPassword": "s3cret",
        "tempEmail": "founder@example.com",
    })


@pytest.fixture
def host() -> FakeScriptHost:
    return FakeScriptHost()


@pytest_asyncio.fixture
async def loader(host: FakeScriptHost) -> GatewayLoader:
    loader = GatewayLoader(host)
    await loader.ensure_loaded()
    return loader
