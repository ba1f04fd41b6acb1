"""
AsyncCheckout / Checkout: wiring for the payment activation pipeline.
"""

import asyncio
from typing import Any, Optional

import httpx

from growth_checkout.config import CheckoutSettings
from growth_checkout.errors import GatewayUnavailable
from growth_checkout.gateway.loader import GatewayLoader, ScriptHost
from growth_checkout.gateway.session import DEFAULT_CHANNELS, DEFAULT_LABEL, PaymentSessionController
from growth_checkout.models.payment import PaymentRecord
from growth_checkout.models.subscription import AccountRecord, SelectedPackage
from growth_checkout.orchestrator import Navigate, PaymentOrchestrator
from growth_checkout.reconciler import ActivationResult, SubscriptionReconciler
from growth_checkout.store import AccountStateStore, InMemoryAccountStore, JsonFileAccountStore
from growth_checkout.subscriptions import SubscriptionsAPI, UsersAPI
from growth_checkout.transport.http import DEFAULT_BASE_URL, HttpClient
from growth_checkout.verification import VerificationClient


class AsyncCheckout:
    """Async checkout client (primary)."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        public_key: Optional[str] = None,
        *,
        store: Optional[AccountStateStore] = None,
        script_host: Optional[ScriptHost] = None,
        confirm_timeout: float = 10.0,
        settle_delay: float = 1.5,
        redirect_delay: float = 2.0,
        poll_attempts: int = 3,
        poll_interval: float = 2.0,
        channels: tuple[str, ...] = DEFAULT_CHANNELS,
        label: str = DEFAULT_LABEL,
        reference_prefix: str = "ref",
        dashboard_path: str = "/dashboard",
        package_picker_path: str = "/select-package",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store if store is not None else InMemoryAccountStore()
        self.http = HttpClient(base_url=base_url, token=access_token or self.store.token(), transport=transport)
        self.subscriptions = SubscriptionsAPI(self.http)
        self.users = UsersAPI(self.http)
        self.verification = VerificationClient(self.http)
        self.reconciler = SubscriptionReconciler(
            self.subscriptions, self.users, self.store, confirm_timeout=confirm_timeout,
        )

        self.loader: Optional[GatewayLoader] = GatewayLoader(script_host) if script_host is not None else None
        self.payments: Optional[PaymentSessionController] = None
        if self.loader is not None:
            self.payments = PaymentSessionController(
                self.loader, public_key,
                channels=channels, label=label, reference_prefix=reference_prefix,
            )

        self._settle_delay = settle_delay
        self._redirect_delay = redirect_delay
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._dashboard_path = dashboard_path
        self._package_picker_path = package_picker_path

    @classmethod
    def from_settings(cls, settings: CheckoutSettings, **kwargs: Any) -> "AsyncCheckout":
        if "store" not in kwargs and settings.state_file:
            kwargs["store"] = JsonFileAccountStore(settings.state_file)
        return cls(
            access_token=settings.access_token,
            base_url=settings.base_url,
            public_key=settings.public_key,
            confirm_timeout=settings.confirm_timeout,
            settle_delay=settings.settle_delay,
            redirect_delay=settings.redirect_delay,
            poll_attempts=settings.poll_attempts,
            poll_interval=settings.poll_interval,
            channels=tuple(settings.channels),
            label=settings.label,
            reference_prefix=settings.reference_prefix,
            dashboard_path=settings.dashboard_path,
            package_picker_path=settings.package_picker_path,
            **kwargs,
        )

    async def verify(self, reference: str) -> PaymentRecord:
        return await self.verification.verify(reference)

    async def activate(self, package: SelectedPackage) -> ActivationResult:
        return await self.reconciler.activate(package)

    def account(self) -> Optional[AccountRecord]:
        return self.store.get()

    async def orchestrator(self, navigate: Navigate, package: Optional[SelectedPackage] = None) -> PaymentOrchestrator:
        """Build a page controller, loading the gateway script first."""
        if self.loader is None or self.payments is None:
            raise GatewayUnavailable("No script host configured for the payment gateway")
        await self.loader.ensure_loaded()
        page = PaymentOrchestrator(
            self.payments, self.verification, self.reconciler, self.store,
            navigate=navigate,
            settle_delay=self._settle_delay,
            redirect_delay=self._redirect_delay,
            poll_attempts=self._poll_attempts,
            poll_interval=self._poll_interval,
            dashboard_path=self._dashboard_path,
            package_picker_path=self._package_picker_path,
        )
        page.load(package)
        return page

    async def close(self) -> None:
        if self.loader is not None:
            self.loader.teardown()
        await self.http.close()

    async def __aenter__(self) -> "AsyncCheckout":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


class Checkout:
    """Sync wrapper around AsyncCheckout. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = self._loop.run_until_complete(self._build(kwargs))

    @staticmethod
    async def _build(kwargs: dict[str, Any]) -> AsyncCheckout:
        return AsyncCheckout(**kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def store(self) -> AccountStateStore:
        return self._async.store

    def verify(self, reference: str) -> PaymentRecord:
        return self._run(self._async.verify(reference))

    def activate(self, package: SelectedPackage) -> ActivationResult:
        return self._run(self._async.activate(package))

    def account(self) -> Optional[AccountRecord]:
        return self._async.account()

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
