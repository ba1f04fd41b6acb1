"""
Gateway script loader.

The payment gateway ships as a script that installs a global handle
(``PaystackPop``) into the hosting page. The loader makes sure the script is
injected at most once per mount and reports whether the handle is usable.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

import httpx

from growth_checkout.errors import GatewayUnavailable

INLINE_SCRIPT_URL = "https://js.paystack.co/v1/inline.js"
GLOBAL_NAME = "PaystackPop"

logger = logging.getLogger(__name__)


class ScriptHost(Protocol):
    """The environment the gateway script is loaded into."""

    def has_global(self, name: str) -> bool: ...

    def get_global(self, name: str) -> Any: ...

    def has_script(self, src: str) -> bool: ...

    async def inject_script(self, src: str) -> None:
        """Resolve on the script's load event; raise on its error event."""
        ...

    def remove_script(self, src: str) -> None: ...


class GatewayLoader:
    def __init__(self, host: ScriptHost, src: str = INLINE_SCRIPT_URL, global_name: str = GLOBAL_NAME):
        self._host = host
        self._src = src
        self._global_name = global_name
        self._ready = False
        self._failed = False
        self._injected = False
        self._load_task: Optional[asyncio.Task[bool]] = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def failed(self) -> bool:
        return self._failed

    async def ensure_loaded(self) -> bool:
        if self._ready:
            return True
        if self._host.has_global(self._global_name):
            self._ready = True
            return True
        if self._failed:
            return False
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._load_task)

    async def _load(self) -> bool:
        try:
            if not self._host.has_script(self._src):
                self._injected = True
                await self._host.inject_script(self._src)
        except Exception as e:
            logger.error("Failed to load payment gateway script %s: %s", self._src, e)
            self._failed = True
            return False
        self._ready = self._host.has_global(self._global_name)
        if not self._ready:
            logger.error("Gateway script loaded but %s is missing", self._global_name)
            self._failed = True
        else:
            logger.info("Payment gateway script loaded")
        return self._ready

    def handle(self) -> Any:
        if not self._ready or not self._host.has_global(self._global_name):
            raise GatewayUnavailable("Payment service is not available. Please refresh the page.")
        return self._host.get_global(self._global_name)

    def teardown(self) -> None:
        """Remove the injected script so a remount does not inject it twice."""
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        if self._injected and self._host.has_script(self._src):
            self._host.remove_script(self._src)
        self._injected = False
        self._load_task = None
        self._ready = False
        self._failed = False


class HttpScriptHost:
    """Script host for runtimes without a browser page.

    Injecting a script downloads it; once it is reachable the gateway handle
    built by ``factory`` is installed under the script's global name.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        factory: Callable[[], Any],
        global_name: str = GLOBAL_NAME,
    ):
        self._client = client
        self._factory = factory
        self._global_name = global_name
        self._globals: dict[str, Any] = {}
        self._scripts: set[str] = set()

    def has_global(self, name: str) -> bool:
        return name in self._globals

    def get_global(self, name: str) -> Any:
        return self._globals[name]

    def has_script(self, src: str) -> bool:
        return src in self._scripts

    async def inject_script(self, src: str) -> None:
        self._scripts.add(src)
        try:
            resp = await self._client.get(src)
            resp.raise_for_status()
        except httpx.HTTPError:
            self._scripts.discard(src)
            raise
        self._globals[self._global_name] = self._factory()

    def remove_script(self, src: str) -> None:
        self._scripts.discard(src)
        self._globals.pop(self._global_name, None)
