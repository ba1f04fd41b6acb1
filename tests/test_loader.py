import asyncio

import httpx
import pytest

from growth_checkout.errors import GatewayUnavailable
from growth_checkout.gateway.loader import GLOBAL_NAME, INLINE_SCRIPT_URL, GatewayLoader, HttpScriptHost

from conftest import FakeGateway, FakeScriptHost


class TestGatewayLoader:
    @pytest.mark.asyncio
    async def test_ready_immediately_when_global_present(self):
        host = FakeScriptHost(preloaded=True)
        loader = GatewayLoader(host)
        assert await loader.ensure_loaded()
        assert host.injections == 0
        assert loader.handle() is host.gateway

    @pytest.mark.asyncio
    async def test_injects_once_for_concurrent_callers(self):
        host = FakeScriptHost()
        loader = GatewayLoader(host)
        results = await asyncio.gather(loader.ensure_loaded(), loader.ensure_loaded(), loader.ensure_loaded())
        assert results == [True, True, True]
        assert host.injections == 1
        assert host.scripts == [INLINE_SCRIPT_URL]

    @pytest.mark.asyncio
    async def test_load_failure_is_permanent_for_the_mount(self):
        host = FakeScriptHost(fail=True)
        loader = GatewayLoader(host)
        assert not await loader.ensure_loaded()
        assert not await loader.ensure_loaded()
        assert host.injections == 1
        assert not loader.ready and loader.failed
        with pytest.raises(GatewayUnavailable):
            loader.handle()

    @pytest.mark.asyncio
    async def test_teardown_removes_injected_script(self):
        host = FakeScriptHost()
        loader = GatewayLoader(host)
        await loader.ensure_loaded()
        loader.teardown()
        assert host.scripts == []
        assert not loader.ready
        with pytest.raises(GatewayUnavailable):
            loader.handle()

        remount = GatewayLoader(FakeScriptHost())
        await remount.ensure_loaded()
        assert remount.ready

    @pytest.mark.asyncio
    async def test_teardown_leaves_foreign_script_alone(self):
        host = FakeScriptHost(preloaded=True)
        host.scripts.append(INLINE_SCRIPT_URL)
        loader = GatewayLoader(host)
        await loader.ensure_loaded()
        loader.teardown()
        assert host.scripts == [INLINE_SCRIPT_URL]


class TestHttpScriptHost:
    @pytest.mark.asyncio
    async def test_installs_handle_after_download(self):
        gateway = FakeGateway()
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="/* js */")))
        host = HttpScriptHost(client, factory=lambda: gateway)
        loader = GatewayLoader(host)
        assert await loader.ensure_loaded()
        assert host.get_global(GLOBAL_NAME) is gateway
        loader.teardown()
        assert not host.has_global(GLOBAL_NAME)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_download_error_means_not_ready(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        loader = GatewayLoader(HttpScriptHost(client, factory=FakeGateway))
        assert not await loader.ensure_loaded()
        await client.aclose()
