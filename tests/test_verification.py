import httpx
import pytest

from growth_checkout.errors import MalformedResponseError, VerificationRejected, VerificationTransportError
from growth_checkout.models.payment import PaymentStatus
from growth_checkout.transport.http import HttpClient
from growth_checkout.verification import VerificationClient

from conftest import BASE_URL


class TestVerify:
    @pytest.mark.asyncio
    async def test_normalises_record_and_sends_bearer_token(self, backend, http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={
                "id": "p1", "paystackReference": "ref_1", "amount": 499.0,
                "currency": "ZAR", "status": "succeeded", "channel": "card",
            })

        backend.on("GET", "/payments/verify/ref_1", handler)
        record = await VerificationClient(http).verify("ref_1")

        assert record.status == PaymentStatus.SUCCEEDED
        assert record.succeeded and record.is_terminal
        assert record.reference == "ref_1"
        assert seen["auth"] == "Bearer tok_123"

    @pytest.mark.asyncio
    async def test_same_reference_twice_gives_same_status(self, backend, http):
        backend.json("GET", "/payments/verify/ref_1", {"status": "SUCCEEDED"})
        client = VerificationClient(http)
        first = await client.verify("ref_1")
        second = await client.verify("ref_1")
        assert first.status == second.status == PaymentStatus.SUCCEEDED
        assert backend.called("GET", "/payments/verify/ref_1") == 2

    @pytest.mark.asyncio
    async def test_failed_payment_carries_failure_message(self, backend, http):
        backend.json("GET", "/payments/verify/ref_2", {"status": "FAILED", "failureMessage": "Insufficient funds"})
        record = await VerificationClient(http).verify("ref_2")
        assert record.status == PaymentStatus.FAILED
        assert record.failure_message == "Insufficient funds"

    @pytest.mark.asyncio
    async def test_missing_status_is_pending(self, backend, http):
        backend.json("GET", "/payments/verify/ref_3", {"id": "p3"})
        record = await VerificationClient(http).verify("ref_3")
        assert record.status == PaymentStatus.PENDING
        assert not record.is_terminal
        assert record.reference == "ref_3"

    @pytest.mark.asyncio
    async def test_null_fields_fall_back_to_defaults(self, backend, http):
        backend.json("GET", "/payments/verify/ref_4",
                     {"id": None, "status": "SUCCEEDED", "amount": None, "currency": None})
        record = await VerificationClient(http).verify("ref_4")
        assert record.succeeded
        assert record.id == ""
        assert record.amount == 0
        assert record.currency == "ZAR"

    @pytest.mark.asyncio
    async def test_reference_is_path_quoted(self, backend, http):
        backend.json("GET", "/payments/verify/ref a/b", {"status": "SUCCEEDED"})
        await VerificationClient(http).verify("ref a/b")
        assert backend.calls[-1][0] == "GET"


class TestVerifyErrors:
    @pytest.mark.asyncio
    async def test_server_error_payload_is_rejection(self, backend, http):
        backend.json("GET", "/payments/verify/ref_4", {"message": "Transaction not found"}, status=404)
        with pytest.raises(VerificationRejected) as exc:
            await VerificationClient(http).verify("ref_4")
        assert exc.value.message == "Transaction not found"
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_server_error_without_message_gets_default(self, backend, http):
        backend.on("GET", "/payments/verify/ref_5", lambda r: httpx.Response(500))
        with pytest.raises(VerificationRejected) as exc:
            await VerificationClient(http).verify("ref_5")
        assert "HTTP 500" in exc.value.message

    @pytest.mark.asyncio
    async def test_connectivity_failure_is_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        http = HttpClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(VerificationTransportError) as exc:
            await VerificationClient(http).verify("ref_6")
        assert exc.value.retryable

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200),
        httpx.Response(200, text="OK"),
        httpx.Response(200, json=["not", "a", "record"]),
        httpx.Response(200, content=b"{oops", headers={"content-type": "application/json"}),
        httpx.Response(200, json={"status": "EXPLODED"}),
    ])
    async def test_malformed_bodies(self, backend, http, response):
        backend.on("GET", "/payments/verify/ref_7", lambda r: response)
        with pytest.raises(MalformedResponseError):
            await VerificationClient(http).verify("ref_7")

    @pytest.mark.asyncio
    async def test_retry_only_on_transport_errors(self, backend):
        attempts = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise httpx.ConnectError("offline", request=request)
            return httpx.Response(200, json={"status": "SUCCEEDED"})

        http = HttpClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        record = await VerificationClient(http).verify_with_retry("ref_8", attempts=3, backoff=0)
        assert record.succeeded
        assert attempts["n"] == 3

    @pytest.mark.asyncio
    async def test_rejection_is_not_retried(self, backend, http):
        backend.json("GET", "/payments/verify/ref_9", {"message": "nope"}, status=400)
        with pytest.raises(VerificationRejected):
            await VerificationClient(http).verify_with_retry("ref_9", attempts=3, backoff=0)
        assert backend.called("GET", "/payments/verify/ref_9") == 1
