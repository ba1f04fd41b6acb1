"""
Server-side verification of a gateway reference.

Verification is idempotent on the backend: once a charge has settled, asking
again for the same reference returns the same terminal status. That makes
retrying on connectivity failures safe.
"""

import asyncio
import logging
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from growth_checkout.errors import (
    HttpError,
    MalformedResponseError,
    TransportError,
    VerificationRejected,
    VerificationTransportError,
)
from growth_checkout.models.payment import PaymentRecord
from growth_checkout.transport.http import HttpClient

logger = logging.getLogger(__name__)


def _server_message(body: object) -> str:
    if isinstance(body, dict):
        for key in ("message", "failureMessage", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body:
        return body
    return ""


class VerificationClient:
    def __init__(self, http: HttpClient):
        self._http = http

    async def verify(self, reference: str) -> PaymentRecord:
        if not reference:
            raise VerificationRejected("Missing payment reference")
        path = f"/payments/verify/{quote(reference, safe='')}"
        try:
            body = await self._http.get(path)
        except TransportError as e:
            raise VerificationTransportError(e.message) from e
        except HttpError as e:
            server_message = _server_message(e.body) or None
            raise VerificationRejected(
                server_message or f"Payment verification failed (HTTP {e.status_code})",
                status_code=e.status_code,
                details={"body": e.body},
                server_message=server_message,
            ) from e

        if not isinstance(body, dict):
            raise MalformedResponseError("Payment verification returned no payment record", body)
        try:
            record = PaymentRecord.model_validate(body)
        except PydanticValidationError as e:
            raise MalformedResponseError(f"Unreadable payment record: {e.error_count()} error(s)", body) from e

        if record.reference is None:
            record.reference = reference
        logger.info("Verified %s: %s", reference, record.status.value)
        return record

    async def verify_with_retry(self, reference: str, attempts: int = 3, backoff: float = 0.5) -> PaymentRecord:
        """Retry only when the request never reached the server."""
        for attempt in range(1, attempts + 1):
            try:
                return await self.verify(reference)
            except VerificationTransportError:
                if attempt == attempts:
                    raise
                logger.warning("Verification of %s unreachable (attempt %d/%d)", reference, attempt, attempts)
                await asyncio.sleep(backoff * attempt)
        raise AssertionError("unreachable")
