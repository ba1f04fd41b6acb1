"""
Checkout error types.

Everything raised by this package derives from CheckoutError, which carries a
stable machine-readable ``code`` next to the human message.
"""

from typing import Any, Optional


class CheckoutError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class ValidationError(CheckoutError):
    """Bad email, amount or missing package. Raised before any network call."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__("validation_error", message, {"field": field} if field else None)
        self.field = field


class GatewayUnavailable(CheckoutError):
    """Gateway script failed to load, is still loading, or is not configured."""

    def __init__(self, message: str, code: str = "gateway_unavailable"):
        super().__init__(code, message)


class GatewayCancelled(CheckoutError):
    def __init__(self, message: str = "Payment was cancelled"):
        super().__init__("gateway_cancelled", message)


class HttpError(CheckoutError):
    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__("http_error", message, {"status_code": status_code, "body": body})
        self.status_code = status_code
        self.body = body


class TransportError(CheckoutError):
    def __init__(self, message: str):
        super().__init__("transport_error", message)


class VerificationError(CheckoutError):
    retryable = False


class VerificationRejected(VerificationError):
    """The backend answered with an error payload or a failed payment."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        server_message: Optional[str] = None,
    ):
        super().__init__("verification_rejected", message, details)
        self.status_code = status_code
        self.server_message = server_message


class VerificationTransportError(VerificationError):
    """The verification request never reached the server."""

    retryable = True

    def __init__(self, message: str):
        super().__init__("verification_transport_error", message)


class MalformedResponseError(VerificationError):
    def __init__(self, message: str, body: Any = None):
        super().__init__("malformed_response", message, {"body": body} if body is not None else None)


class ReconciliationDegraded(CheckoutError):
    """Plan confirmation or account fetch failed after a verified payment.

    Only used to label the fallback path in logs; never raised to callers.
    """

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown"
        super().__init__("reconciliation_degraded", f"{stage} degraded ({reason})", {"stage": stage})
        self.stage = stage
        self.cause = cause
