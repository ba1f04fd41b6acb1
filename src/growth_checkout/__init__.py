"""
growth-checkout: subscription checkout pipeline for the growth platform.

Opens the payment gateway, verifies the charge with the backend and
reconciles the cached account state, falling back to local activation when
the backend is slow or unreachable.
"""

from growth_checkout.client import AsyncCheckout, Checkout
from growth_checkout.errors import (
    CheckoutError,
    ValidationError,
    GatewayUnavailable,
    GatewayCancelled,
    VerificationError,
    VerificationRejected,
    VerificationTransportError,
    MalformedResponseError,
    ReconciliationDegraded,
)
from growth_checkout.models.payment import PaymentStatus, SessionStatus
from growth_checkout.models.subscription import AccountRecord, SelectedPackage, PlanType

__version__ = "0.1.0"
__all__ = [
    "AsyncCheckout",
    "Checkout",
    "CheckoutError",
    "ValidationError",
    "GatewayUnavailable",
    "GatewayCancelled",
    "VerificationError",
    "VerificationRejected",
    "VerificationTransportError",
    "MalformedResponseError",
    "ReconciliationDegraded",
    "PaymentStatus",
    "SessionStatus",
    "AccountRecord",
    "SelectedPackage",
    "PlanType",
]
