"""
Payment models: the in-memory gateway session and the verified payment record.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from growth_checkout.errors import CheckoutError


class Currency(str, Enum):
    ZAR = "ZAR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELED = "CANCELED"


TERMINAL_PAYMENT_STATUSES = {
    PaymentStatus.SUCCEEDED, PaymentStatus.FAILED,
    PaymentStatus.REFUNDED, PaymentStatus.CANCELED,
}


class SessionStatus(str, Enum):
    IDLE = "idle"
    AWAITING_GATEWAY = "awaiting_gateway"
    GATEWAY_SUCCEEDED = "gateway_succeeded"
    GATEWAY_CANCELLED = "gateway_cancelled"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    VERIFICATION_FAILED = "verification_failed"
    ACTIVATION_CONFIRMED = "activation_confirmed"
    ACTIVATION_FALLBACK = "activation_fallback"


_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.IDLE: {SessionStatus.AWAITING_GATEWAY},
    SessionStatus.AWAITING_GATEWAY: {SessionStatus.GATEWAY_SUCCEEDED, SessionStatus.GATEWAY_CANCELLED},
    SessionStatus.GATEWAY_SUCCEEDED: {SessionStatus.VERIFYING},
    SessionStatus.VERIFYING: {SessionStatus.VERIFIED, SessionStatus.VERIFICATION_FAILED},
    SessionStatus.VERIFIED: {SessionStatus.ACTIVATION_CONFIRMED, SessionStatus.ACTIVATION_FALLBACK},
}


class PaymentSession(BaseModel):
    """One attempt to pay. Lives only as long as the controller that created it."""

    reference: str
    email: str
    amount_minor_units: int
    currency: str = Currency.ZAR.value
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: SessionStatus = SessionStatus.IDLE

    @property
    def is_terminal(self) -> bool:
        return self.status not in _TRANSITIONS

    @property
    def gateway_settled(self) -> bool:
        return self.status not in (SessionStatus.IDLE, SessionStatus.AWAITING_GATEWAY)

    def advance(self, status: SessionStatus) -> None:
        if status not in _TRANSITIONS.get(self.status, set()):
            raise CheckoutError(
                "invalid_transition",
                f"Session {self.reference} cannot move from {self.status.value} to {status.value}",
            )
        self.status = status


class PaymentRecord(BaseModel):
    """Normalised response of GET /payments/verify/{reference}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    reference: Optional[str] = Field(default=None, alias="paystackReference")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    amount: float = 0
    currency: str = Currency.ZAR.value
    status: PaymentStatus = PaymentStatus.PENDING
    failure_message: Optional[str] = Field(default=None, alias="failureMessage")
    channel: Optional[str] = None
    verified_at: Optional[str] = Field(default=None, alias="verifiedAt")
    metadata: Optional[Any] = None

    @field_validator("id", "amount", "currency", mode="before")
    @classmethod
    def _null_means_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, v: Any) -> Any:
        if v is None or v == "":
            return PaymentStatus.PENDING
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCEEDED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES


class GatewayOutcome(BaseModel):
    """The single terminal result a gateway popup reports."""

    succeeded: bool
    reference: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)
