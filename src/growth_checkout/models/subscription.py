"""
Subscription models: the selected package, the cached account record and the
confirm-plan request body.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanType(str, Enum):
    START_UP = "START_UP"
    ESSENTIAL = "ESSENTIAL"
    PREMIUM = "PREMIUM"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING_PACKAGE = "PENDING_PACKAGE"
    FREE_TRIAL = "FREE_TRIAL"
    SUSPENDED = "SUSPENDED"


ACTIVE_STATUS = AccountStatus.ACTIVE.value


class SelectedPackage(BaseModel):
    """Package chosen on the package-selection screen. Read-only here."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    name: str
    price: float
    currency: str = "ZAR"
    billing_interval: str = Field(default="month", alias="interval")
    backend_plan_type: PlanType = Field(alias="backendType")


class AccountRecord(BaseModel):
    """Locally cached view of the current user. Unknown backend fields are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None
    plan_name: Optional[str] = Field(default=None, alias="planName")
    plan_type: Optional[str] = Field(default=None, alias="planType")

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    def to_cache(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PlanConfirmation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_type: PlanType = Field(alias="packageType")
    amount: Optional[float] = None
    currency: Optional[str] = None

    @classmethod
    def for_package(cls, package: SelectedPackage) -> "PlanConfirmation":
        return cls(package_type=package.backend_plan_type, amount=package.price, currency=package.currency)

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
