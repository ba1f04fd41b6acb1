"""
Subscription and user REST APIs.
"""

from __future__ import annotations

from typing import Any, Optional

from growth_checkout.errors import MalformedResponseError
from growth_checkout.models.subscription import AccountRecord, PlanConfirmation, PlanType
from growth_checkout.transport.http import HttpClient


class SubscriptionsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def confirm_payment(self, confirmation: PlanConfirmation) -> Any:
        """Tell the backend the plan has been paid for. Ack shape is backend-defined."""
        return await self._http.post("/user-packages/confirm-payment", confirmation.to_body())

    async def select_package(self, package_type: PlanType) -> Any:
        return await self._http.post("/user-packages/select", {"packageType": PlanType(package_type).value})

    async def activate_free_trial(self, package_type: PlanType) -> Any:
        return await self._http.post("/free-trial/activate", {"new_package": PlanType(package_type).value})

    async def free_trial_status(self) -> Any:
        return await self._http.get("/free-trial/status")

    async def free_trial_eligibility(self) -> Any:
        return await self._http.get("/free-trial/check-eligibility")

    async def my_package(self) -> Optional[dict[str, Any]]:
        """Current package, or None when the backend answers with a plain message."""
        data = await self._http.get("/user-packages/my-package")
        if not isinstance(data, dict):
            return None
        return data

    async def update(self, package_type: PlanType) -> Any:
        return await self._http.put("/user-packages/update", {"packageType": PlanType(package_type).value})

    async def cancel(self) -> Any:
        return await self._http.delete("/user-packages/cancel")


class UsersAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def me(self) -> AccountRecord:
        data = await self._http.get("/users/me")
        if not isinstance(data, dict):
            raise MalformedResponseError("Expected a user object from /users/me", data)
        return AccountRecord.model_validate(data)
