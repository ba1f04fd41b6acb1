"""
Subscription reconciler.

Turns a verified payment into an active account in the local cache:

    CONFIRMING_PLAN -> FETCHING_ACCOUNT -> DONE
           |                  |
           +------------------+--> FALLBACK_ACTIVATION -> DONE

The gateway and the backend have both agreed the money moved by the time
``activate`` runs, so every path ends with an ACTIVE record in the cache.
Backend slowness or inconsistency is logged for later correction, never
raised.
"""

import asyncio
import logging
import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from growth_checkout.errors import ReconciliationDegraded
from growth_checkout.models.subscription import (
    ACTIVE_STATUS,
    AccountRecord,
    PlanConfirmation,
    SelectedPackage,
)
from growth_checkout.store import AccountStateStore
from growth_checkout.subscriptions import SubscriptionsAPI, UsersAPI

DEFAULT_CONFIRM_TIMEOUT_S = 10.0

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    CONFIRMING_PLAN = "confirming_plan"
    FETCHING_ACCOUNT = "fetching_account"
    FALLBACK_ACTIVATION = "fallback_activation"
    DONE = "done"


class ActivationPath(str, Enum):
    CONFIRMED = "confirmed"
    FALLBACK = "fallback"


class ActivationResult(BaseModel):
    path: ActivationPath
    record: AccountRecord
    overridden: bool = False
    degraded_stage: Optional[str] = None
    trail: list[ReconcileState] = Field(default_factory=list)


def verified_payment_wins(record: AccountRecord) -> tuple[AccountRecord, bool]:
    """A verified payment outranks a non-active status read back from the backend.

    Returns the record to cache and whether the status was overridden.
    """
    if record.is_active:
        return record, False
    return record.model_copy(update={"status": ACTIVE_STATUS}), True


def fallback_record(current: Optional[AccountRecord], package: SelectedPackage) -> AccountRecord:
    """Minimal active record built from whatever is cached."""
    base = current.to_cache() if current is not None else {}
    base.update({
        "status": ACTIVE_STATUS,
        "planName": package.name,
        "planType": package.backend_plan_type.value,
    })
    return AccountRecord.model_validate(base)


class _Attempt:
    __slots__ = ("package", "committed", "trail")

    def __init__(self, package: SelectedPackage):
        self.package = package
        self.committed = False
        self.trail: list[ReconcileState] = []


class SubscriptionReconciler:
    def __init__(
        self,
        subscriptions: SubscriptionsAPI,
        users: UsersAPI,
        store: AccountStateStore,
        confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT_S,
    ):
        if not math.isfinite(confirm_timeout) or confirm_timeout <= 0:
            raise ValueError("confirm_timeout must be a finite positive number of seconds")
        self._subscriptions = subscriptions
        self._users = users
        self._store = store
        self._confirm_timeout = confirm_timeout
        self._lock = asyncio.Lock()

    async def activate(self, package: SelectedPackage) -> ActivationResult:
        async with self._lock:
            attempt = _Attempt(package)
            try:
                return await self._activate(attempt)
            except Exception as e:
                # Anything unexpected still ends in local activation.
                logger.exception("Unexpected error reconciling %s", package.backend_plan_type.value)
                return self._fallback(attempt, ReconciliationDegraded("reconcile", e))

    async def _activate(self, attempt: _Attempt) -> ActivationResult:
        package = attempt.package
        attempt.trail.append(ReconcileState.CONFIRMING_PLAN)
        try:
            await asyncio.wait_for(
                self._subscriptions.confirm_payment(PlanConfirmation.for_package(package)),
                timeout=self._confirm_timeout,
            )
        except asyncio.TimeoutError as e:
            return self._fallback(attempt, ReconciliationDegraded("confirm_plan_timeout", e))
        except Exception as e:
            return self._fallback(attempt, ReconciliationDegraded("confirm_plan", e))

        attempt.trail.append(ReconcileState.FETCHING_ACCOUNT)
        try:
            fetched = await self._users.me()
        except Exception as e:
            return self._fallback(attempt, ReconciliationDegraded("fetch_account", e))

        record, overridden = verified_payment_wins(fetched)
        if overridden:
            logger.warning(
                "Backend reports account %s as %r after verified payment for %s; caching as %s",
                fetched.id or fetched.email, fetched.status, package.backend_plan_type.value, ACTIVE_STATUS,
            )
        if not self._commit(attempt, record):
            return self._fallback(attempt, ReconciliationDegraded("commit"))
        self._done(attempt)
        return ActivationResult(
            path=ActivationPath.CONFIRMED, record=record, overridden=overridden, trail=attempt.trail,
        )

    def _fallback(self, attempt: _Attempt, reason: ReconciliationDegraded) -> ActivationResult:
        attempt.trail.append(ReconcileState.FALLBACK_ACTIVATION)
        logger.warning("Falling back to local activation of %s: %s",
                       attempt.package.backend_plan_type.value, reason.message)
        try:
            current = self._store.get()
        except Exception:
            logger.exception("Could not read cached account during fallback")
            current = None
        record = fallback_record(current, attempt.package)
        self._commit(attempt, record)
        self._done(attempt)
        return ActivationResult(
            path=ActivationPath.FALLBACK, record=record, degraded_stage=reason.stage, trail=attempt.trail,
        )

    def _commit(self, attempt: _Attempt, record: AccountRecord) -> bool:
        if attempt.committed:
            logger.warning("Dropping late account write for %s", attempt.package.backend_plan_type.value)
            return True
        try:
            self._store.set(record)
        except Exception:
            logger.exception("Could not write account record to the local cache")
            return False
        attempt.committed = True
        return True

    def _done(self, attempt: _Attempt) -> None:
        if ReconcileState.DONE in attempt.trail:
            return
        attempt.trail.append(ReconcileState.DONE)
        try:
            self._store.clear_pending_activation()
        except Exception:
            logger.exception("Could not clear pending activation markers")
