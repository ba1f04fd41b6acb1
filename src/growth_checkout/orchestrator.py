"""
Payment page controller.

Sequences gateway -> verification -> reconciliation for one page, holds the
state a view renders (form, verifying, success, error and notice text) and
performs the final navigation.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from growth_checkout.errors import (
    CheckoutError,
    GatewayUnavailable,
    ValidationError,
    VerificationRejected,
    VerificationTransportError,
)
from growth_checkout.gateway.session import PaymentSessionController, validate_email
from growth_checkout.models.payment import PaymentRecord, PaymentSession, SessionStatus
from growth_checkout.models.subscription import SelectedPackage
from growth_checkout.reconciler import ActivationPath, ActivationResult, SubscriptionReconciler
from growth_checkout.store import AccountStateStore
from growth_checkout.verification import VerificationClient

SUPPORT_MESSAGE = "We could not confirm your payment. Please contact support with your payment reference."
RETRY_HINT = " If you were not charged you can try again."
DEFAULT_FAILURE_MESSAGE = "Payment verification failed. Please try again."
CANCELLED_NOTICE = "Payment cancelled. You can try again whenever you are ready."
LOADING_MESSAGE = "Payment service is loading..."
PROCESSING_MESSAGE = (
    "Your payment is still being processed. Please do not pay again; "
    "check back shortly or contact support with your payment reference."
)

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]


class UiState(str, Enum):
    AWAITING_PACKAGE_SELECTION = "awaiting_package_selection"
    FORM = "form"
    VERIFYING = "verifying"
    SUCCESS = "success"


class PaymentOrchestrator:
    def __init__(
        self,
        controller: PaymentSessionController,
        verifier: VerificationClient,
        reconciler: SubscriptionReconciler,
        store: AccountStateStore,
        *,
        navigate: Navigate,
        settle_delay: float = 1.5,
        redirect_delay: float = 2.0,
        poll_attempts: int = 3,
        poll_interval: float = 2.0,
        dashboard_path: str = "/dashboard",
        package_picker_path: str = "/select-package",
    ):
        self._controller = controller
        self._verifier = verifier
        self._reconciler = reconciler
        self._store = store
        self._navigate = navigate
        self._settle_delay = settle_delay
        self._redirect_delay = redirect_delay
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._dashboard_path = dashboard_path
        self._package_picker_path = package_picker_path

        self.ui_state = UiState.FORM
        self.package: Optional[SelectedPackage] = None
        self.email = ""
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.is_verifying = False
        self.last_payment: Optional[PaymentRecord] = None
        self.activation: Optional[ActivationResult] = None
        self._redirect_task: Optional[asyncio.Task[None]] = None
        self._pending: Optional[tuple[str, Optional[PaymentSession]]] = None

    def load(self, package: Optional[SelectedPackage] = None) -> UiState:
        """Pick up the selected package and pre-fill the email from the cache."""
        self.package = package or self._store.selected_package()
        self.email = self._store.email() or self.email
        if self.package is None:
            self.ui_state = UiState.AWAITING_PACKAGE_SELECTION
            self._navigate(self._package_picker_path)
        else:
            self.ui_state = UiState.FORM
        return self.ui_state

    def set_email(self, email: str) -> None:
        self.email = email
        self.error = None

    def dismiss_notice(self) -> None:
        self.notice = None

    @property
    def loading(self) -> bool:
        return not self._controller.ready

    @property
    def payment_pending(self) -> bool:
        """A charge reported by the gateway is not settled yet."""
        return self._pending is not None

    @property
    def can_pay(self) -> bool:
        return (
            self.ui_state == UiState.FORM
            and self._pending is None
            and self.package is not None
            and "@" in (self.email or "")
            and self._controller.ready
            and not self.is_verifying
            and not self._controller.is_processing
        )

    async def pay(self) -> bool:
        """Open the gateway. Returns False when the form is not in a payable state."""
        if self.ui_state == UiState.SUCCESS or self.is_verifying or self._controller.is_processing:
            return False
        if self._pending is not None:
            self.error = PROCESSING_MESSAGE
            return False
        if self.package is None:
            self.error = "Please select a package before paying."
            return False
        try:
            validate_email(self.email)
        except ValidationError as e:
            self.error = e.message
            return False
        if not self._controller.ready:
            self.notice = LOADING_MESSAGE
            return False

        self.error = None
        self.notice = None
        package = self.package
        try:
            self._controller.initialize_payment(
                self.email,
                package.price,
                currency=package.currency,
                metadata={
                    "packageId": package.id,
                    "packageName": package.name,
                    "packageType": package.backend_plan_type.value,
                    "billingInterval": package.billing_interval,
                },
                on_success=self.on_gateway_success,
                on_close=self.on_gateway_close,
            )
        except GatewayUnavailable as e:
            self.notice = LOADING_MESSAGE if e.code == "gateway_unavailable" else None
            self.error = None if e.code == "gateway_unavailable" else e.message
            return False
        except CheckoutError as e:
            self.error = e.message
            return False
        return True

    async def on_gateway_success(self, reference: str) -> None:
        session = self._controller.current_session
        if session is not None and session.status != SessionStatus.GATEWAY_SUCCEEDED:
            session = None
        if session is not None:
            session.advance(SessionStatus.VERIFYING)
        await self._verify_and_activate(reference, session)

    async def recheck(self) -> bool:
        """Verify a still-processing payment again. True once the account is active."""
        if self._pending is None or self.is_verifying:
            return False
        reference, session = self._pending
        await self._verify_and_activate(reference, session)
        return self.ui_state == UiState.SUCCESS

    async def _verify_until_settled(self, reference: str) -> PaymentRecord:
        record = await self._verifier.verify(reference)
        for attempt in range(self._poll_attempts):
            if record.is_terminal:
                break
            logger.info("Payment %s still %s (poll %d/%d)",
                        reference, record.status.value, attempt + 1, self._poll_attempts)
            await asyncio.sleep(self._poll_interval)
            record = await self._verifier.verify(reference)
        return record

    async def _verify_and_activate(self, reference: str, session: Optional[PaymentSession]) -> None:
        if session is not None and session.status != SessionStatus.VERIFYING:
            session = None
        self.is_verifying = True
        self.ui_state = UiState.VERIFYING
        self.error = None
        try:
            try:
                record = await self._verify_until_settled(reference)
            except VerificationTransportError as e:
                logger.error("Verification of %s unreachable: %s", reference, e)
                self._verification_failed(session, SUPPORT_MESSAGE + RETRY_HINT)
                return
            except VerificationRejected as e:
                logger.error("Verification of %s rejected: %s", reference, e)
                self._verification_failed(session, e.server_message or SUPPORT_MESSAGE)
                return
            except CheckoutError as e:
                logger.error("Verification of %s failed: %s", reference, e)
                self._verification_failed(session, SUPPORT_MESSAGE)
                return

            self.last_payment = record
            if not record.is_terminal:
                logger.warning("Payment %s still %s after polling", reference, record.status.value)
                self._pending = (reference, session)
                self.error = PROCESSING_MESSAGE
                self.ui_state = UiState.FORM
                return
            self._pending = None
            if not record.succeeded:
                logger.warning("Payment %s verified as %s", reference, record.status.value)
                self._verification_failed(session, record.failure_message or DEFAULT_FAILURE_MESSAGE)
                return

            package = self.package
            if package is None:
                logger.error("Payment %s verified but no package is selected", reference)
                self._verification_failed(session, SUPPORT_MESSAGE)
                return
            if session is not None:
                session.advance(SessionStatus.VERIFIED)
            self.activation = await self._reconciler.activate(package)
            if session is not None:
                session.advance(
                    SessionStatus.ACTIVATION_CONFIRMED
                    if self.activation.path == ActivationPath.CONFIRMED
                    else SessionStatus.ACTIVATION_FALLBACK
                )
            if self._settle_delay > 0:
                await asyncio.sleep(self._settle_delay)
            self.ui_state = UiState.SUCCESS
            self._redirect_task = asyncio.ensure_future(self._redirect_later())
        finally:
            self.is_verifying = False

    def _verification_failed(self, session: Optional[PaymentSession], message: str) -> None:
        if session is not None and session.status == SessionStatus.VERIFYING:
            session.advance(SessionStatus.VERIFICATION_FAILED)
        self.error = message
        self.ui_state = UiState.FORM

    def on_gateway_close(self) -> None:
        self.notice = CANCELLED_NOTICE
        if self.ui_state != UiState.SUCCESS:
            self.ui_state = UiState.FORM

    async def _redirect_later(self) -> None:
        await asyncio.sleep(self._redirect_delay)
        self._navigate(self._dashboard_path)

    async def wait_redirect(self) -> None:
        if self._redirect_task is not None:
            await self._redirect_task

    def teardown(self) -> None:
        if self._redirect_task is not None and not self._redirect_task.done():
            self._redirect_task.cancel()
