"""
Payment session controller.

Drives one gateway popup at a time. The gateway reports back through plain
callbacks (``callback`` and ``onClose``) rather than awaitables, so this
module is the one place those callbacks are turned into asyncio primitives:
the success handler runs as a task and ``wait_outcome()`` resolves with the
popup's single terminal outcome.
"""

import asyncio
import functools
import logging
import secrets
import string
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Optional, Protocol

from growth_checkout.errors import CheckoutError, GatewayCancelled, GatewayUnavailable, ValidationError
from growth_checkout.gateway.loader import GatewayLoader
from growth_checkout.models.payment import GatewayOutcome, PaymentSession, SessionStatus

DEFAULT_CHANNELS = ("card", "bank", "ussd", "mobile_money")
DEFAULT_LABEL = "72X Subscription"
_REF_ALPHABET = string.digits + string.ascii_uppercase

SuccessCallback = Callable[[str], Awaitable[None]]
CloseCallback = Callable[[], None]

logger = logging.getLogger(__name__)


class GatewayPopup(Protocol):
    def open_iframe(self) -> None: ...


class GatewayHandle(Protocol):
    def setup(self, config: dict[str, Any]) -> GatewayPopup: ...


def to_minor_units(amount: Any) -> int:
    """Major units to minor units (cents/kobo), rounding half up."""
    if isinstance(amount, bool):
        raise ValidationError("Invalid payment amount", field="amount")
    try:
        major = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Invalid payment amount", field="amount")
    if not major.is_finite() or major <= 0:
        raise ValidationError("Invalid payment amount", field="amount")
    return int((major * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_email(email: Optional[str]) -> str:
    email = (email or "").strip()
    if not email or "@" not in email:
        raise ValidationError("Please enter a valid email address", field="email")
    return email


class PaymentSessionController:
    def __init__(
        self,
        loader: GatewayLoader,
        public_key: Optional[str],
        *,
        channels: tuple[str, ...] = DEFAULT_CHANNELS,
        label: str = DEFAULT_LABEL,
        reference_prefix: str = "ref",
    ):
        self._loader = loader
        self._public_key = public_key
        self._channels = list(channels)
        self._label = label
        self._reference_prefix = reference_prefix

        self._session: Optional[PaymentSession] = None
        self._on_success: Optional[SuccessCallback] = None
        self._on_close: Optional[CloseCallback] = None
        self._processing = False
        self._settled = asyncio.Event()
        self._outcome: Optional[GatewayOutcome] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._success_task: Optional[asyncio.Future[None]] = None
        self._issued: set[str] = set()

    @property
    def ready(self) -> bool:
        return self._loader.ready

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def current_session(self) -> Optional[PaymentSession]:
        return self._session

    def new_reference(self) -> str:
        while True:
            suffix = "".join(secrets.choice(_REF_ALPHABET) for _ in range(6))
            ref = f"{self._reference_prefix}_{int(time.time() * 1000)}_{suffix}"
            if ref not in self._issued:
                self._issued.add(ref)
                return ref

    def initialize_payment(
        self,
        email: str,
        amount_major_units: Any,
        *,
        on_success: SuccessCallback,
        on_close: Optional[CloseCallback] = None,
        currency: str = "ZAR",
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentSession:
        """Validate, then open the gateway popup for a fresh session.

        Raises before touching the gateway when it is not ready or the input
        is invalid.
        """
        if not self._loader.ready:
            raise GatewayUnavailable("Payment service is still loading. Please try again.")
        email = validate_email(email)
        amount = to_minor_units(amount_major_units)
        if not self._public_key:
            raise GatewayUnavailable(
                "Payment gateway is not configured. Please contact support.", code="gateway_not_configured",
            )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise GatewayUnavailable(
                "Payment sessions need a running event loop", code="no_event_loop",
            ) from None
        handle: GatewayHandle = self._loader.handle()

        session = PaymentSession(
            reference=self.new_reference(),
            email=email,
            amount_minor_units=amount,
            currency=currency,
            metadata=dict(metadata or {}),
        )
        self._loop = loop
        self._on_success = on_success
        self._on_close = on_close
        self._session = session
        self._outcome = None
        self._settled = asyncio.Event()
        self._processing = True

        config = {
            "key": self._public_key,
            "email": email,
            "amount": amount,
            "ref": session.reference,
            "currency": currency,
            "metadata": session.metadata,
            "channels": list(self._channels),
            "label": self._label,
            "callback": functools.partial(self._handle_callback, session),
            "onClose": functools.partial(self._handle_close, session),
        }
        try:
            session.advance(SessionStatus.AWAITING_GATEWAY)
            handle.setup(config).open_iframe()
        except Exception:
            self._processing = False
            logger.exception("Payment initialization failed for %s", session.reference)
            raise
        logger.info("Opened gateway for %s (%d %s)", session.reference, amount, currency)
        return session

    def _accepts(self, session: PaymentSession, kind: str) -> bool:
        if session is not self._session or session.gateway_settled:
            logger.warning("Ignoring %s for settled or stale session %s", kind, session.reference)
            return False
        return True

    def _settle(self, outcome: GatewayOutcome) -> None:
        self._outcome = outcome
        self._settled.set()

    def _on_loop_thread(self, handler: Callable[..., None], *args: Any) -> bool:
        """Hand callbacks that arrive on another thread over to the session's loop."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is None or running is self._loop:
            return True
        self._loop.call_soon_threadsafe(handler, *args)
        return False

    def _handle_callback(self, session: PaymentSession, response: dict[str, Any]) -> None:
        if not self._on_loop_thread(self._handle_callback, session, response):
            return
        if not self._accepts(session, "callback"):
            return
        status = (response or {}).get("status")
        if status != "success":
            logger.info("Gateway reported %r for %s, treating as closed", status, session.reference)
            self._close(session, response or {})
            return

        reference = response.get("reference") or session.reference
        callback = self._on_success
        if callback is not None:
            self._success_task = self._loop.create_task(self._run_success(callback, reference))
        session.advance(SessionStatus.GATEWAY_SUCCEEDED)
        self._settle(GatewayOutcome(succeeded=True, reference=reference, raw=dict(response)))
        self._processing = callback is not None

    async def _run_success(self, callback: SuccessCallback, reference: str) -> None:
        try:
            await callback(reference)
        except Exception:
            logger.exception("Error in payment success callback for %s", reference)
        finally:
            self._processing = False

    def _handle_close(self, session: PaymentSession) -> None:
        if not self._on_loop_thread(self._handle_close, session):
            return
        if not self._accepts(session, "close"):
            return
        self._close(session, {})

    def _close(self, session: PaymentSession, raw: dict[str, Any]) -> None:
        session.advance(SessionStatus.GATEWAY_CANCELLED)
        self._processing = False
        self._settle(GatewayOutcome(succeeded=False, reference=session.reference, raw=dict(raw)))
        if self._on_close is not None:
            self._on_close()

    async def wait_outcome(self) -> GatewayOutcome:
        if self._session is None:
            raise GatewayUnavailable("No payment session has been started")
        await self._settled.wait()
        if self._outcome is None:
            raise CheckoutError("invalid_state", "Gateway settled without an outcome")
        return self._outcome

    async def wait_reference(self) -> str:
        """Resolve with the paid reference; raise GatewayCancelled if the popup was closed."""
        outcome = await self.wait_outcome()
        if not outcome.succeeded or not outcome.reference:
            raise GatewayCancelled()
        return outcome.reference

    async def wait_idle(self) -> None:
        """Wait for a running success callback to finish."""
        if self._success_task is not None:
            await asyncio.shield(self._success_task)
