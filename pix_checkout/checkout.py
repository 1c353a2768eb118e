"""
Checkout reconciliation loop.

One ``CheckoutSession`` drives a single payment intent from the payer form to
a settled outcome:

    idle -> submitting -> awaiting_payment -> settled
              |    ^
              v    |
          submit_error

``not_found`` is reached when the intent id is unknown. While awaiting
payment a background task polls the gateway every ``poll_interval`` seconds
until a terminal status is seen or the session is closed.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import secrets
import time

from pix_checkout.errors import GatewayBusinessError, NotFoundError, TransportError
from pix_checkout.models import TERMINAL_STATUSES, PaymentIntent
from pix_checkout.pixgo_service import GatewayClient
from pix_checkout.schemas import CheckoutView, CreatePaymentData, CreatePaymentRequest, CustomerForm
from pix_checkout.store import IntentStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_IDLE_TIMEOUT = 900.0
NOT_FOUND_MESSAGE = "Link de pagamento inválido ou expirado."
SUBMIT_ERROR_MESSAGE = "Ocorreu um erro ao gerar o PIX."


class CheckoutState(str, enum.Enum):
    IDLE = "idle"
    NOT_FOUND = "not_found"
    SUBMITTING = "submitting"
    SUBMIT_ERROR = "submit_error"
    AWAITING_PAYMENT = "awaiting_payment"
    SETTLED = "settled"


SUBMITTABLE_STATES = frozenset({CheckoutState.IDLE, CheckoutState.SUBMIT_ERROR})


class CheckoutSession:

    def __init__(
        self,
        intent_id: str,
        store: IntentStore,
        gateway: GatewayClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.intent_id = intent_id
        self.state = CheckoutState.IDLE
        self.intent: PaymentIntent | None = None
        self.payment: CreatePaymentData | None = None
        self.payment_status: str | None = None
        self.error: str | None = None

        self._store = store
        self._gateway = gateway
        self._poll_interval = poll_interval
        self._poll_task: asyncio.Task | None = None
        self._poll_lock = asyncio.Lock()
        self._closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def load(self) -> PaymentIntent:
        intent = self._store.find_by_id(self.intent_id)
        if intent is None:
            self.state = CheckoutState.NOT_FOUND
            self.error = NOT_FOUND_MESSAGE
            raise NotFoundError(NOT_FOUND_MESSAGE)

        self.intent = intent
        if intent.is_terminal:
            self.state = CheckoutState.SETTLED
            self.payment_status = intent.status
        return intent

    async def submit(self, customer: CustomerForm) -> CheckoutState:
        """Create the gateway payment and start polling it.

        Only one submission can be in flight: calls made while submitting,
        awaiting payment or settled are ignored. Business and transport
        failures leave the session resubmittable and are re-raised for the
        caller to show.
        """
        if self.intent is None and self.state is CheckoutState.IDLE:
            self.load()
        if self.state not in SUBMITTABLE_STATES:
            logger.info("Ignoring submit for intent %s in state %s", self.intent_id, self.state.value)
            return self.state

        self.state = CheckoutState.SUBMITTING
        self.error = None
        request = CreatePaymentRequest(
            amount=self.intent.amount,
            description=self.intent.description,
            customer_name=customer.name,
            customer_cpf=customer.cpf_digits,
            customer_email=customer.email,
            customer_phone=customer.phone,
            external_id=self.intent.id,
        )

        try:
            result = await self._gateway.create_payment(request)
        except TransportError as e:
            self._submit_failed(str(e))
            raise

        if not result.success or result.data is None:
            message = result.message or result.error or SUBMIT_ERROR_MESSAGE
            self._submit_failed(message)
            raise GatewayBusinessError(message, envelope=result)

        self.payment = result.data
        self.payment_status = "pending"
        self.state = CheckoutState.AWAITING_PAYMENT
        logger.info("Intent %s awaiting PIX payment %s", self.intent_id, result.data.payment_id)

        if not self._closed:
            self.start_polling()
        return self.state

    def _submit_failed(self, message: str) -> None:
        self.state = CheckoutState.SUBMIT_ERROR
        self.error = message
        logger.warning("Submit failed for intent %s: %s", self.intent_id, message)

    def start_polling(self) -> asyncio.Task:
        """Start (or return) the background status poll task."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(
                self._poll_loop(), name=f"checkout-poll-{self.intent_id}"
            )
        return self._poll_task

    async def _poll_loop(self) -> None:
        while self.state is CheckoutState.AWAITING_PAYMENT:
            await asyncio.sleep(self._poll_interval)
            await self.poll_once()

    async def poll_once(self) -> None:
        """Fetch the gateway status once. Transport errors are logged and swallowed."""
        async with self._poll_lock:
            if self.state is not CheckoutState.AWAITING_PAYMENT or self.payment is None:
                return
            try:
                result = await self._gateway.check_status(self.payment.payment_id)
            except TransportError as e:
                logger.error("Erro ao checar status de %s: %s", self.payment.payment_id, e)
                return

            if result.success and result.data is not None:
                await self._apply_status(result.data.status)

    async def _apply_status(self, status: str) -> None:
        # settled is final; late or stale answers must not move it back
        if self.state is not CheckoutState.AWAITING_PAYMENT:
            return
        self.payment_status = status
        if status in TERMINAL_STATUSES:
            self.state = CheckoutState.SETTLED
            logger.info("Intent %s settled as %s", self.intent_id, status)
            try:
                await asyncio.to_thread(self._store.update_status, self.intent.id, status)
            except Exception as e:
                logger.exception("Failed to record %s for intent %s: %s", status, self.intent_id, e)

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def close(self) -> None:
        """Stop polling. Safe to call more than once."""
        self._closed = True
        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @property
    def outcome(self) -> str | None:
        if self.state is not CheckoutState.SETTLED:
            return None
        return "success" if self.payment_status == "completed" else "failure"

    def view(self, session_id: str | None = None) -> CheckoutView:
        intent = self.intent
        payment = self.payment
        return CheckoutView(
            session_id=session_id,
            state=self.state.value,
            intent_id=self.intent_id,
            description=intent.description if intent else None,
            # always the intent amount, never the gateway echo
            amount=intent.amount if intent else None,
            payment_id=payment.payment_id if payment else None,
            qr_code=payment.qr_code if payment else None,
            qr_image_url=payment.qr_image_url if payment else None,
            expires_at=payment.expires_at if payment else None,
            payment_status=self.payment_status,
            outcome=self.outcome,
            error=self.error,
            can_submit=intent is not None and self.state in SUBMITTABLE_STATES,
        )


class CheckoutSessions:
    """Live checkout sessions keyed by an opaque session id.

    A session leaves the registry when it is closed explicitly, once its
    settled view has been served, or when nobody has looked at it for
    ``idle_timeout`` seconds (see ``prune`` and ``start_reaper``).
    """

    def __init__(
        self,
        store: IntentStore,
        gateway: GatewayClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        clock=time.monotonic,
    ):
        self._store = store
        self._gateway = gateway
        self._poll_interval = poll_interval
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, CheckoutSession] = {}
        self._last_seen: dict[str, float] = {}
        self._reaper: asyncio.Task | None = None

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, session_id):
        return session_id in self._sessions

    def open(self, intent_id: str) -> tuple[str, CheckoutSession]:
        session = CheckoutSession(intent_id, self._store, self._gateway, self._poll_interval)
        session.load()
        session_id = secrets.token_urlsafe(16)
        self._sessions[session_id] = session
        self._last_seen[session_id] = self._clock()
        return session_id, session

    def get(self, session_id: str) -> CheckoutSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Sessão de checkout não encontrada.")
        self._last_seen[session_id] = self._clock()
        return session

    async def view(self, session_id: str) -> CheckoutView:
        """Render a session; a settled session is dropped once its final view is out."""
        session = self.get(session_id)
        view = session.view(session_id)
        if session.state is CheckoutState.SETTLED:
            await self.close(session_id)
        return view

    async def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is not None:
            await session.close()

    async def prune(self) -> int:
        """Close sessions idle for longer than ``idle_timeout``."""
        cutoff = self._clock() - self._idle_timeout
        idle = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in idle:
            await self.close(session_id)
        if idle:
            logger.info("Closed %d idle checkout sessions", len(idle))
        return len(idle)

    def start_reaper(self, interval: float) -> asyncio.Task:
        if self._reaper is None or self._reaper.done():
            self._reaper = asyncio.create_task(self._reap(interval), name="checkout-reaper")
        return self._reaper

    async def _reap(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.prune()

    async def close_all(self) -> None:
        reaper, self._reaper = self._reaper, None
        if reaper is not None and not reaper.done():
            reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reaper

        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_seen.clear()
        for session in sessions:
            await session.close()
