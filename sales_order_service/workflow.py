"""
workflow.py — Order Submission Pipeline

Turns the current cart into a sales order in the Order Management System (OMS).

Workflow Overview:
1. Validate: a customer is selected, the cart is not empty, a token is present
2. Snapshot the cart and build the OrderPayload (business-timezone dates)
3. Submit via OrderClient (REST)
4. Success → clear cart and comments, remember docEntry, signal success
   Failure → leave cart and comments untouched, classify and signal the error

States: IDLE → VALIDATING → SUBMITTING → {SUCCEEDED, FAILED} → IDLE

Nothing is retried automatically; every retry is a new call to `submit()`.
"""

import asyncio
import enum
import logging
from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

from .cart import CartStore
from .clients import OrderClient
from .config import BUSINESS_TIMEZONE
from .debounce import DebouncedChannel
from .errors import AuthError, OrderServiceError, SubmissionInProgressError, ValidationError
from .models import AuthContext, CartLineItem, OrderLine, OrderPayload, OrderResult, SelectedCustomer
from .pricing import resolve_price

log = logging.getLogger(__name__)

FeedbackSink = Callable[[str, str], None]


class SubmissionState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def business_date(now: datetime, tz_name: str = BUSINESS_TIMEZONE) -> str:
    """
    Calendar date of `now` in the business timezone, as "YYYY-MM-DD".

    Args:
        now (datetime): The instant to convert. Naive values are taken as UTC.
        tz_name (str): IANA timezone name, e.g. "America/Tegucigalpa".
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d")


def build_order_lines(lines: Iterable[CartLineItem], today: date) -> List[OrderLine]:
    # priceList and priceAfterVAT are resolved independently so the OMS can derive the discount
    return [
        OrderLine(
            itemCode=line.itemCode,
            quantity=line.quantity,
            priceList=line.basePrice,
            priceAfterVAT=resolve_price(line, today),
            taxCode=line.taxCode,
        )
        for line in lines
    ]


def build_order_payload(customer: SelectedCustomer, lines: Iterable[CartLineItem], comments: str,
                        now: datetime, tz_name: str = BUSINESS_TIMEZONE) -> OrderPayload:
    doc_date = business_date(now, tz_name)
    today = date.fromisoformat(doc_date)
    return OrderPayload(
        cardCode=customer.cardCode,
        docDate=doc_date,
        docDueDate=doc_date,
        comments=comments or "",
        lines=build_order_lines(lines, today),
    )


class OrderSubmissionPipeline:
    """
    Orchestrates one cart's submission to the OMS.

    Args:
        cart (CartStore): The cart to submit (cleared on success).
        comments (DebouncedChannel): Order comments (cleared on success).
        client (OrderClient): OMS order client.
        customer_provider (Callable[[], SelectedCustomer | None]): Returns the
            currently selected customer at submission time.
        auth (AuthContext | None): Credential to check before submitting.
            Defaults to the client's own auth context.
        feedback (FeedbackSink | None): Receives ("success" | "error", message),
            the hook for toasts and haptic feedback.
        tz_name (str): Business timezone for the order dates.
        clock (Callable[[], datetime]): Source of "now", UTC-aware.
    """

    def __init__(self, cart: CartStore, comments: DebouncedChannel, client: OrderClient,
                 customer_provider: Callable[[], Optional[SelectedCustomer]],
                 auth: Optional[AuthContext] = None, feedback: Optional[FeedbackSink] = None,
                 tz_name: str = BUSINESS_TIMEZONE,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.cart = cart
        self.comments = comments
        self.client = client
        self.customer_provider = customer_provider
        self.auth = auth or client.auth
        self.feedback = feedback
        self.tz_name = tz_name
        self.clock = clock
        self.state = SubmissionState.IDLE
        self.last_doc_entry = None
        self.last_result: Optional[OrderResult] = None
        self._transitions: List[Callable[[SubmissionState], None]] = []

    def on_transition(self, listener: Callable[[SubmissionState], None]):
        self._transitions.append(listener)

    def _set_state(self, state: SubmissionState):
        self.state = state
        for listener in self._transitions:
            listener(state)

    def _validate(self) -> SelectedCustomer:
        customer = self.customer_provider()
        if customer is None or self.cart.is_empty:
            raise ValidationError()
        if not self.auth.authenticated:
            raise AuthError()
        return customer

    async def submit(self) -> OrderResult:
        """
        Submits the current cart as a sales order.

        Returns:
            OrderResult: `succeeded` with the OMS docEntry, or `failed` with a
            classified reason. Errors never propagate, except that a concurrent
            call while a submission is in flight raises.

        Raises:
            SubmissionInProgressError: If another submission is still SUBMITTING.
            asyncio.CancelledError: Re-raised after recording a failed result;
                the pipeline is back in IDLE with the cart untouched.
        """
        if self.state in (SubmissionState.VALIDATING, SubmissionState.SUBMITTING):
            log.warning("[Order] Submit ignored: a submission is already in progress.")
            raise SubmissionInProgressError()

        try:
            self._set_state(SubmissionState.VALIDATING)
            return await self._run()
        except asyncio.CancelledError:
            log.warning("[Order] Submission cancelled, cart and comments left untouched.")
            self.last_result = OrderResult.failed(OrderServiceError("El envío del pedido fue cancelado."))
            raise
        finally:
            # IDLE even when a listener raised or the caller cancelled us
            self.state = SubmissionState.IDLE

    async def _run(self) -> OrderResult:
        try:
            customer = self._validate()
        except OrderServiceError as e:
            log.warning(f"[Order] Validation failed: {e.message}")
            return self._finish_failed(e)

        log_prefix = f"[Order: {customer.cardCode}]"

        try:
            self._set_state(SubmissionState.SUBMITTING)
            # Comments typed within the debounce window still belong to this order
            self.comments.flush()
            snapshot = self.cart.list()
            payload = build_order_payload(customer, snapshot, self.comments.settled, self.clock(), self.tz_name)
            log.info(f"{log_prefix} Submitting {len(payload.lines)} lines dated {payload.docDate}.")
            response = await self.client.create_order(payload)
        except OrderServiceError as e:
            log.error(f"{log_prefix} Submission failed ({e.reason}): {e.message}")
            return self._finish_failed(e)
        except Exception as e:
            log.critical(f"{log_prefix} Unexpected error during submission: {e}", exc_info=True)
            return self._finish_failed(OrderServiceError("No se pudo enviar el pedido. Intenta nuevamente."))

        doc_entry = response.get("docEntry") if isinstance(response, dict) else None
        self.cart.clear()
        self.comments.clear()
        if doc_entry is not None:
            self.last_doc_entry = doc_entry
        log.info(f"{log_prefix} Order created (DocEntry: {doc_entry}).")

        result = OrderResult.succeeded(doc_entry)
        self._set_state(SubmissionState.SUCCEEDED)
        self._signal("success", result.message)
        return self._finish(result)

    def _finish_failed(self, error: OrderServiceError) -> OrderResult:
        result = OrderResult.failed(error)
        self._set_state(SubmissionState.FAILED)
        self._signal("error", result.message)
        return self._finish(result)

    def _finish(self, result: OrderResult) -> OrderResult:
        self.last_result = result
        self._set_state(SubmissionState.IDLE)
        return result

    def _signal(self, kind: str, message: str):
        if self.feedback is None:
            return
        try:
            self.feedback(kind, message)
        except Exception as e:
            log.error(f"[Order] Feedback handler failed: {e}")
