"""Checkout outcome and the external payment handoff."""

import inspect
import logging
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from .errors import GrandCentralError
from .grandcentral_client import ALLOWANCE_TAG, CART_TAG, HOME_TAG, GrandCentralClient
from .notifications import Notifier

logger = logging.getLogger(__name__)

SUCCESS_MARKERS = ("payment/success", "status=success")
FAILURE_MARKERS = ("payment/failure", "payment/cancel", "status=failed")

# Called with (title, message); answers whether the user confirmed.
ConfirmCallback = Callable[[str, str], Union[bool, Awaitable[bool]]]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class CheckoutStatus(str, Enum):
    PLACED = "placed"
    PAYMENT_REQUIRED = "payment_required"
    FAILED = "failed"


def classify_payment_url(url: str) -> PaymentStatus:
    """
    Classify a URL the payment page navigated to.

    Only the URL is inspected, never the page content.
    """
    if any(marker in url for marker in SUCCESS_MARKERS):
        return PaymentStatus.SUCCESS
    if any(marker in url for marker in FAILURE_MARKERS):
        return PaymentStatus.FAILURE
    return PaymentStatus.PENDING


class PaymentResult(BaseModel):
    """Where a payment attempt ended up."""

    status: PaymentStatus
    order_id: int
    navigate_to: Optional[str] = None


class PaymentSession:
    """
    Observes the embedded payment page for one order.

    The first terminal navigation (success or failure) settles the attempt;
    anything observed afterwards is ignored.
    """

    def __init__(
        self,
        client: GrandCentralClient,
        notifier: Notifier,
        order_id: int,
        payment_url: str,
        amount: Optional[str],
        employee_id: int,
        preorder_date: date,
    ) -> None:
        self.client = client
        self.notifier = notifier
        self.order_id = order_id
        self.payment_url = payment_url
        self.amount = amount
        self.employee_id = employee_id
        self.preorder_date = preorder_date
        self.status = PaymentStatus.PENDING
        self.history: list[str] = []

    @property
    def settled(self) -> bool:
        return self.status != PaymentStatus.PENDING

    def _result(self, navigate_to: Optional[str]) -> PaymentResult:
        return PaymentResult(status=self.status, order_id=self.order_id, navigate_to=navigate_to)

    async def on_navigation(self, url: str) -> PaymentResult:
        """
        Feed one navigation event from the payment page.

        Args:
            url: URL the page navigated to

        Returns:
            The attempt's status and, on a terminal event, the view to show next
        """
        self.history.append(url)
        if self.settled:
            logger.info(f"Payment for order {self.order_id} already {self.status.value}, ignoring {url}")
            return self._result(None)

        status = classify_payment_url(url)
        if status == PaymentStatus.SUCCESS:
            return await self._succeed()
        if status == PaymentStatus.FAILURE:
            return self._fail()
        return self._result(None)

    async def _succeed(self) -> PaymentResult:
        self.status = PaymentStatus.SUCCESS
        logger.info(f"Payment for order {self.order_id} succeeded")
        self.client.invalidate(CART_TAG, ALLOWANCE_TAG, HOME_TAG)
        try:
            await self.client.get_allowance(self.employee_id, self.preorder_date, force=True)
        except GrandCentralError as e:
            logger.warning(f"Could not refresh allowance after payment: {e}")
        self.notifier.success("Payment completed successfully!")
        return self._result("Orders")

    def _fail(self) -> PaymentResult:
        self.status = PaymentStatus.FAILURE
        logger.info(f"Payment for order {self.order_id} failed or was cancelled")
        self._back_to_cart()
        self.notifier.error("Payment failed or cancelled. Please try again.")
        return self._result("Cart")

    def _back_to_cart(self) -> None:
        # The server emptied the cart when the order was placed; it is not restored.
        self.client.invalidate(CART_TAG)

    async def request_cancel(self, confirm: ConfirmCallback) -> PaymentResult:
        """
        Handle a manual back/cancel action.

        The attempt is only discarded when ``confirm`` answers true.
        """
        if self.settled:
            return self._result(None)

        answer = confirm("Cancel Payment", "Are you sure you want to cancel this payment?")
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.info(f"Payment cancel for order {self.order_id} declined")
            return self._result(None)

        self.status = PaymentStatus.CANCELLED
        logger.info(f"Payment for order {self.order_id} cancelled by user")
        self._back_to_cart()
        self.notifier.error("Payment cancelled")
        return self._result("Cart")


class CheckoutOutcome(BaseModel):
    """Result of placing an order from the cart."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: CheckoutStatus
    order_id: Optional[int] = None
    payment_url: Optional[str] = None
    amount: Optional[str] = None
    navigate_to: Optional[str] = None
    payment: Optional[PaymentSession] = None
